"""
Donation ledger: the only place donations are written.

At most one Donation exists per (shop, order_id). The write is a single
INSERT guarded by the uq_donations_shop_order constraint, so two concurrent
deliveries of the same webhook cannot both create a record; the loser gets
a Duplicate back instead of an exception.
"""
import datetime
import logging
from decimal import Decimal

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .donation_models import Donation
from .errors import StorageError

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    'sqlite': sqlite.insert,
    'postgresql': postgresql.insert,
}


class Duplicate:
    """Returned by record_donation when the order already has a donation."""

    def __init__(self, shop, order_id):
        self.shop = shop
        self.order_id = order_id

    def __repr__(self):
        return f"Duplicate(shop={self.shop!r}, order_id={self.order_id!r})"


def record_donation(db: Session, shop: str, order_id, amount: Decimal):
    """Create the donation for (shop, order_id), or return Duplicate if one exists."""
    order_id = str(order_id)
    values = {
        'shop': shop,
        'order_id': order_id,
        'donation_amount': amount,
        'created_at': datetime.datetime.utcnow(),
    }
    insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
    try:
        if insert is not None:
            stmt = insert(Donation).values(**values).on_conflict_do_nothing(
                index_elements=['shop', 'order_id'],
            )
            created = db.execute(stmt).rowcount == 1
            db.commit()
        else:
            created = _insert_in_savepoint(db, values)
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"could not record donation for {shop} order {order_id}") from e

    if not created:
        logger.info("donation already recorded shop=%s order_id=%s", shop, order_id)
        return Duplicate(shop, order_id)

    donation = find_by_order_id(db, shop, order_id)
    if donation is None:
        raise StorageError(f"donation for {shop} order {order_id} vanished after insert")
    logger.info("donation recorded shop=%s order_id=%s amount=%s", shop, order_id, donation.amount_display)
    return donation


def _insert_in_savepoint(db: Session, values: dict) -> bool:
    # Dialects without ON CONFLICT: let the unique constraint reject the row,
    # then confirm the rejection was for this key before calling it a duplicate.
    try:
        with db.begin_nested():
            db.add(Donation(**values))
        db.commit()
        return True
    except IntegrityError:
        db.rollback()
        if find_by_order_id(db, values['shop'], values['order_id']) is not None:
            return False
        raise


def get_donation(db: Session, shop: str, donation_id: int):
    return db.query(Donation).filter(Donation.shop == shop, Donation.id == donation_id).first()


def find_by_order_id(db: Session, shop: str, order_id):
    return db.query(Donation).filter(Donation.shop == shop, Donation.order_id == str(order_id)).first()


def find_by_shop(db: Session, shop: str, skip: int = 0, limit: int = 50):
    """Donations for a shop, most recent first."""
    q = db.query(Donation).filter(Donation.shop == shop)
    return q.order_by(Donation.created_at.desc(), Donation.id.desc()).offset(skip).limit(limit).all()


def find_in_range(db: Session, shop: str, start: datetime.datetime, end: datetime.datetime):
    q = db.query(Donation).filter(
        Donation.shop == shop,
        Donation.created_at >= start,
        Donation.created_at < end,
    )
    return q.order_by(Donation.created_at.asc(), Donation.id.asc()).all()


def mock_donation(shop: str, order: dict, amount: Decimal = Decimal('20.00')) -> Donation:
    """Unsaved donation for previews and test emails."""
    return Donation(
        shop=shop,
        order_id=str(order['id']),
        donation_amount=amount,
        created_at=datetime.datetime.utcnow(),
    )
