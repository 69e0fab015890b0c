"""
Order webhook and receipt resend flows.

Webhook: calculate -> record -> compose -> deliver. The ledger write is the
only idempotency guard, so a redelivered webhook stops at DUPLICATE_IGNORED.
Resend, preview and test-send start at compose and never write to the ledger.
"""
import enum
import json
import logging
from pathlib import Path

from sqlalchemy.orm import Session

from . import ledger
from .calculator import compute_donation
from .donation_models import Charity, DonationProduct
from .donation_schemas import OrderEvent
from .errors import CompositionError, DeliveryError, DonationNotFound
from .mailer import DeliveryDispatcher, DeliveryOutcome, recipient_for
from .receipts import ReceiptComposer
from .shopify import ShopifyClient

logger = logging.getLogger(__name__)

MOCK_ORDER_PATH = Path(__file__).resolve().parent / 'fixtures' / 'order_webhook.json'


class WebhookOutcome(str, enum.Enum):
    NO_DONATION = 'no_donation'
    DUPLICATE_IGNORED = 'duplicate_ignored'
    DELIVERED = 'delivered'
    DELIVERY_SKIPPED = 'delivery_skipped'
    COMPOSITION_FAILED = 'composition_failed'
    DELIVERY_FAILED = 'delivery_failed'


class ReceiptServices:
    """Collaborators the flows need; swapped for fakes in tests."""

    def __init__(self, orders=None, composer=None, dispatcher=None):
        self.orders = orders or ShopifyClient()
        self.composer = composer or ReceiptComposer()
        self.dispatcher = dispatcher or DeliveryDispatcher(shop_client=self.orders)


def get_charity(db: Session, shop: str):
    return db.query(Charity).filter(Charity.shop == shop).first()


def get_donation_products(db: Session, shop: str):
    return db.query(DonationProduct).filter(DonationProduct.shop == shop).all()


def resolve_order(donation, orders) -> dict:
    """Fetch the order a donation was recorded for."""
    return orders.get_order(donation.shop, donation.order_id)


def mock_order() -> dict:
    with open(MOCK_ORDER_PATH) as f:
        return json.load(f)


def handle_order_created(db: Session, shop: str, order: dict, services: ReceiptServices) -> WebhookOutcome:
    event = OrderEvent.model_validate(order)
    amount = compute_donation(event.line_items, get_donation_products(db, shop))
    if amount is None:
        logger.info("order %s for %s has no donation", event.id, shop)
        return WebhookOutcome.NO_DONATION

    donation = ledger.record_donation(db, shop, event.id, amount)
    if isinstance(donation, ledger.Duplicate):
        return WebhookOutcome.DUPLICATE_IGNORED

    # From here on the donation stays recorded whatever happens; resend is the recovery path.
    if recipient_for(order) is None:
        logger.info("order %s for %s has no customer email, receipt not sent", event.id, shop)
        return WebhookOutcome.DELIVERY_SKIPPED

    charity = get_charity(db, shop)
    try:
        receipt = services.composer.compose(shop, order, charity, donation)
    except CompositionError:
        logger.exception("receipt composition failed for %s order %s", shop, event.id)
        return WebhookOutcome.COMPOSITION_FAILED

    try:
        outcome = services.dispatcher.deliver(shop, order, charity, receipt)
    except DeliveryError:
        logger.exception("receipt delivery failed for %s order %s", shop, event.id)
        return WebhookOutcome.DELIVERY_FAILED

    if outcome is DeliveryOutcome.SKIPPED:
        return WebhookOutcome.DELIVERY_SKIPPED
    return WebhookOutcome.DELIVERED


def resend_receipt(db: Session, shop: str, donation_id: int, services: ReceiptServices, to=None) -> DeliveryOutcome:
    donation = ledger.get_donation(db, shop, donation_id)
    if donation is None:
        raise DonationNotFound(f"donation {donation_id} not found for {shop}")
    order = resolve_order(donation, services.orders)
    if recipient_for(order, to) is None:
        return DeliveryOutcome.SKIPPED
    charity = get_charity(db, shop)
    receipt = services.composer.compose(shop, order, charity, donation)
    return services.dispatcher.deliver(shop, order, charity, receipt, to=to)


def preview_email(db: Session, shop: str, services: ReceiptServices, subject=None, template=None) -> dict:
    """Render an edited subject/template against the sample order. No PDF, no email."""
    charity = get_charity(db, shop)
    order = mock_order()
    donation = ledger.mock_donation(shop, order)
    email_subject, email_body = services.composer.render_email(
        shop, order, charity, donation, subject=subject, template=template,
    )
    return {
        'email_subject': email_subject,
        'email_body': email_body,
        'email_template': template if template is not None else (charity.email_template or ''),
    }


def preview_pdf(db: Session, shop: str, services: ReceiptServices) -> bytes:
    order = mock_order()
    return services.composer.render_pdf(shop, order, get_charity(db, shop), ledger.mock_donation(shop, order))


def send_test_email(db: Session, shop: str, to: str, services: ReceiptServices) -> DeliveryOutcome:
    if not to:
        raise ValueError("a test email needs an explicit recipient")
    order = mock_order()
    donation = ledger.mock_donation(shop, order)
    charity = get_charity(db, shop)
    receipt = services.composer.compose(shop, order, charity, donation)
    return services.dispatcher.deliver(shop, order, charity, receipt, to=to)
