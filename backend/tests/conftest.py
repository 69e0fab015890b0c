import os
import sys
import tempfile
# ensure backend package is on path for tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# point the app at a throwaway sqlite file before anything imports the engine
_DB_DIR = tempfile.mkdtemp(prefix='charity_receipts_')
os.environ['DATABASE_URL'] = 'sqlite:///' + os.path.join(_DB_DIR, 'test.db')

import copy
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from charity_receipts import donation_models
from charity_receipts.database import Base, SessionLocal, engine
from charity_receipts.deps import get_services
from charity_receipts.errors import DeliveryError
from charity_receipts.mailer import DeliveryDispatcher
from charity_receipts.pipeline import ReceiptServices
from charity_receipts.shopify import ShopifyError

SHOP = 'fair-goods.myshopify.com'


class RecordingTransport:
    """Stands in for SMTP; remembers every message instead of sending it."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, **message):
        if self.fail:
            raise DeliveryError('smtp unavailable')
        self.sent.append(message)


class FakeShopify:
    """Order/shop lookups served from memory."""

    def __init__(self):
        self.orders = {}
        self.shop_email = 'owner@fair-goods.example'

    def add_order(self, shop, order):
        self.orders[(shop, str(order['id']))] = copy.deepcopy(order)

    def get_order(self, shop, order_id):
        try:
            return copy.deepcopy(self.orders[(shop, str(order_id))])
        except KeyError:
            raise ShopifyError(f'order {order_id} not found')

    def get_shop(self, shop):
        return {'domain': shop, 'email': self.shop_email}


def make_order(order_id=1001, items=(), email='donor@example.com'):
    order = {
        'id': order_id,
        'name': f'#{order_id}',
        'currency': 'EUR',
        'line_items': [
            {'product_id': pid, 'title': f'Product {pid}', 'price': price, 'quantity': qty}
            for pid, price, qty in items
        ],
    }
    if email is not None:
        order['customer'] = {'first_name': 'Ada', 'email': email}
    return order


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def charity(db):
    c = donation_models.Charity(
        shop=SHOP,
        name='Clean Water Fund',
        charity_id='CH-123',
        email_bcc='records@cleanwater.example',
        email_subject='Receipt for order {{ order.name }}',
        email_template='Thanks {{ order.customer.first_name }}, you gave {{ donation.amount }} to {{ charity.name }}.',
        pdf_template='<h1>{{ charity.name }}</h1><p>Donation: {{ donation.amount }}</p>',
        pdf_filename='receipt-{{ donation.order_id }}',
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def products(db):
    items = [
        donation_models.DonationProduct(shop=SHOP, product_id='111', percentage=Decimal('50')),
        donation_models.DonationProduct(shop=SHOP, product_id='222', percentage=Decimal('10')),
    ]
    db.add_all(items)
    db.commit()
    return items


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def shopify():
    return FakeShopify()


@pytest.fixture
def services(transport, shopify):
    return ReceiptServices(
        orders=shopify,
        dispatcher=DeliveryDispatcher(transport=transport, shop_client=shopify),
    )


@pytest.fixture
def client(services):
    from charity_receipts.main import app
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ('DEFAULT_EMAIL_FROM', 'ADMIN_API_KEY', 'SHOPIFY_WEBHOOK_SECRET'):
        monkeypatch.delenv(name, raising=False)
