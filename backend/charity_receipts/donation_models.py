from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, UniqueConstraint
from .database import Base
import datetime


class Charity(Base):
    """Receiving organization and receipt templates for a shop (one per shop)."""
    __tablename__ = 'charities'
    id = Column(Integer, primary_key=True, index=True)
    shop = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    charity_id = Column(String(100), nullable=True)  # registration / tax number
    email_from = Column(String(200), nullable=True)  # falls back to the shop's email
    email_bcc = Column(String(200), nullable=True)
    email_subject = Column(String(500), nullable=False, default='Your donation receipt')
    email_template = Column(Text, nullable=False, default='')
    pdf_template = Column(Text, nullable=False, default='')
    pdf_filename = Column(String(200), nullable=False, default='donation_receipt')


class DonationProduct(Base):
    __tablename__ = 'donation_products'
    __table_args__ = (UniqueConstraint('shop', 'product_id', name='uq_donation_products_shop_product'),)
    id = Column(Integer, primary_key=True, index=True)
    shop = Column(String(255), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)  # platform product id, stored as text
    percentage = Column(Numeric(5, 2), nullable=False)  # 0-100
    created_at = Column(DateTime, default=datetime.datetime.utcnow)


class Donation(Base):
    """
    One donation per (shop, order_id). The source order is not stored here;
    it is fetched on demand through an order resolver (see shopify.py).
    """
    __tablename__ = 'donations'
    __table_args__ = (UniqueConstraint('shop', 'order_id', name='uq_donations_shop_order'),)
    id = Column(Integer, primary_key=True, index=True)
    shop = Column(String(255), nullable=False, index=True)
    order_id = Column(String(64), nullable=False)
    donation_amount = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, index=True)

    @property
    def amount_display(self):
        return f"{self.donation_amount:.2f}"
