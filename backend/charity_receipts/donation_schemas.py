from pydantic import BaseModel, ConfigDict, Field
from decimal import Decimal
from typing import List, Optional, Union
import datetime


# ===== INBOUND ORDER EVENT =====

class Customer(BaseModel):
    model_config = ConfigDict(extra='allow')

    email: Optional[str] = None


class LineItem(BaseModel):
    model_config = ConfigDict(extra='allow')

    product_id: Optional[Union[int, str]] = None  # custom line items have no product
    price: Decimal
    quantity: int


class OrderEvent(BaseModel):
    """Shopify orders/create payload; only the fields the pipeline reads are declared."""
    model_config = ConfigDict(extra='allow')

    id: Union[int, str]
    line_items: List[LineItem] = []
    customer: Optional[Customer] = None


# ===== CHARITY =====

class CharityUpdate(BaseModel):
    name: str
    charity_id: Optional[str] = None
    email_from: Optional[str] = None
    email_bcc: Optional[str] = None
    email_subject: str = 'Your donation receipt'
    email_template: str = ''
    pdf_template: str = ''
    pdf_filename: str = 'donation_receipt'


class Charity(CharityUpdate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    shop: str


# ===== DONATION PRODUCTS =====

class DonationProductCreate(BaseModel):
    product_id: Union[int, str]
    percentage: Decimal = Field(ge=0, le=100, decimal_places=2, allow_inf_nan=False)


class DonationProduct(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    shop: str
    product_id: str
    percentage: Decimal
    created_at: datetime.datetime


# ===== DONATIONS =====

class Donation(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    shop: str
    order_id: str
    donation_amount: Decimal
    created_at: datetime.datetime


class DeliveryResult(BaseModel):
    status: str  # delivered | skipped


class ResendRequest(BaseModel):
    to: Optional[str] = None


class SendTestRequest(BaseModel):
    to: str


class PreviewEmailRequest(BaseModel):
    subject: Optional[str] = None
    template: Optional[str] = None


class PreviewEmail(BaseModel):
    email_subject: str
    email_body: str
    email_template: str


class ExportRequest(BaseModel):
    start_date: datetime.date
    end_date: datetime.date
