"""
Receipt delivery over SMTP.

Delivery is fire-and-forget: a transport failure is reported as
DeliveryError and never retried here.
"""
import enum
import logging
import os
import smtplib
from email.message import EmailMessage

from .errors import DeliveryError
from .shopify import ShopifyClient, ShopifyError

logger = logging.getLogger(__name__)


class DeliveryOutcome(str, enum.Enum):
    DELIVERED = 'delivered'
    SKIPPED = 'skipped'


class SmtpTransport:
    HOST = os.getenv('SMTP_HOST', 'localhost')
    PORT = int(os.getenv('SMTP_PORT', '25'))
    USER = os.getenv('SMTP_USER')
    PASSWORD = os.getenv('SMTP_PASSWORD')
    STARTTLS = os.getenv('SMTP_STARTTLS', '').lower() in ('1', 'true', 'yes')
    TIMEOUT = int(os.getenv('SMTP_TIMEOUT', '30'))

    def send(self, to, bcc, sender, subject, body, attachment, attachment_name):
        try:
            msg = EmailMessage()
            msg['To'] = to
            msg['From'] = sender
            msg['Subject'] = subject
            if bcc:
                msg['Bcc'] = bcc
            msg.set_content(body)
            msg.add_attachment(attachment, maintype='application', subtype='pdf', filename=attachment_name)
            with smtplib.SMTP(self.HOST, self.PORT, timeout=self.TIMEOUT) as smtp:
                if self.STARTTLS:
                    smtp.starttls()
                if self.USER:
                    smtp.login(self.USER, self.PASSWORD or '')
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            raise DeliveryError(f"sending receipt to {to} failed: {e}") from e


def recipient_for(order, to=None):
    """Explicit recipient, else the order's customer email, else None."""
    if to:
        return to
    customer = order.get('customer') or {}
    return customer.get('email') or None


def resolve_sender(charity, shop_client, shop):
    """Charity override, then DEFAULT_EMAIL_FROM, then the shop's own email."""
    if charity is not None and charity.email_from:
        return charity.email_from
    default_from = os.getenv('DEFAULT_EMAIL_FROM')
    if default_from:
        return default_from
    try:
        return shop_client.get_shop(shop)['email']
    except (ShopifyError, KeyError) as e:
        raise DeliveryError(f"no sender address for {shop}") from e


class DeliveryDispatcher:

    def __init__(self, transport=None, shop_client=None):
        self.transport = transport or SmtpTransport()
        self.shop_client = shop_client or ShopifyClient()

    def deliver(self, shop, order, charity, receipt, to=None):
        """Send the receipt, or skip when there is nobody to send it to."""
        recipient = recipient_for(order, to)
        if recipient is None:
            logger.info("no recipient for order %s, receipt not sent", order.get('id'))
            return DeliveryOutcome.SKIPPED
        self.transport.send(
            to=recipient,
            bcc=charity.email_bcc,
            sender=resolve_sender(charity, self.shop_client, shop),
            subject=receipt.subject,
            body=receipt.body,
            attachment=receipt.document,
            attachment_name=receipt.attachment_name,
        )
        logger.info("receipt sent for order %s to %s", order.get('id'), recipient)
        return DeliveryOutcome.DELIVERED
