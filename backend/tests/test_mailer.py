import smtplib
from unittest.mock import patch

import pytest

from charity_receipts.errors import DeliveryError
from charity_receipts.mailer import DeliveryDispatcher, DeliveryOutcome, SmtpTransport, recipient_for, resolve_sender
from charity_receipts.receipts import Receipt
from charity_receipts.shopify import ShopifyError

from conftest import SHOP, make_order


@pytest.fixture
def receipt():
    return Receipt(subject='Your receipt', body='Thank you', document=b'%PDF-1.4 fake', filename='receipt-1')


def test_recipient_rules():
    assert recipient_for(make_order(email='a@example.com')) == 'a@example.com'
    assert recipient_for(make_order(email='a@example.com'), to='b@example.com') == 'b@example.com'
    assert recipient_for(make_order(email=None)) is None
    assert recipient_for(make_order(email='')) is None
    assert recipient_for({'id': 1, 'customer': None}) is None
    assert recipient_for(make_order(email=None), to='b@example.com') == 'b@example.com'


def test_deliver_sends_one_message_with_attachment(charity, transport, shopify, receipt, monkeypatch):
    monkeypatch.delenv('DEFAULT_EMAIL_FROM', raising=False)
    outcome = DeliveryDispatcher(transport, shopify).deliver(SHOP, make_order(email='a@example.com'), charity, receipt)
    assert outcome is DeliveryOutcome.DELIVERED
    assert transport.sent == [{
        'to': 'a@example.com',
        'bcc': 'records@cleanwater.example',
        'sender': 'owner@fair-goods.example',
        'subject': 'Your receipt',
        'body': 'Thank you',
        'attachment': b'%PDF-1.4 fake',
        'attachment_name': 'receipt-1.pdf',
    }]


def test_deliver_without_customer_is_skipped(charity, transport, shopify, receipt):
    outcome = DeliveryDispatcher(transport, shopify).deliver(SHOP, make_order(email=None), charity, receipt)
    assert outcome is DeliveryOutcome.SKIPPED
    assert transport.sent == []


def test_transport_failure_surfaces(charity, transport, shopify, receipt):
    transport.fail = True
    with pytest.raises(DeliveryError):
        DeliveryDispatcher(transport, shopify).deliver(SHOP, make_order(), charity, receipt)


def test_sender_prefers_charity_then_env_then_shop(charity, shopify, monkeypatch):
    monkeypatch.delenv('DEFAULT_EMAIL_FROM', raising=False)
    assert resolve_sender(charity, shopify, SHOP) == 'owner@fair-goods.example'
    monkeypatch.setenv('DEFAULT_EMAIL_FROM', 'receipts@platform.example')
    assert resolve_sender(charity, shopify, SHOP) == 'receipts@platform.example'
    charity.email_from = 'hello@cleanwater.example'
    assert resolve_sender(charity, shopify, SHOP) == 'hello@cleanwater.example'


def test_sender_lookup_failure_is_delivery_error(charity, monkeypatch):
    monkeypatch.delenv('DEFAULT_EMAIL_FROM', raising=False)

    class BrokenShopify:
        def get_shop(self, shop):
            raise ShopifyError('unauthorized')

    with pytest.raises(DeliveryError):
        resolve_sender(charity, BrokenShopify(), SHOP)


def test_smtp_transport_builds_message():
    with patch('charity_receipts.mailer.smtplib.SMTP') as smtp_cls:
        SmtpTransport().send('a@example.com', 'bcc@example.com', 'from@example.com', 'Subj', 'Body', b'%PDF', 'r.pdf')
    smtp = smtp_cls.return_value.__enter__.return_value
    msg = smtp.send_message.call_args[0][0]
    assert msg['To'] == 'a@example.com'
    assert msg['Bcc'] == 'bcc@example.com'
    assert msg['Subject'] == 'Subj'
    attachments = list(msg.iter_attachments())
    assert attachments[0].get_filename() == 'r.pdf'
    assert attachments[0].get_content() == b'%PDF'


def test_smtp_errors_become_delivery_errors():
    with patch('charity_receipts.mailer.smtplib.SMTP', side_effect=smtplib.SMTPConnectError(421, 'busy')):
        with pytest.raises(DeliveryError):
            SmtpTransport().send('a@example.com', None, 'from@example.com', 'Subj', 'Body', b'%PDF', 'r.pdf')


@pytest.mark.parametrize('to, subject', [
    ('a@example.com', 'Receipt\nProduct 111'),
    ('a@example.com\r\nBcc: someone@example.com', 'Receipt'),
])
def test_header_injection_becomes_delivery_error(to, subject):
    with patch('charity_receipts.mailer.smtplib.SMTP') as smtp_cls:
        with pytest.raises(DeliveryError):
            SmtpTransport().send(to, None, 'from@example.com', subject, 'Body', b'%PDF', 'r.pdf')
    smtp_cls.assert_not_called()
