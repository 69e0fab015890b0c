"""
Receipt composition: email subject/body and the PDF receipt.

Charity templates are Jinja2 rendered in an immutable sandbox against four
plain bindings (order, charity, donation, shop). Templates can branch and
loop over those bindings but cannot reach anything else or mutate them.
"""
import logging
from dataclasses import dataclass

from fpdf import FPDF
from jinja2 import ChainableUndefined
from jinja2.sandbox import ImmutableSandboxedEnvironment

from .errors import CompositionError

logger = logging.getLogger(__name__)

PDF_EXTENSION = '.pdf'

DEFAULT_EMAIL_TEMPLATE = """Dear {{ order.customer.first_name or 'donor' }},

Thank you for your order {{ order.name or order.id }}. A donation of {{ donation.amount }} {{ order.currency }} has been made to {{ charity.name }} on your behalf.

Your receipt is attached.
"""

DEFAULT_PDF_TEMPLATE = """<h1>{{ charity.name }}</h1>
<p>Official donation receipt{% if charity.charity_id %} (registration {{ charity.charity_id }}){% endif %}</p>
<p>Order: {{ order.name or order.id }}<br>Date: {{ donation.created_at }}</p>
<ul>
{% for item in order.line_items %}<li>{{ item.quantity }} x {{ item.title or item.product_id }}</li>
{% endfor %}</ul>
<p><b>Donation amount: {{ donation.amount }} {{ order.currency }}</b></p>
"""


def _environment(autoescape):
    # missing fields (e.g. order.customer.first_name on guest orders) render empty
    env = ImmutableSandboxedEnvironment(autoescape=autoescape, undefined=ChainableUndefined)
    # nothing but the bindings passed to render()
    env.globals.clear()
    return env


_text_env = _environment(autoescape=False)
_html_env = _environment(autoescape=True)


@dataclass
class Receipt:
    subject: str
    body: str
    document: bytes
    filename: str

    @property
    def attachment_name(self):
        return f"{self.filename}{PDF_EXTENSION}"


def charity_context(charity):
    return {
        'name': charity.name,
        'charity_id': charity.charity_id,
        'email_from': charity.email_from,
        'email_bcc': charity.email_bcc,
    }


def donation_context(donation):
    return {
        'id': donation.id,
        'shop': donation.shop,
        'order_id': donation.order_id,
        'amount': donation.amount_display,
        'created_at': donation.created_at.strftime('%Y-%m-%d') if donation.created_at else '',
    }


def build_context(shop, order, charity, donation):
    if charity is None:
        raise CompositionError(f"no charity configured for {shop}")
    return {
        'shop': shop,
        'order': order,
        'charity': charity_context(charity),
        'donation': donation_context(donation),
    }


def render_template(source, context, html=False):
    env = _html_env if html else _text_env
    try:
        return env.from_string(source).render(**context)
    except Exception as e:
        raise CompositionError(f"template rendering failed: {e}") from e


def html_to_pdf(html):
    try:
        pdf = FPDF()
        pdf.add_page()
        pdf.set_font('helvetica', size=11)
        pdf.write_html(html)
        return bytes(pdf.output())
    except Exception as e:
        raise CompositionError(f"PDF rendering failed: {e}") from e


def single_line(text):
    # mail headers cannot carry line breaks
    return ' '.join(text.split())


class ReceiptComposer:

    def render_email(self, shop, order, charity, donation, subject=None, template=None, context=None):
        """Render (subject, body); subject/template override the charity's for previews."""
        context = context or build_context(shop, order, charity, donation)
        subject = render_template(subject if subject is not None else (charity.email_subject or ''), context)
        template = template if template is not None else (charity.email_template or DEFAULT_EMAIL_TEMPLATE)
        body = render_template(template, context)
        return single_line(subject), body

    def render_pdf(self, shop, order, charity, donation, context=None):
        context = context or build_context(shop, order, charity, donation)
        html = render_template(charity.pdf_template or DEFAULT_PDF_TEMPLATE, context, html=True)
        return html_to_pdf(html)

    def compose(self, shop, order, charity, donation):
        context = build_context(shop, order, charity, donation)
        subject, body = self.render_email(shop, order, charity, donation, context=context)
        document = self.render_pdf(shop, order, charity, donation, context=context)
        filename = single_line(render_template(charity.pdf_filename or 'donation_receipt', context))
        logger.debug("receipt composed shop=%s order_id=%s bytes=%s", shop, donation.order_id, len(document))
        return Receipt(subject=subject, body=body, document=document, filename=filename or 'donation_receipt')
