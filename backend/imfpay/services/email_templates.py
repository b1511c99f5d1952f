"""
Email Templates — Payer confirmation and admin alert bodies.
"""
from html import escape
from string import Template
from typing import Dict, Any, Tuple

PAYER_SUBJECT = "Payment Receipt Received"
ADMIN_SUBJECT = "New Payment Receipt Submitted"

_PAYER_HTML = Template("""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #2563eb;">Payment Receipt Received</h2>
  <p>Dear $name,</p>
  <p>Thank you for your payment. We have received your transfer receipt.</p>
  <div style="background-color: #f1f5f9; padding: 15px; border-radius: 8px; margin: 20px 0;">
    <h3>Payment Details</h3>
    <ul>
      <li>Name: $name</li>
      <li>Amount: $amount</li>
      <li>Service: $service_type</li>
      <li>Reference: $reference</li>
      <li>Date: $date</li>
    </ul>
  </div>
  <p>$attachment_note</p>
  <p>We will process your payment shortly.</p>
  <hr style="margin: 30px 0;">
  <p style="color: #64748b; font-size: 14px;">Best regards,<br><strong>IMF Africa Team</strong></p>
</div>
""")

_PAYER_TEXT = Template("""\
Dear $name,

Thank you for your payment. We have received your transfer receipt.

Payment Details
  Name: $name
  Amount: $amount
  Service: $service_type
  Reference: $reference
  Date: $date

We will process your payment shortly.

Best regards,
IMF Africa Team
""")

_ADMIN_HTML = Template("""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #2563eb;">New Payment Receipt</h2>
  <p>A new payment receipt has been submitted:</p>
  <div style="background-color: #f1f5f9; padding: 15px; border-radius: 8px; margin: 20px 0;">
    <h3>Payment Details</h3>
    <ul>
      <li>Name: $name</li>
      <li>Email: $email</li>
      <li>Amount: $amount</li>
      <li>Service: $service_type</li>
      <li>Reference: $reference</li>
      <li>Date: $date</li>
    </ul>
  </div>
  <p>$attachment_note</p>
</div>
""")

_ADMIN_TEXT = Template("""\
A new payment receipt has been submitted:

  Name: $name
  Email: $email
  Amount: $amount
  Service: $service_type
  Reference: $reference
  Date: $date
""")


def format_amount(amount: float, currency_symbol: str = "$") -> str:
    return f"{currency_symbol}{amount:,.2f}"


def _context(data: Dict[str, Any], has_attachment: bool, for_admin: bool, html: bool) -> Dict[str, str]:
    ctx = {
        "name": str(data.get("name", "")),
        "email": str(data.get("email", "")),
        "amount": format_amount(float(data.get("amount", 0)), data.get("currency_symbol", "$")),
        "service_type": str(data.get("service_type", "")),
        "reference": str(data.get("reference", "")),
        "date": str(data.get("date", "")),
    }
    if html:
        ctx = {k: escape(v) for k, v in ctx.items()}
    if has_attachment:
        ctx["attachment_note"] = (
            "Payment receipt is attached for verification." if for_admin
            else "Your payment receipt is attached to this email for your records."
        )
    else:
        ctx["attachment_note"] = "No receipt file was attached to this submission."
    return ctx


def render_payer_confirmation(data: Dict[str, Any], has_attachment: bool = False) -> Tuple[str, str, str]:
    """Returns (subject, html, text)."""
    return (
        PAYER_SUBJECT,
        _PAYER_HTML.substitute(_context(data, has_attachment, False, html=True)),
        _PAYER_TEXT.substitute(_context(data, has_attachment, False, html=False)),
    )


def render_admin_alert(data: Dict[str, Any], has_attachment: bool = False) -> Tuple[str, str, str]:
    """Returns (subject, html, text)."""
    return (
        ADMIN_SUBJECT,
        _ADMIN_HTML.substitute(_context(data, has_attachment, True, html=True)),
        _ADMIN_TEXT.substitute(_context(data, has_attachment, True, html=False)),
    )
