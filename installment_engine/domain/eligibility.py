"""Eligibility rules for putting an invoice on a payment plan"""

from typing import Optional
from installment_engine.domain.models import InvoiceSnapshot, InvoiceStatus
from installment_engine.domain.exceptions import AlreadyPaid, InvoiceNotFound, NoOutstandingBalance


def check_invoice_eligibility(invoice: Optional[InvoiceSnapshot]) -> int:
    """
    Validate that an invoice can carry a new plan.

    Returns:
        Outstanding balance in cents, used as the plan total

    Raises:
        InvoiceNotFound: lookup returned nothing
        AlreadyPaid: invoice status is paid
        NoOutstandingBalance: balance is zero or negative
    """
    if invoice is None:
        raise InvoiceNotFound()

    if invoice.status == InvoiceStatus.PAID.value:
        raise AlreadyPaid(f"Invoice {invoice.invoice_id} is paid")

    if invoice.balance_cents <= 0:
        raise NoOutstandingBalance(f"Invoice {invoice.invoice_id} balance is {invoice.balance_cents}")

    return invoice.balance_cents
