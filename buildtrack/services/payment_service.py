import logging
from datetime import datetime
from typing import Optional

from ..core.exceptions import ConflictError, ValidationError
from ..models.base import utcnow
from ..models.purchase_order import InvoiceStatus, Payment, PurchaseOrderStatus
from ..repositories import Repositories

logger = logging.getLogger(__name__)

# tolerance for float rounding when comparing money
EPSILON = 0.005


async def record_payment(
    repos: Repositories,
    invoice_id: str,
    amount: float,
    method: Optional[str] = None,
    reference: Optional[str] = None,
    paid_at: Optional[datetime] = None,
) -> Payment:
    """Record a payment against an invoice and roll it up.

    Creates the payment, then increments the invoice, its purchase order and
    the purchase order's budget line. Callers run this inside ``atomic`` so
    a failure at any step leaves every paid amount untouched.
    """
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")

    invoice = await repos.invoices.get(invoice_id)
    if invoice.status == InvoiceStatus.CANCELLED:
        raise ConflictError("Cannot pay a cancelled invoice", code="INVALID_STATUS")
    if amount > invoice.balance + EPSILON:
        raise ValidationError(
            "Payment exceeds the outstanding balance",
            details={"balance": round(invoice.balance, 2), "amount": amount},
        )

    payment = await repos.payments.create({
        "invoice_id": invoice.id,
        "amount": amount,
        "method": method,
        "reference": reference,
        "paid_at": paid_at or utcnow(),
        "recorded_by_id": repos.context.user_id,
    })

    invoice_paid = invoice.paid_amount + amount
    await repos.invoices.apply(
        invoice,
        {
            "paid_amount": invoice_paid,
            "status": InvoiceStatus.PAID if invoice_paid >= invoice.amount - EPSILON else InvoiceStatus.PARTIAL,
        },
        audit_action="PAYMENT",
        trusted=True,
    )

    if invoice.purchase_order_id:
        order = await repos.purchase_orders.get(invoice.purchase_order_id)
        order_paid = order.paid_amount + amount
        await repos.purchase_orders.apply(
            order,
            {
                "paid_amount": order_paid,
                "status": PurchaseOrderStatus.PAID if order_paid >= order.total - EPSILON else PurchaseOrderStatus.PARTIAL,
            },
            audit_action="PAYMENT",
            trusted=True,
        )
        if order.budget_item_id:
            await repos.budget.add_payment(order.budget_item_id, amount)

    logger.info(f"Recorded payment {payment.id} of {amount} on invoice {invoice.id}")
    return payment
