# orders/services/order_service.py

"""
ORDER TOTAL UPDATES

An edit to an order that already has an invoice raises the explicit
order_updated event on that invoice in the same transaction. Re-billing
happens afterwards through invoices.services.invoice_service.rebill_invoice.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import transaction

from orders.models.order import Order

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")


class OrderServiceError(Exception):
    code = "order_error"


def _money(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise OrderServiceError(f"Invalid {field}: {value!r}") from exc
    if amount < 0:
        raise OrderServiceError(f"{field} cannot be negative")
    return amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@transaction.atomic
def update_order_total(
    order_id,
    *,
    subtotal=None,
    discount=None,
    penalty_amount=None,
    actor: str = "",
) -> Order:
    # Local import: invoices depends on orders, not the other way round at import time
    from invoices.services.invoice_service import handle_order_updated

    try:
        order = Order.objects.select_for_update().get(pk=order_id)
    except (Order.DoesNotExist, ValidationError, ValueError) as exc:
        raise OrderServiceError(f"Order {order_id} not found") from exc

    if subtotal is not None:
        order.subtotal = _money(subtotal, "subtotal")
    if discount is not None:
        order.discount = _money(discount, "discount")
    if penalty_amount is not None:
        order.penalty_amount = _money(penalty_amount, "penalty_amount")

    new_total = order.compute_total()
    if new_total < 0:
        raise OrderServiceError("Discount exceeds the order subtotal")

    previous_total = order.total_amount
    order.total_amount = new_total
    order.save()

    if new_total != previous_total:
        handle_order_updated(order, actor=actor)

    logger.info(
        "Order total updated",
        extra={
            "order_id": str(order.id),
            "previous_total": str(previous_total),
            "total": str(new_total),
            "actor": actor,
        },
    )
    return order
