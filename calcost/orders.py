"""
Public online orders: payment-proof verification and production status.

Orders arrive as pending_payment with a screenshot of the QR transfer. The
workshop verifies the proof by hand, then moves the order through production.
"""

from datetime import datetime
from typing import Iterable

from . import models, schemas
from .models import PublicOrderStatus
from .pricing_engine import round_currency

ALLOWED_TRANSITIONS = {
    PublicOrderStatus.PENDING_PAYMENT: {PublicOrderStatus.PAYMENT_VERIFIED, PublicOrderStatus.CANCELLED},
    PublicOrderStatus.PAYMENT_VERIFIED: {PublicOrderStatus.IN_PRODUCTION, PublicOrderStatus.CANCELLED},
    PublicOrderStatus.IN_PRODUCTION: {PublicOrderStatus.READY, PublicOrderStatus.CANCELLED},
    PublicOrderStatus.READY: {PublicOrderStatus.DELIVERED},
    PublicOrderStatus.DELIVERED: set(),
    PublicOrderStatus.CANCELLED: set(),
}


class InvalidTransition(Exception):
    def __init__(self, current: PublicOrderStatus, requested: PublicOrderStatus):
        super().__init__(f"Cannot move an order from '{current.value}' to '{requested.value}'")
        self.current = current
        self.requested = requested


def order_total(items: Iterable[schemas.OrderItem]) -> float:
    return round_currency(sum(item.price * item.quantity for item in items))


def transition(order: models.PublicOrder, new_status: PublicOrderStatus, admin_notes: str = None) -> None:
    """Apply a status change, or raise InvalidTransition."""
    current = PublicOrderStatus(order.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current, new_status)

    now = datetime.utcnow()
    order.status = new_status.value
    order.updated_at = now
    if new_status == PublicOrderStatus.PAYMENT_VERIFIED:
        order.payment_verified_at = now
    if admin_notes is not None:
        order.admin_notes = admin_notes


def order_to_schema(order: models.PublicOrder) -> schemas.PublicOrder:
    return schemas.PublicOrder(
        id=order.id,
        customer=schemas.CustomerInfo(
            name=order.customer_name,
            email=order.customer_email,
            phone=order.customer_phone,
        ),
        college=order.college,
        items=order.items or [],
        status=order.status,
        total_amount=order.total_amount,
        payment_proof_url=order.payment_proof_url,
        admin_notes=order.admin_notes,
        payment_verified_at=order.payment_verified_at,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )
