"""
Online orders.

Public side: customers of a workshop place orders with a payment-proof URL and
can look up the status of their own order by id. Workshop side (requires the
"workshop" capability): list orders, verify payment, move orders through
production, delete.
"""

import logging
from typing import Callable, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models, schemas
from ..authorization import AuthorizationPolicy, Capability, get_authorization_policy, require_capability
from ..database import get_db, get_session_factory
from ..models import PublicOrderStatus
from ..notifications import notify_new_order
from ..orders import InvalidTransition, order_to_schema, order_total, transition

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/public", tags=["public-orders"])
router = APIRouter(prefix="/orders", tags=["orders"])

require_workshop = require_capability(Capability.WORKSHOP)


def send_order_emails(order_id: str, session_factory: Callable[[], Session]) -> None:
    """Background job. Loads the order in its own session."""
    db = session_factory()
    try:
        order = db.query(models.PublicOrder).filter(models.PublicOrder.id == order_id).first()
        if order is None:
            logger.warning("Order %s vanished before its emails were sent", order_id)
            return
        sent = notify_new_order(order, order.user)
        logger.info("Order %s emails: %s", order_id, sent)
    finally:
        db.close()


def _get_workshop_order(order_id: str, user: models.User, db: Session) -> models.PublicOrder:
    order = db.query(models.PublicOrder).filter(
        models.PublicOrder.id == order_id,
        models.PublicOrder.user_id == user.id,
    ).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _apply_transition(order: models.PublicOrder, new_status: PublicOrderStatus, admin_notes: Optional[str], db: Session):
    try:
        transition(order, new_status, admin_notes)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    db.refresh(order)
    return order_to_schema(order)


# --- Public ---

@public_router.post("/workshops/{user_id}/orders", response_model=schemas.PublicOrder)
def place_order(
    user_id: int,
    order: schemas.PublicOrderCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_authorization_policy),
    session_factory=Depends(get_session_factory),
):
    """Place an order. The total is computed here, never taken from the client."""
    workshop = db.query(models.User).filter(models.User.id == user_id).first()
    if not workshop or not workshop.is_active or not policy.allows(workshop, Capability.WORKSHOP):
        raise HTTPException(status_code=404, detail="Workshop not found")

    db_order = models.PublicOrder(
        user_id=workshop.id,
        customer_name=order.customer.name,
        customer_email=order.customer.email,
        customer_phone=order.customer.phone,
        college=order.college,
        items=[item.model_dump() for item in order.items],
        status=PublicOrderStatus.PENDING_PAYMENT.value,
        total_amount=order_total(order.items),
        payment_proof_url=order.payment_proof_url,
    )
    db.add(db_order)
    db.commit()
    db.refresh(db_order)
    logger.info("Order %s placed with workshop %s (%.2f)", db_order.id, workshop.id, db_order.total_amount)

    background_tasks.add_task(send_order_emails, db_order.id, session_factory)
    return order_to_schema(db_order)


@public_router.get("/orders/{order_id}", response_model=schemas.PublicOrderReceipt)
def order_receipt(order_id: str, db: Session = Depends(get_db)):
    order = db.query(models.PublicOrder).filter(models.PublicOrder.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return schemas.PublicOrderReceipt(
        id=order.id,
        college=order.college,
        status=order.status,
        total_amount=order.total_amount,
        created_at=order.created_at,
    )


# --- Workshop ---

@router.get("/", response_model=List[schemas.PublicOrder])
def list_orders(
    status: Optional[PublicOrderStatus] = None,
    current_user: models.User = Depends(require_workshop),
    db: Session = Depends(get_db),
):
    query = db.query(models.PublicOrder).filter(models.PublicOrder.user_id == current_user.id)
    if status:
        query = query.filter(models.PublicOrder.status == status.value)
    return [order_to_schema(o) for o in query.order_by(models.PublicOrder.created_at.desc()).all()]


@router.post("/{order_id}/verify-payment", response_model=schemas.PublicOrder)
def verify_payment(
    order_id: str,
    current_user: models.User = Depends(require_workshop),
    db: Session = Depends(get_db),
):
    """The workshop checked the transfer screenshot against its account."""
    order = _get_workshop_order(order_id, current_user, db)
    return _apply_transition(order, PublicOrderStatus.PAYMENT_VERIFIED, None, db)


@router.patch("/{order_id}/status", response_model=schemas.PublicOrder)
def update_status(
    order_id: str,
    update: schemas.PublicOrderStatusUpdate,
    current_user: models.User = Depends(require_workshop),
    db: Session = Depends(get_db),
):
    order = _get_workshop_order(order_id, current_user, db)
    return _apply_transition(order, update.status, update.admin_notes, db)


@router.delete("/{order_id}")
def delete_order(
    order_id: str,
    current_user: models.User = Depends(require_workshop),
    db: Session = Depends(get_db),
):
    order = _get_workshop_order(order_id, current_user, db)
    db.delete(order)
    db.commit()
    return {"deleted": order_id}
