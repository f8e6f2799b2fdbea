import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from doorwin.api.errors import http_error, unwrap_or_raise
from doorwin.core.config import settings
from doorwin.core.database import get_db
from doorwin.core.errors import OrderNotFound
from doorwin.core.security import require_actor
from doorwin.models.database import Order as DBOrder
from doorwin.models.schemas import (
    Order,
    OrderActionRequest,
    OrderCreate,
    OrderDetail,
    OrderPage,
    OrderStatusName,
    RejectOrder,
)
from doorwin.services.order_lifecycle import OrderLifecycleService
from doorwin.services.order_state_machine import allowed_actions

router = APIRouter()


@router.post("/", response_model=Order, status_code=201)
async def create_order(order_data: OrderCreate, db: Session = Depends(get_db)):
    """Place an order; stock is checked but only taken on approval"""
    service = OrderLifecycleService(db)
    return unwrap_or_raise(await service.create_order(order_data))


@router.get("/", response_model=OrderPage)
async def get_orders(
    status: Optional[OrderStatusName] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """List orders, newest first"""
    stmt = select(DBOrder)
    if status:
        stmt = stmt.where(DBOrder.status == status)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            DBOrder.customer_first_name.ilike(pattern),
            DBOrder.customer_last_name.ilike(pattern),
            DBOrder.customer_email.ilike(pattern),
        ))

    total = db.scalar(select(func.count()).select_from(stmt.subquery()))
    orders = db.scalars(
        stmt.order_by(DBOrder.created_at.desc(), DBOrder.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()

    return OrderPage(
        items=[Order.model_validate(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


@router.get("/{order_id}", response_model=OrderDetail)
async def get_order(order_id: int, db: Session = Depends(get_db), actor_id: str = Depends(require_actor)):
    """Get a specific order with the actions its status still allows"""
    order = db.get(DBOrder, order_id)
    if not order:
        raise http_error(OrderNotFound(order_id))
    return OrderDetail(
        **Order.model_validate(order).model_dump(),
        allowed_actions=[action.value for action in allowed_actions(order.status)],
    )


@router.post("/{order_id}/approve", response_model=Order)
async def approve_order(order_id: int, db: Session = Depends(get_db), actor_id: str = Depends(require_actor)):
    service = OrderLifecycleService(db)
    return unwrap_or_raise(await service.approve_order(order_id, actor_id))


@router.post("/{order_id}/reject", response_model=Order)
async def reject_order(
    order_id: int,
    body: Optional[RejectOrder] = None,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    service = OrderLifecycleService(db)
    reason = body.reason if body else None
    return unwrap_or_raise(await service.reject_order(order_id, actor_id, reason))


@router.post("/{order_id}/complete", response_model=Order)
async def complete_order(order_id: int, db: Session = Depends(get_db), actor_id: str = Depends(require_actor)):
    service = OrderLifecycleService(db)
    return unwrap_or_raise(await service.complete_order(order_id, actor_id))


@router.post("/{order_id}/cancel", response_model=Order)
async def cancel_order(order_id: int, db: Session = Depends(get_db), actor_id: str = Depends(require_actor)):
    service = OrderLifecycleService(db)
    return unwrap_or_raise(await service.cancel_order(order_id, actor_id))


@router.patch("/{order_id}", response_model=Order)
async def update_order_status(
    order_id: int,
    body: OrderActionRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """Admin back-office entry point: {"action": "approve" | "reject" | "complete" | "cancel"}"""
    service = OrderLifecycleService(db)
    return unwrap_or_raise(await service.apply_action(order_id, body.action, actor_id, body.reason))
