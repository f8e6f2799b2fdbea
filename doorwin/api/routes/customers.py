from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from doorwin.core.database import get_db
from doorwin.core.security import require_actor
from doorwin.models.database import Customer as DBCustomer
from doorwin.models.database import Order as DBOrder
from doorwin.models.schemas import Customer, CustomerWithStats

router = APIRouter()

# Orders that count towards what a customer has spent
SPENDING_STATUSES = ("approved", "completed")


@router.get("/", response_model=List[CustomerWithStats])
async def get_customers(
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """Customers with order count, amount spent and last order date, newest first"""
    spent = case(
        (DBOrder.status.in_(SPENDING_STATUSES), func.coalesce(DBOrder.total_price, 0)),
        else_=0,
    )
    stmt = (
        select(
            DBCustomer,
            func.count(DBOrder.id),
            func.coalesce(func.sum(spent), 0),
            func.max(DBOrder.created_at),
        )
        # Orders placed before the customer row existed are matched by email
        .outerjoin(DBOrder, or_(DBOrder.customer_id == DBCustomer.id, DBOrder.customer_email == DBCustomer.email))
        .group_by(DBCustomer.id)
        .order_by(DBCustomer.created_at.desc(), DBCustomer.id.desc())
    )
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(
            DBCustomer.first_name.ilike(pattern),
            DBCustomer.last_name.ilike(pattern),
            DBCustomer.email.ilike(pattern),
        ))

    return [
        CustomerWithStats(
            **Customer.model_validate(customer).model_dump(),
            order_count=order_count,
            total_spent=round(float(total_spent), 2),
            last_order_date=last_order_date,
        )
        for customer, order_count, total_spent, last_order_date in db.execute(stmt).all()
    ]
