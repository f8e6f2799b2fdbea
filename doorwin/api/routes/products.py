from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from doorwin.api.errors import http_error, unwrap_or_raise
from doorwin.core.database import get_db
from doorwin.core.errors import InvalidInput, ProductNotFound
from doorwin.core.security import require_actor
from doorwin.models.database import Category as DBCategory
from doorwin.models.database import Product as DBProduct
from doorwin.models.schemas import (
    Product,
    ProductCreate,
    ProductUpdate,
    StockAdjustment,
    StockChange,
    StockHistoryEntry,
    StockMovementCreate,
)
from doorwin.services.inventory_ledger import InventoryLedger
from doorwin.services.order_lifecycle import OrderLifecycleService

router = APIRouter()


def _get_product_or_404(db: Session, product_id: int) -> DBProduct:
    product = db.get(DBProduct, product_id)
    if not product:
        raise http_error(ProductNotFound(product_id))
    return product


@router.post("/", response_model=Product, status_code=201)
async def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """Create a product; its opening stock is booked as an 'add' ledger entry"""
    service = OrderLifecycleService(db)
    return unwrap_or_raise(await service.create_product(product_data, actor_id))


@router.get("/", response_model=List[Product])
async def get_products(
    category: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
):
    """Get catalog products, optionally for one category slug"""
    query = db.query(DBProduct)
    if not include_inactive:
        query = query.filter(DBProduct.is_active.is_(True))
    if category:
        query = query.join(DBCategory).filter(DBCategory.slug == category)
    return query.order_by(DBProduct.id).all()


@router.get("/low-stock", response_model=List[Product])
async def get_low_stock_products(db: Session = Depends(get_db), actor_id: str = Depends(require_actor)):
    """Active products at or below their low stock threshold"""
    return (
        db.query(DBProduct)
        .filter(
            DBProduct.is_active.is_(True),
            DBProduct.stock_quantity <= DBProduct.low_stock_threshold,
        )
        .order_by(DBProduct.stock_quantity, DBProduct.id)
        .all()
    )


@router.get("/{product_id}", response_model=Product)
async def get_product(product_id: int, db: Session = Depends(get_db)):
    """Get a specific product"""
    return _get_product_or_404(db, product_id)


@router.patch("/{product_id}", response_model=Product)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """Update catalog fields; stock_quantity is not accepted here"""
    product = _get_product_or_404(db, product_id)
    updates = product_data.model_dump(exclude_unset=True)

    category_id = updates.get("category_id")
    if category_id is not None and db.get(DBCategory, category_id) is None:
        raise http_error(InvalidInput(f"Category {category_id} not found", category_id=category_id))

    for field, value in updates.items():
        setattr(product, field, value)

    db.commit()
    db.refresh(product)
    return product


@router.delete("/{product_id}", response_model=Product)
async def deactivate_product(product_id: int, db: Session = Depends(get_db), actor_id: str = Depends(require_actor)):
    """Soft delete: the product stays referenced by past orders and its ledger"""
    product = _get_product_or_404(db, product_id)
    product.is_active = False
    db.commit()
    db.refresh(product)
    return product


@router.patch("/{product_id}/stock", response_model=StockChange)
async def adjust_product_stock(
    product_id: int,
    adjustment: StockAdjustment,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """Manual stock count correction to an absolute quantity"""
    service = OrderLifecycleService(db)
    result = await service.adjust_stock(product_id, adjustment.quantity, adjustment.notes, actor_id)
    return unwrap_or_raise(result)


@router.post("/{product_id}/stock/movements", response_model=StockChange, status_code=201)
async def record_stock_movement(
    product_id: int,
    movement: StockMovementCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """Goods received (add) or written off (remove)"""
    service = OrderLifecycleService(db)
    result = await service.record_stock_movement(
        product_id, movement.change_type, movement.quantity, movement.notes, actor_id
    )
    return unwrap_or_raise(result)


@router.get("/{product_id}/stock/history", response_model=List[StockHistoryEntry])
async def get_stock_history(
    product_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """Ledger entries for a product, newest first"""
    _get_product_or_404(db, product_id)
    return InventoryLedger(db).history(product_id, limit=limit)
