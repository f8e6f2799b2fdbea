from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from doorwin.core.errors import ConcurrencyConflict, InsufficientStock, ProductNotFound
from doorwin.models.database import Product, StockHistory

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    ADJUST = "adjust"
    ORDER_APPROVED = "order_approved"
    ORDER_CANCELLED = "order_cancelled"


@dataclass(frozen=True)
class StockChange:
    product_id: int
    previous_quantity: int
    new_quantity: int


class InventoryLedger:
    """
    Sole writer of product stock.

    Every change is a conditional UPDATE on the product's version plus an
    appended StockHistory row. Nothing is committed here; the caller owns
    the transaction, so ledger writes land or vanish together with
    whatever else the caller changed.
    """

    def __init__(self, db: Session):
        self.db = db

    def lock_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """
        Load products with fresh state, in id order, locking the rows on
        backends that support SELECT ... FOR UPDATE.
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        stmt = (
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {product.id: product for product in self.db.scalars(stmt)}

    def apply_delta(
        self,
        product_id: int,
        delta: int,
        change_type: ChangeType,
        order_id: Optional[int] = None,
        notes: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> StockChange:
        product = self.db.get(Product, product_id)
        if product is None:
            raise ProductNotFound(product_id)

        previous_quantity = product.stock_quantity
        new_quantity = previous_quantity + delta
        if new_quantity < 0:
            raise InsufficientStock(
                product_id=product.id,
                available=previous_quantity,
                requested=-delta,
                product_name=product.name_fr or product.name,
            )

        # Optimistic locking: only write if nobody bumped the version since we read it
        update_count = self.db.execute(
            update(Product)
            .where(Product.id == product.id, Product.version == product.version)
            .values(
                stock_quantity=new_quantity,
                version=product.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session="evaluate")
        ).rowcount

        if update_count == 0:
            raise ConcurrencyConflict(
                f"Product {product.name} was modified by another transaction",
                product_id=product.id,
            )

        self.db.add(StockHistory(
            product_id=product.id,
            change_type=ChangeType(change_type).value,
            quantity_change=delta,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            order_id=order_id,
            created_by=actor_id,
            notes=notes,
        ))
        self.db.flush()

        logger.info(
            f"Stock {ChangeType(change_type).value} for product {product.id}: "
            f"{previous_quantity} -> {new_quantity} ({delta:+d})"
        )
        return StockChange(
            product_id=product.id,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
        )

    def history(self, product_id: int, limit: int = 50) -> List[StockHistory]:
        """Ledger entries for a product, newest first"""
        stmt = (
            select(StockHistory)
            .where(StockHistory.product_id == product_id)
            .order_by(StockHistory.id.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))
