import asyncio
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional, Union
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from doorwin.core.config import settings
from doorwin.core.database import transaction
from doorwin.core.errors import (
    ConcurrencyConflict,
    DoorwinError,
    InsufficientStock,
    InvalidInput,
    InvalidTransition,
    OrderNotFound,
    PersistenceFailure,
    ProductNotFound,
    ProductUnavailable,
    Unauthorized,
)
from doorwin.models.database import Category, Customer, Order, OrderItem, Product
from doorwin.models.schemas import OrderCreate, ProductCreate
from doorwin.services import order_state_machine
from doorwin.services.inventory_ledger import ChangeType, InventoryLedger, StockChange
from doorwin.services.order_state_machine import OrderAction, OrderStatus, StockEffect, Transition
from doorwin.services.results import Result

logger = logging.getLogger(__name__)


class OrderLifecycleService:
    """
    The one place where order status and product stock change together.

    Each public command runs inside a single transaction on ``db``:
    validate, write status and ledger rows, commit. Any failure rolls the
    whole unit back. Lost optimistic-locking races are retried; every
    other failure comes back as a failed Result instead of an exception.
    """

    def __init__(self, db: Session, max_retries: Optional[int] = None):
        self.db = db
        self.ledger = InventoryLedger(db)
        self.max_retries = max_retries or settings.ORDER_MAX_RETRIES

    # Public commands

    async def create_order(self, order_data: OrderCreate) -> Result[Order]:
        """
        Validate stock for every line and store a pending order.

        Stock is checked but NOT reserved: two orders may both pass this
        check against the same units; only approval takes stock.
        """
        return await self._run("create order", self._create_order, order_data)

    async def approve_order(self, order_id: int, actor_id: Optional[str]) -> Result[Order]:
        return await self._run_admin(
            "approve order", actor_id, self._transition_order, order_id, OrderAction.APPROVE, actor_id
        )

    async def reject_order(
        self, order_id: int, actor_id: Optional[str], reason: Optional[str] = None
    ) -> Result[Order]:
        return await self._run_admin(
            "reject order", actor_id, self._transition_order, order_id, OrderAction.REJECT, actor_id, reason
        )

    async def complete_order(self, order_id: int, actor_id: Optional[str]) -> Result[Order]:
        return await self._run_admin(
            "complete order", actor_id, self._transition_order, order_id, OrderAction.COMPLETE, actor_id
        )

    async def cancel_order(self, order_id: int, actor_id: Optional[str]) -> Result[Order]:
        return await self._run_admin(
            "cancel order", actor_id, self._transition_order, order_id, OrderAction.CANCEL, actor_id
        )

    async def apply_action(
        self,
        order_id: int,
        action: Union[OrderAction, str],
        actor_id: Optional[str],
        reason: Optional[str] = None,
    ) -> Result[Order]:
        """Dispatch an action name (approve, reject, complete, cancel) to its command"""
        try:
            action = OrderAction(action)
        except ValueError:
            return Result.fail(InvalidInput(f"Invalid action: {action}", action=str(action)))

        if action == OrderAction.APPROVE:
            return await self.approve_order(order_id, actor_id)
        if action == OrderAction.REJECT:
            return await self.reject_order(order_id, actor_id, reason)
        if action == OrderAction.COMPLETE:
            return await self.complete_order(order_id, actor_id)
        return await self.cancel_order(order_id, actor_id)

    async def adjust_stock(
        self, product_id: int, new_quantity: int, notes: Optional[str], actor_id: Optional[str]
    ) -> Result[StockChange]:
        """Set a product's stock to an absolute count, recorded as an ``adjust`` entry"""
        return await self._run_admin(
            "adjust stock", actor_id, self._adjust_stock, product_id, new_quantity, notes, actor_id
        )

    async def record_stock_movement(
        self,
        product_id: int,
        change_type: Union[ChangeType, str],
        quantity: int,
        notes: Optional[str],
        actor_id: Optional[str],
    ) -> Result[StockChange]:
        """Receive (``add``) or write off (``remove``) units outside the order flow"""
        return await self._run_admin(
            "record stock movement", actor_id, self._record_stock_movement,
            product_id, change_type, quantity, notes, actor_id
        )

    async def create_product(self, product_data: ProductCreate, actor_id: Optional[str]) -> Result[Product]:
        return await self._run_admin("create product", actor_id, self._create_product, product_data, actor_id)

    # Transaction runner

    async def _run_admin(self, command: str, actor_id: Optional[str], operation: Callable, *args) -> Result:
        if actor_id is None or not str(actor_id).strip():
            logger.warning(f"Refused to {command}: no actor identity")
            return Result.fail(Unauthorized())
        return await self._run(command, operation, *args)

    async def _run(self, command: str, operation: Callable, *args) -> Result:
        for attempt in range(self.max_retries):
            try:
                with transaction(self.db):
                    value = operation(*args)
                logger.info(f"Completed {command} (attempt {attempt + 1})")
                return Result.ok(value)
            except ConcurrencyConflict as e:
                if attempt == self.max_retries - 1:
                    logger.error(f"Unable to {command} after {self.max_retries} attempts: {e.message}")
                    return Result.fail(PersistenceFailure(
                        f"Unable to {command} after {self.max_retries} attempts: {e.message}",
                        **e.details,
                    ))
                logger.warning(f"Concurrency conflict on attempt {attempt + 1} to {command}, retrying...")
                await asyncio.sleep(0.01 * (attempt + 1))
            except DoorwinError as e:
                logger.info(f"Refused to {command}: {e.message}")
                return Result.fail(e)
            except SQLAlchemyError as e:
                logger.error(f"Database error during {command}: {str(e)}")
                return Result.fail(PersistenceFailure(f"Database error during {command}"))
            except Exception as e:
                logger.exception(f"Unexpected error during {command}: {str(e)}")
                return Result.fail(PersistenceFailure(f"Unexpected error during {command}"))

        return Result.fail(PersistenceFailure(f"Failed to {command}"))

    # Commands, executed inside the transaction

    def _create_order(self, order_data: OrderCreate) -> Order:
        requested = self._sum_quantities((item.product_id, item.quantity) for item in order_data.items)
        products = self._load_products(requested.keys())

        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                raise ProductNotFound(product_id)
            if not product.is_active:
                raise ProductUnavailable(product.id, self._display_name(product))
            if product.stock_quantity < quantity:
                raise InsufficientStock(
                    product_id=product.id,
                    available=product.stock_quantity,
                    requested=quantity,
                    product_name=self._display_name(product),
                )

        total_price = 0.0
        order_items = []
        for item_request in order_data.items:
            product = products[item_request.product_id]
            # A product without a price is a quote request; it adds nothing to the total
            if product.price is not None:
                total_price += product.price * item_request.quantity
            order_items.append(OrderItem(
                product_id=product.id,
                product_name=self._display_name(product),
                quantity=item_request.quantity,
                price_at_order=product.price,
            ))

        customer = self._find_or_create_customer(order_data)

        order = Order(
            order_number=f"ORD-{uuid.uuid4().hex[:8].upper()}",
            customer_id=customer.id,
            customer_first_name=order_data.customer_first_name,
            customer_last_name=order_data.customer_last_name,
            customer_email=order_data.customer_email,
            customer_phone=order_data.customer_phone,
            customer_company=order_data.customer_company,
            customer_address=order_data.customer_address,
            customer_city=order_data.customer_city,
            customer_notes=order_data.customer_notes,
            status=OrderStatus.PENDING.value,
            total_price=round(total_price, 2) if total_price != 0 else None,
            items=order_items,
        )
        self.db.add(order)
        self.db.flush()

        logger.info(
            f"Order {order.order_number} created for {order.customer_email} "
            f"with {len(order_items)} item(s), total={order.total_price}"
        )
        return order

    def _transition_order(
        self,
        order_id: int,
        action: OrderAction,
        actor_id: Optional[str],
        reason: Optional[str] = None,
    ) -> Order:
        order = self._load_order_for_update(order_id)
        step = order_state_machine.transition(order.status, action)

        if step.stock_effect != StockEffect.NONE:
            products = self.ledger.lock_products(item.product_id for item in order.items)
            if step.stock_effect == StockEffect.DECREMENT:
                self._check_stock(order, products)

        self._claim_status(order, step, reason)

        if step.stock_effect == StockEffect.DECREMENT:
            for item in order.items:
                self.ledger.apply_delta(
                    item.product_id,
                    -item.quantity,
                    ChangeType.ORDER_APPROVED,
                    order_id=order.id,
                    notes=f"Stock reduced for approved order {order.order_number}",
                    actor_id=actor_id,
                )
        elif step.stock_effect == StockEffect.RESTORE:
            for item in order.items:
                self.ledger.apply_delta(
                    item.product_id,
                    item.quantity,
                    ChangeType.ORDER_CANCELLED,
                    order_id=order.id,
                    notes=f"Stock restored for cancelled order {order.order_number}",
                    actor_id=actor_id,
                )

        logger.info(
            f"Order {order.order_number}: {step.from_status.value} -> {step.to_status.value} "
            f"by {actor_id}"
        )
        return order

    def _adjust_stock(
        self, product_id: int, new_quantity: int, notes: Optional[str], actor_id: Optional[str]
    ) -> StockChange:
        if new_quantity < 0:
            raise InvalidInput(
                "Invalid quantity. Must be a non-negative number.",
                product_id=product_id,
                quantity=new_quantity,
            )
        product = self.ledger.lock_products([product_id]).get(product_id)
        if product is None:
            raise ProductNotFound(product_id)

        return self.ledger.apply_delta(
            product.id,
            new_quantity - product.stock_quantity,
            ChangeType.ADJUST,
            notes=notes or "Manual stock adjustment",
            actor_id=actor_id,
        )

    def _record_stock_movement(
        self,
        product_id: int,
        change_type: Union[ChangeType, str],
        quantity: int,
        notes: Optional[str],
        actor_id: Optional[str],
    ) -> StockChange:
        if change_type not in (ChangeType.ADD, ChangeType.REMOVE):
            raise InvalidInput(f"Unsupported stock movement: {change_type}", change_type=str(change_type))
        if quantity <= 0:
            raise InvalidInput("Quantity must be positive", product_id=product_id, quantity=quantity)

        change_type = ChangeType(change_type)
        product = self.ledger.lock_products([product_id]).get(product_id)
        if product is None:
            raise ProductNotFound(product_id)

        delta = quantity if change_type == ChangeType.ADD else -quantity
        return self.ledger.apply_delta(product.id, delta, change_type, notes=notes, actor_id=actor_id)

    def _create_product(self, product_data: ProductCreate, actor_id: Optional[str]) -> Product:
        if product_data.category_id is not None and self.db.get(Category, product_data.category_id) is None:
            raise InvalidInput(
                f"Category {product_data.category_id} not found", category_id=product_data.category_id
            )

        product = Product(**product_data.model_dump(exclude={"stock_quantity"}), stock_quantity=0)
        self.db.add(product)
        self.db.flush()

        # Opening balance goes through the ledger like any other receipt
        if product_data.stock_quantity > 0:
            self.ledger.apply_delta(
                product.id,
                product_data.stock_quantity,
                ChangeType.ADD,
                notes="Initial stock",
                actor_id=actor_id,
            )
        return product

    # Helpers

    def _load_order_for_update(self, order_id: int) -> Order:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = self.db.scalars(stmt).first()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def _load_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        stmt = (
            select(Product)
            .where(Product.id.in_(list(product_ids)))
            .execution_options(populate_existing=True)
        )
        return {product.id: product for product in self.db.scalars(stmt)}

    def _check_stock(self, order: Order, products: Dict[int, Product]) -> None:
        """Re-check every line against current stock before anything is written"""
        requested = self._sum_quantities((item.product_id, item.quantity) for item in order.items)
        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                raise ProductNotFound(product_id)
            if product.stock_quantity < quantity:
                raise InsufficientStock(
                    product_id=product.id,
                    available=product.stock_quantity,
                    requested=quantity,
                    product_name=self._display_name(product),
                )

    def _claim_status(self, order: Order, step: Transition, reason: Optional[str]) -> None:
        """
        Flip the status only if it is still the one we validated against.
        Zero rows updated means a concurrent command got there first.
        """
        values = {"status": step.to_status.value, "updated_at": datetime.utcnow()}
        if reason:
            values["customer_notes"] = f"Rejection reason: {reason}"

        update_count = self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == step.from_status.value)
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        ).rowcount

        if update_count == 0:
            current = self.db.scalar(select(Order.status).where(Order.id == order.id))
            raise InvalidTransition(current, step.to_status.value)

    def _find_or_create_customer(self, order_data: OrderCreate) -> Customer:
        customer = self.db.scalars(
            select(Customer).where(Customer.email == order_data.customer_email)
        ).first()
        if customer is not None:
            return customer

        customer = Customer(
            first_name=order_data.customer_first_name,
            last_name=order_data.customer_last_name,
            email=order_data.customer_email,
            phone=order_data.customer_phone,
            company=order_data.customer_company,
            address=order_data.customer_address,
            city=order_data.customer_city,
        )
        self.db.add(customer)
        self.db.flush()
        return customer

    @staticmethod
    def _sum_quantities(lines: Iterable) -> "OrderedDict[int, int]":
        totals: "OrderedDict[int, int]" = OrderedDict()
        for product_id, quantity in lines:
            totals[product_id] = totals.get(product_id, 0) + quantity
        return totals

    @staticmethod
    def _display_name(product: Product) -> str:
        return product.name_fr or product.name
