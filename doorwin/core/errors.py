"""Error taxonomy for order lifecycle and inventory operations."""

from typing import Any, Dict, Optional


class DoorwinError(Exception):
    """Base exception for all doorwin errors."""

    code = "error"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details: Dict[str, Any] = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class Unauthorized(DoorwinError):
    """Raised when an admin-gated command arrives without an actor identity."""

    code = "unauthorized"

    def __init__(self):
        super().__init__("Unauthorized")


class OrderNotFound(DoorwinError):
    code = "order_not_found"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class ProductNotFound(DoorwinError):
    code = "product_not_found"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class ProductUnavailable(DoorwinError):
    """Raised when an order references a soft-deleted product."""

    code = "product_unavailable"

    def __init__(self, product_id: int, product_name: str):
        self.product_id = product_id
        self.product_name = product_name
        super().__init__(
            f"Product is not available: {product_name}",
            product_id=product_id,
            product_name=product_name,
        )


class InsufficientStock(DoorwinError):
    """Raised when a stock check or stock decrement would go below zero."""

    code = "insufficient_stock"

    def __init__(self, product_id: int, available: int, requested: int, product_name: Optional[str] = None):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        self.product_name = product_name
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}. Available: {available}, Requested: {requested}",
            product_id=product_id,
            product_name=product_name,
            available=available,
            requested=requested,
        )


class InvalidTransition(DoorwinError):
    """Raised when an order status change is not in the transition table."""

    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move order from {from_status} to {to_status}",
            **{"from": from_status, "to": to_status},
        )


class InvalidInput(DoorwinError):
    code = "invalid_input"


class PersistenceFailure(DoorwinError):
    """Raised when the backing store fails or a transaction cannot be committed."""

    code = "persistence_failure"


class ConcurrencyConflict(DoorwinError):
    """Raised when a row was modified by another transaction; the command is retried"""

    code = "concurrency_conflict"


class LedgerImmutableError(DoorwinError):
    """Raised when something tries to rewrite or delete a stock history row."""

    code = "ledger_immutable"

    def __init__(self, entry_id: Optional[int]):
        super().__init__(f"Stock history entry {entry_id} is append-only", entry_id=entry_id)
