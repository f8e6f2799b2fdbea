"""
Order lifecycle state machine.

Pure transition table: given the current status and a requested action,
returns the next status and the stock effect the transition carries.
No database access happens here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple, Union

from doorwin.core.errors import InvalidTransition


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE = "complete"
    CANCEL = "cancel"


class StockEffect(str, Enum):
    NONE = "none"
    DECREMENT = "decrement"
    RESTORE = "restore"


@dataclass(frozen=True)
class Transition:
    from_status: OrderStatus
    action: OrderAction
    to_status: OrderStatus
    stock_effect: StockEffect


# Status each action drives towards; used to name the target of an illegal request
ACTION_TARGETS: Dict[OrderAction, OrderStatus] = {
    OrderAction.APPROVE: OrderStatus.APPROVED,
    OrderAction.REJECT: OrderStatus.REJECTED,
    OrderAction.COMPLETE: OrderStatus.COMPLETED,
    OrderAction.CANCEL: OrderStatus.CANCELLED,
}

TRANSITIONS: Dict[Tuple[OrderStatus, OrderAction], Transition] = {
    (t.from_status, t.action): t
    for t in (
        Transition(OrderStatus.PENDING, OrderAction.APPROVE, OrderStatus.APPROVED, StockEffect.DECREMENT),
        Transition(OrderStatus.PENDING, OrderAction.REJECT, OrderStatus.REJECTED, StockEffect.NONE),
        Transition(OrderStatus.PENDING, OrderAction.CANCEL, OrderStatus.CANCELLED, StockEffect.NONE),
        Transition(OrderStatus.APPROVED, OrderAction.COMPLETE, OrderStatus.COMPLETED, StockEffect.NONE),
        Transition(OrderStatus.APPROVED, OrderAction.CANCEL, OrderStatus.CANCELLED, StockEffect.RESTORE),
    )
}


def transition(current: Union[OrderStatus, str], action: Union[OrderAction, str]) -> Transition:
    """Resolve ``action`` against ``current`` or raise InvalidTransition."""
    current = OrderStatus(current)
    action = OrderAction(action)
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransition(current.value, ACTION_TARGETS[action].value) from None


def allowed_actions(current: Union[OrderStatus, str]) -> List[OrderAction]:
    current = OrderStatus(current)
    return [action for (status, action) in TRANSITIONS if status == current]


def is_terminal(current: Union[OrderStatus, str]) -> bool:
    return not allowed_actions(current)
