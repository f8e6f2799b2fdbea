from fastapi import HTTPException

from doorwin.core.errors import DoorwinError
from doorwin.services.results import Result

STATUS_CODES = {
    "unauthorized": 401,
    "order_not_found": 404,
    "product_not_found": 404,
    "product_unavailable": 409,
    "insufficient_stock": 409,
    "invalid_transition": 409,
    "invalid_input": 400,
    "persistence_failure": 503,
}


def http_error(error: DoorwinError) -> HTTPException:
    return HTTPException(status_code=STATUS_CODES.get(error.code, 500), detail=error.to_dict())


def unwrap_or_raise(result: Result):
    """Return the command's value or raise the matching HTTPException"""
    if not result.success:
        raise http_error(result.error)
    return result.value
