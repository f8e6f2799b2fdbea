from typing import Optional

from fastapi import HTTPException, Request

from doorwin.core.config import settings


def get_actor_id(request: Request) -> Optional[str]:
    """Read the admin identity forwarded by the authentication layer, if any"""
    actor_id = request.headers.get(settings.ACTOR_HEADER)
    if actor_id is None or not actor_id.strip():
        return None
    return actor_id.strip()


def require_actor(request: Request) -> str:
    """Dependency for admin-only routes"""
    actor_id = get_actor_id(request)
    if actor_id is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Unauthorized"},
        )
    return actor_id
