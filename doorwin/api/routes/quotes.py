import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from doorwin.api.errors import http_error
from doorwin.core.database import get_db
from doorwin.core.errors import ProductNotFound
from doorwin.core.security import require_actor
from doorwin.models.database import Product as DBProduct
from doorwin.models.database import QuoteRequest as DBQuoteRequest
from doorwin.models.schemas import QuoteRequest, QuoteRequestCreate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=QuoteRequest, status_code=201)
async def create_quote_request(quote_data: QuoteRequestCreate, db: Session = Depends(get_db)):
    """Submit a quote request; no stock is checked or taken"""
    if quote_data.product_id is not None and db.get(DBProduct, quote_data.product_id) is None:
        raise http_error(ProductNotFound(quote_data.product_id))

    quote = DBQuoteRequest(**quote_data.model_dump(), status="pending")
    db.add(quote)
    db.commit()
    db.refresh(quote)

    logger.info(f"Quote request {quote.id} received from {quote.email}")
    return quote


@router.get("/", response_model=List[QuoteRequest])
async def get_quote_requests(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_actor),
):
    """List quote requests, newest first"""
    query = db.query(DBQuoteRequest)
    if status:
        query = query.filter(DBQuoteRequest.status == status)
    return query.order_by(DBQuoteRequest.created_at.desc(), DBQuoteRequest.id.desc()).all()
