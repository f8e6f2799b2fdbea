from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime

from doorwin.core.config import settings

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_PATTERN = r"^[+]?[\d\s-]{8,20}$"

OrderStatusName = Literal["pending", "approved", "rejected", "completed", "cancelled"]
OrderActionName = Literal["approve", "reject", "complete", "cancel"]


# Products

class ProductBase(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    name_fr: str = Field(min_length=3, max_length=100)
    name_ar: str = Field(min_length=3, max_length=100)
    description: Optional[str] = None
    description_fr: Optional[str] = None
    description_ar: Optional[str] = None
    material: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0, le=10_000_000)
    low_stock_threshold: int = Field(default=settings.DEFAULT_LOW_STOCK_THRESHOLD, ge=0)
    category_id: Optional[int] = None
    is_featured: bool = False


class ProductCreate(ProductBase):
    stock_quantity: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    """Catalog fields only; stock moves through the stock endpoints"""
    name: Optional[str] = Field(default=None, min_length=3, max_length=100)
    name_fr: Optional[str] = Field(default=None, min_length=3, max_length=100)
    name_ar: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = None
    description_fr: Optional[str] = None
    description_ar: Optional[str] = None
    material: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0, le=10_000_000)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    category_id: Optional[int] = None
    is_featured: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("name", "name_fr", "name_ar", "low_stock_threshold", "is_featured", "is_active")
    @classmethod
    def reject_null(cls, value):
        # Omit the field to leave it unchanged; these columns are NOT NULL
        if value is None:
            raise ValueError("may not be null")
        return value


class Product(ProductBase):
    id: int
    stock_quantity: int
    is_active: bool
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# Stock

class StockAdjustment(BaseModel):
    quantity: int = Field(ge=0)
    notes: Optional[str] = None


class StockMovementCreate(BaseModel):
    change_type: Literal["add", "remove"]
    quantity: int = Field(gt=0)
    notes: Optional[str] = None


class StockChange(BaseModel):
    product_id: int
    previous_quantity: int
    new_quantity: int

    class Config:
        from_attributes = True


class StockHistoryEntry(BaseModel):
    id: int
    product_id: int
    change_type: str
    quantity_change: int
    previous_quantity: int
    new_quantity: int
    order_id: Optional[int] = None
    created_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Orders

class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(ge=settings.MIN_ORDER_QUANTITY, le=settings.MAX_ORDER_QUANTITY)


class CustomerInfo(BaseModel):
    customer_first_name: str = Field(min_length=2, max_length=50)
    customer_last_name: str = Field(min_length=2, max_length=50)
    customer_email: str = Field(pattern=EMAIL_PATTERN)
    customer_phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    customer_company: Optional[str] = None
    customer_address: Optional[str] = None
    customer_city: Optional[str] = None
    customer_notes: Optional[str] = None

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class OrderCreate(CustomerInfo):
    items: List[OrderItemCreate] = Field(min_length=1, max_length=settings.MAX_ORDER_ITEMS)


class OrderItem(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    price_at_order: Optional[float] = None
    subtotal: Optional[float] = None

    class Config:
        from_attributes = True


class Order(BaseModel):
    id: int
    order_number: str
    customer_id: Optional[int] = None
    customer_first_name: str
    customer_last_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    customer_address: Optional[str] = None
    customer_city: Optional[str] = None
    customer_notes: Optional[str] = None
    status: OrderStatusName
    total_price: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItem] = []

    class Config:
        from_attributes = True


class OrderDetail(Order):
    allowed_actions: List[OrderActionName] = []


class OrderPage(BaseModel):
    items: List[Order]
    total: int
    page: int
    page_size: int
    total_pages: int


# Customers

class Customer(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CustomerWithStats(Customer):
    """Customer plus order statistics; total_spent counts approved and completed orders"""
    order_count: int = 0
    total_spent: float = 0.0
    last_order_date: Optional[datetime] = None


# Quotes

class QuoteRequestCreate(BaseModel):
    full_name: str = Field(min_length=2, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(pattern=PHONE_PATTERN)
    product_id: Optional[int] = None
    dimensions: Optional[str] = Field(default=None, max_length=200)
    quantity: int = Field(default=1, ge=settings.MIN_ORDER_QUANTITY, le=settings.MAX_ORDER_QUANTITY)
    notes: Optional[str] = Field(default=None, max_length=2000)
    is_custom_request: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class QuoteRequest(QuoteRequestCreate):
    id: int
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class RejectOrder(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class OrderActionRequest(BaseModel):
    action: OrderActionName
    reason: Optional[str] = Field(default=None, max_length=500)
