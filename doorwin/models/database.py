from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import relationship

from doorwin.core.config import settings
from doorwin.core.database import Base
from doorwin.core.errors import LedgerImmutableError


class Category(Base):
    """Catalog category (doors, windows, sliding systems, ...)"""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    name_fr = Column(String, nullable=False)
    name_ar = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    products = relationship("Product", back_populates="category")


class Product(Base):
    """Catalog product; stock_quantity is the cached balance of its stock history"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    name = Column(String, nullable=False)
    name_fr = Column(String, nullable=False)
    name_ar = Column(String, nullable=False)
    description = Column(Text)
    description_fr = Column(Text)
    description_ar = Column(Text)
    material = Column(String)
    price = Column(Float, nullable=True)  # NULL means "contact us for a quote"
    stock_quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(
        Integer, nullable=False, default=lambda: settings.DEFAULT_LOW_STOCK_THRESHOLD
    )
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)  # For optimistic locking
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category", back_populates="products")
    order_items = relationship("OrderItem", back_populates="product")
    stock_history = relationship(
        "StockHistory", back_populates="product", order_by="StockHistory.id"
    )

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.low_stock_threshold


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String)
    company = Column(String)
    address = Column(String)
    city = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    orders = relationship("Order", back_populates="customer")


class Order(Base):
    """
    Customer order. Customer fields are copied at order time so later
    edits to the customer record don't rewrite order history.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    customer_first_name = Column(String, nullable=False)
    customer_last_name = Column(String, nullable=False)
    customer_email = Column(String, index=True, nullable=False)
    customer_phone = Column(String)
    customer_company = Column(String)
    customer_address = Column(String)
    customer_city = Column(String)
    customer_notes = Column(Text)
    status = Column(String, nullable=False, default="pending", index=True)
    total_price = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="orders")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )


class OrderItem(Base):
    """Snapshot of a product line at order time"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price_at_order = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")

    @property
    def subtotal(self):
        if self.price_at_order is None:
            return None
        return round(self.price_at_order * self.quantity, 2)


class QuoteRequest(Base):
    """Request for a price, for a catalog product or a made-to-measure job"""
    __tablename__ = "quote_requests"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, index=True, nullable=False)
    phone = Column(String, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    dimensions = Column(String)
    quantity = Column(Integer, nullable=False, default=1)
    notes = Column(Text)
    is_custom_request = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=False, default="pending", index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")


class StockHistory(Base):
    """Append-only ledger of stock changes"""
    __tablename__ = "stock_history"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    change_type = Column(String, nullable=False)  # add, remove, adjust, order_approved, order_cancelled
    quantity_change = Column(Integer, nullable=False)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)
    created_by = Column(String, nullable=True)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="stock_history")


@event.listens_for(StockHistory, "before_update")
def _refuse_stock_history_update(mapper, connection, target):
    raise LedgerImmutableError(target.id)


@event.listens_for(StockHistory, "before_delete")
def _refuse_stock_history_delete(mapper, connection, target):
    raise LedgerImmutableError(target.id)
