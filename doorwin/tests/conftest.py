import os

# Keep the module-level engine off PostgreSQL while the test suite imports the app
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_doorwin.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from doorwin.core.database import Base, get_db, make_engine
from doorwin.models.database import Category, Product
from doorwin.models.schemas import OrderCreate, OrderItemCreate


@pytest.fixture
def test_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def category(test_db):
    category = Category(name="Doors", name_fr="Portes", name_ar="أبواب", slug="doors")
    test_db.add(category)
    test_db.commit()
    test_db.refresh(category)
    return category


@pytest.fixture
def door(test_db, category):
    """Priced product: 5 in stock, threshold 10"""
    product = Product(
        category_id=category.id,
        name="Aluminium Door",
        name_fr="Porte en aluminium",
        name_ar="باب ألمنيوم",
        price=450.0,
        stock_quantity=5,
        low_stock_threshold=10,
    )
    test_db.add(product)
    test_db.commit()
    test_db.refresh(product)
    return product


@pytest.fixture
def window(test_db):
    """Priced product with plenty of stock"""
    product = Product(
        name="PVC Window",
        name_fr="Fenêtre PVC",
        name_ar="نافذة بي في سي",
        price=120.5,
        stock_quantity=20,
    )
    test_db.add(product)
    test_db.commit()
    test_db.refresh(product)
    return product


@pytest.fixture
def custom_slider(test_db):
    """Quote-only product: no price"""
    product = Product(
        name="Custom Sliding System",
        name_fr="Système coulissant sur mesure",
        name_ar="نظام منزلق حسب الطلب",
        price=None,
        stock_quantity=3,
    )
    test_db.add(product)
    test_db.commit()
    test_db.refresh(product)
    return product


@pytest.fixture
def customer_info():
    return {
        "customer_first_name": "Karim",
        "customer_last_name": "Benali",
        "customer_email": "karim@example.com",
        "customer_phone": "+213 555 000 111",
        "customer_company": "Benali BTP",
        "customer_city": "Alger",
    }


@pytest.fixture
def make_order_data(customer_info):
    def _make(*lines, **overrides):
        data = {**customer_info, **overrides}
        return OrderCreate(
            **data,
            items=[OrderItemCreate(product_id=product_id, quantity=qty) for product_id, qty in lines],
        )
    return _make


@pytest.fixture
def client(session_factory):
    from main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    del app.dependency_overrides[get_db]
