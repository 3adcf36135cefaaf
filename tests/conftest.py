# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets a fresh in-memory SQLite database (StaticPool, so all
#   sessions share the one connection) with the full schema created
# - Reference rows are seeded per test and exposed through the `ids` fixture
# - SQLite ignores FOR UPDATE; locking is exercised only on PostgreSQL
# ---------------------------------------------------------------------

import os

# Settings are read at import time; point them at SQLite before anything imports app.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models import (
    CashRegister,
    CashRegisterType,
    Counterparty,
    Currency,
    Partner,
    Product,
    Recipe,
    RecipeIngredient,
    RecipeOutput,
    Service,
    User,
    Warehouse,
)
from app.models.transaction import TransactionType
from app.services.transaction_service import TransactionService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=True, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ids(db):
    """Seed one of every reference row the engines touch and return their ids."""
    usd = Currency(code="USD", name="US Dollar", symbol="$", is_default=True)
    eur = Currency(code="EUR", name="Euro", symbol="€")
    db.add_all([usd, eur])
    db.flush()

    till = CashRegister(name="Main till", code="TILL", type=CashRegisterType.cash, currency_id=usd.id)
    bank_eur = CashRegister(name="Bank EUR", code="BANK-EUR", type=CashRegisterType.bank, currency_id=eur.id)
    wh_a = Warehouse(name="Main", code="WH-A")
    wh_b = Warehouse(name="Workshop", code="WH-B")
    flour = Product(name="Flour", sku="FLOUR")
    sugar = Product(name="Sugar", sku="SUGAR")
    cake = Product(name="Cake", sku="CAKE")
    box = Product(name="Box", sku="BOX")
    customer = Counterparty(name="Acme Ltd")
    partner = Partner(name="Jordan Partner", share_percent=Decimal("50"))
    user = User(name="Sam Clerk", email="sam@example.com")
    delivery = Service(name="Delivery", default_price=Decimal("15.00"))
    db.add_all([till, bank_eur, wh_a, wh_b, flour, sugar, cake, box, customer, partner, user, delivery])
    db.flush()

    recipe = Recipe(name="Cake", code="R-CAKE")
    recipe.ingredients.append(RecipeIngredient(product_id=flour.id, quantity=Decimal("2")))
    recipe.ingredients.append(RecipeIngredient(product_id=sugar.id, quantity=Decimal("1")))
    recipe.outputs.append(RecipeOutput(product_id=cake.id, quantity=Decimal("1")))
    db.add(recipe)
    db.commit()

    return {
        "usd": usd.id,
        "eur": eur.id,
        "till": till.id,
        "bank_eur": bank_eur.id,
        "wh_a": wh_a.id,
        "wh_b": wh_b.id,
        "flour": flour.id,
        "sugar": sugar.id,
        "cake": cake.id,
        "box": box.id,
        "customer": customer.id,
        "partner": partner.id,
        "user": user.id,
        "delivery": delivery.id,
        "recipe": recipe.id,
    }


@pytest.fixture
def stock_in(db, ids):
    """Confirm a purchase of quantity @ price into warehouse; returns the transaction."""

    def _stock_in(product_id, quantity, price, warehouse_id=None):
        service = TransactionService(db)
        transaction = service.create({
            "type": TransactionType.purchase,
            "user_id": ids["user"],
            "items": [{
                "product_id": product_id,
                "warehouse_id": warehouse_id or ids["wh_a"],
                "quantity": quantity,
                "price": price,
            }],
        })
        return service.confirm(transaction)

    return _stock_in


@pytest.fixture
def client(session_factory, ids):
    from fastapi.testclient import TestClient

    from app.core.dependencies import get_db
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
