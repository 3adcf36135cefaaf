"""
Reference data consumed by the ledger core as read-only foreign key targets.
CRUD for these lives outside the core; only the fields the engines read are modelled.
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class CashRegisterType(str, enum.Enum):
    cash = "cash"
    bank = "bank"
    online = "online"


class Currency(Base):
    __tablename__ = "currencies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(3), unique=True, nullable=False)  # ISO 4217, e.g. USD
    name = Column(String(100), nullable=False)
    symbol = Column(String(8), nullable=True)
    # Stored for reporting only; balances never convert between currencies.
    rate = Column(Numeric(15, 6), default=1)
    is_default = Column(Boolean, default=False)

    def __repr__(self):
        return f"<Currency(code='{self.code}')>"


class CashRegister(Base):
    """A till, bank account or online wallet bound to exactly one currency."""

    __tablename__ = "cash_registers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    type = Column(Enum(CashRegisterType), nullable=False, default=CashRegisterType.cash)
    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False)
    is_active = Column(Boolean, default=True)

    currency = relationship("Currency")

    def __repr__(self):
        return f"<CashRegister(code='{self.code}', currency_id={self.currency_id})>"


class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    is_active = Column(Boolean, default=True)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    sku = Column(String(50), unique=True, nullable=True)
    price = Column(Numeric(15, 2), default=0)
    is_active = Column(Boolean, default=True)


class Counterparty(Base):
    """Customer or supplier."""

    __tablename__ = "counterparties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(30), nullable=True)
    is_active = Column(Boolean, default=True)


class Partner(Base):
    """Business partner entitled to dividends."""

    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    share_percent = Column(Numeric(5, 2), default=0)
    is_active = Column(Boolean, default=True)


class User(Base):
    """Employee / system user; salary balances and document authorship point here."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"


class Service(Base):
    """Billable service that can appear as a line on a transaction."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    default_price = Column(Numeric(15, 2), default=0)
    is_active = Column(Boolean, default=True)
