"""
Materialized balance ledgers. One row per key, created lazily on first touch and
mutated only through app.services.ledger_service.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class CashBalance(Base):
    __tablename__ = "cash_balances"
    __table_args__ = (
        UniqueConstraint("cash_register_id", "currency_id", name="uq_cash_balance_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    cash_register_id = Column(Integer, ForeignKey("cash_registers.id", ondelete="CASCADE"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="CASCADE"), nullable=False)
    balance = Column(Numeric(15, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    cash_register = relationship("CashRegister")
    currency = relationship("Currency")


class CounterpartyBalance(Base):
    """Positive balance: the counterparty owes us. Negative: we owe them."""

    __tablename__ = "counterparty_balances"
    __table_args__ = (
        UniqueConstraint("counterparty_id", "currency_id", name="uq_counterparty_balance_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    counterparty_id = Column(Integer, ForeignKey("counterparties.id", ondelete="CASCADE"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="CASCADE"), nullable=False)
    balance = Column(Numeric(15, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    counterparty = relationship("Counterparty")
    currency = relationship("Currency")


class PartnerDividendBalance(Base):
    """Dividends accrued to and paid out to a partner. balance is always accrued - paid."""

    __tablename__ = "partner_dividend_balances"
    __table_args__ = (
        UniqueConstraint("partner_id", "currency_id", name="uq_partner_dividend_balance_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    partner_id = Column(Integer, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="CASCADE"), nullable=False)
    total_accrued = Column(Numeric(15, 2), nullable=False, default=0)
    total_paid = Column(Numeric(15, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    partner = relationship("Partner")
    currency = relationship("Currency")

    @hybrid_property
    def balance(self):
        return self.total_accrued - self.total_paid


class SalaryBalance(Base):
    """Salary accrued to and paid out to an employee. balance is always accrued - paid."""

    __tablename__ = "salary_balances"
    __table_args__ = (
        UniqueConstraint("user_id", "currency_id", name="uq_salary_balance_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="CASCADE"), nullable=False)
    accrued = Column(Numeric(15, 2), nullable=False, default=0)
    paid = Column(Numeric(15, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    currency = relationship("Currency")

    @hybrid_property
    def balance(self):
        return self.accrued - self.paid


class StockBalance(Base):
    """
    Quantity on hand of one product in one warehouse, valued at a weighted average cost.
    The row is removed when its quantity returns to exactly zero.
    """

    __tablename__ = "stock_balances"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "product_id", name="uq_stock_balance_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Numeric(15, 3), nullable=False, default=0)
    avg_cost = Column(Numeric(15, 4), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    warehouse = relationship("Warehouse")
    product = relationship("Product")

    @property
    def total_value(self):
        return self.quantity * self.avg_cost
