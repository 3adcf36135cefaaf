"""
Transaction documents and their typed entry lines.
Every entry records one signed delta against exactly one balance ledger; the
deltas reach the ledgers only when the owning transaction is confirmed.
"""

import enum

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class TransactionType(str, enum.Enum):
    cash_in = "cash_in"
    cash_out = "cash_out"
    sale = "sale"
    sale_payment = "sale_payment"
    purchase = "purchase"
    purchase_payment = "purchase_payment"
    transfer = "transfer"
    dividend_accrual = "dividend_accrual"
    dividend_payment = "dividend_payment"
    salary_accrual = "salary_accrual"
    salary_payment = "salary_payment"
    writeoff = "writeoff"
    loan_in = "loan_in"
    loan_out = "loan_out"


class DocumentStatus(str, enum.Enum):
    """Lifecycle shared by transactions and productions: draft -> confirmed -> cancelled."""

    draft = "draft"
    confirmed = "confirmed"
    cancelled = "cancelled"


class BalanceEntryType(str, enum.Enum):
    """Dividend and salary lines either accrue what is owed or pay it out."""

    accrual = "accrual"
    payment = "payment"


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_type_date", "type", "date"),
        Index("ix_transactions_counterparty_date", "counterparty_id", "date"),
        Index("ix_transactions_status_date", "status", "date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(Enum(TransactionType), nullable=False)
    number = Column(String(20), unique=True, nullable=False)  # e.g. SL-26-0001
    date = Column(Date, nullable=False)

    counterparty_id = Column(Integer, ForeignKey("counterparties.id", ondelete="SET NULL"), nullable=True)
    partner_id = Column(Integer, ForeignKey("partners.id", ondelete="SET NULL"), nullable=True)
    currency_id = Column(Integer, ForeignKey("currencies.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    description = Column(Text, nullable=True)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(15, 2), nullable=False, default=0)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.draft, server_default="draft")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    counterparty = relationship("Counterparty")
    partner = relationship("Partner")
    currency = relationship("Currency")
    user = relationship("User")

    # Entries are walked in the order they were attached.
    cash_entries = relationship(
        "TransactionCashEntry", back_populates="transaction",
        cascade="all, delete-orphan", order_by="TransactionCashEntry.id",
    )
    items = relationship(
        "TransactionItem", back_populates="transaction",
        cascade="all, delete-orphan", order_by="TransactionItem.id",
    )
    counterparty_entries = relationship(
        "TransactionCounterpartyEntry", back_populates="transaction",
        cascade="all, delete-orphan", order_by="TransactionCounterpartyEntry.id",
    )
    dividend_entries = relationship(
        "TransactionDividendEntry", back_populates="transaction",
        cascade="all, delete-orphan", order_by="TransactionDividendEntry.id",
    )
    salary_entries = relationship(
        "TransactionSalaryEntry", back_populates="transaction",
        cascade="all, delete-orphan", order_by="TransactionSalaryEntry.id",
    )
    service_entries = relationship(
        "TransactionServiceEntry", back_populates="transaction",
        cascade="all, delete-orphan", order_by="TransactionServiceEntry.id",
    )

    @property
    def debt_amount(self):
        return (self.total_amount or 0) - (self.paid_amount or 0)

    def is_draft(self) -> bool:
        return self.status == DocumentStatus.draft

    def is_confirmed(self) -> bool:
        return self.status == DocumentStatus.confirmed

    def is_cancelled(self) -> bool:
        return self.status == DocumentStatus.cancelled

    def __repr__(self):
        return f"<Transaction(number='{self.number}', type='{self.type}', status='{self.status}')>"


class TransactionCashEntry(Base):
    """Money in (+) or out (-) of a cash register."""

    __tablename__ = "transaction_cash_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    cash_register_id = Column(Integer, ForeignKey("cash_registers.id"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    note = Column(Text, nullable=True)

    transaction = relationship("Transaction", back_populates="cash_entries")
    cash_register = relationship("CashRegister")


class TransactionItem(Base):
    """
    Stock movement line. quantity > 0 is an inflow into warehouse_id, < 0 an outflow.
    With warehouse_to_id set the line is a transfer: warehouse_id is debited and
    warehouse_to_id is credited the absolute quantity.
    """

    __tablename__ = "transaction_items"
    __table_args__ = (
        Index("ix_transaction_items_warehouse_product", "warehouse_id", "product_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    warehouse_to_id = Column(Integer, ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Numeric(15, 3), nullable=False)
    price = Column(Numeric(15, 2), nullable=False, default=0)
    amount = Column(Numeric(15, 2), nullable=False, default=0)  # |quantity| * price

    transaction = relationship("Transaction", back_populates="items")
    product = relationship("Product")
    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id])
    warehouse_to = relationship("Warehouse", foreign_keys=[warehouse_to_id])


class TransactionCounterpartyEntry(Base):
    """+ the counterparty owes us more, - they owe us less (or we owe them)."""

    __tablename__ = "transaction_counterparty_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    counterparty_id = Column(Integer, ForeignKey("counterparties.id"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)

    transaction = relationship("Transaction", back_populates="counterparty_entries")
    counterparty = relationship("Counterparty")


class TransactionDividendEntry(Base):
    __tablename__ = "transaction_dividend_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False)
    type = Column(Enum(BalanceEntryType, name="dividend_entry_type"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)

    transaction = relationship("Transaction", back_populates="dividend_entries")
    partner = relationship("Partner")


class TransactionSalaryEntry(Base):
    __tablename__ = "transaction_salary_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False)
    type = Column(Enum(BalanceEntryType, name="salary_entry_type"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)

    transaction = relationship("Transaction", back_populates="salary_entries")
    user = relationship("User")


class TransactionServiceEntry(Base):
    """Service line. Informational: it does not move any ledger."""

    __tablename__ = "transaction_service_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    quantity = Column(Numeric(15, 3), nullable=False, default=1)
    price = Column(Numeric(15, 2), nullable=False, default=0)
    amount = Column(Numeric(15, 2), nullable=False, default=0)  # |quantity| * price
    note = Column(Text, nullable=True)

    transaction = relationship("Transaction", back_populates="service_entries")
    service = relationship("Service")
