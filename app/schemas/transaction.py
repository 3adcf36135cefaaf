"""
Pydantic schemas for the Transaction API.
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.transaction import BalanceEntryType, DocumentStatus, TransactionType


# ============================================================================
# Entry lines
# ============================================================================


class CashEntryCreate(BaseModel):
    """Signed amount: positive is money in, negative is money out."""

    cash_register_id: int
    currency_id: int
    amount: Decimal
    note: Optional[str] = Field(None, max_length=255)


class ItemCreate(BaseModel):
    """Stock line. Sign is normalized by transaction type; warehouse_to_id makes it a transfer."""

    product_id: int
    warehouse_id: int
    warehouse_to_id: Optional[int] = None
    quantity: Decimal
    price: Decimal = Decimal("0")

    @field_validator("quantity")
    @classmethod
    def quantity_not_zero(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("quantity must not be zero")
        return v


class CounterpartyEntryCreate(BaseModel):
    """Positive: the counterparty owes us more. Negative: we owe them more."""

    counterparty_id: int
    currency_id: int
    amount: Decimal


class DividendEntryCreate(BaseModel):
    partner_id: int
    currency_id: int
    type: BalanceEntryType
    amount: Decimal


class SalaryEntryCreate(BaseModel):
    user_id: int
    currency_id: int
    type: BalanceEntryType
    amount: Decimal


class ServiceEntryCreate(BaseModel):
    service_id: int
    quantity: Decimal = Decimal("1")
    price: Decimal = Decimal("0")
    note: Optional[str] = Field(None, max_length=255)


# ============================================================================
# Transaction requests
# ============================================================================


class TransactionBase(BaseModel):
    date: Optional[date_type] = None
    counterparty_id: Optional[int] = None
    partner_id: Optional[int] = None
    currency_id: Optional[int] = None
    description: Optional[str] = None
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")

    cash_entries: List[CashEntryCreate] = Field(default_factory=list)
    items: List[ItemCreate] = Field(default_factory=list)
    counterparty_entries: List[CounterpartyEntryCreate] = Field(
        default_factory=list,
        description="Explicit counterparty lines; when empty, one is derived from the type for documents with a counterparty.",
    )
    dividend_entries: List[DividendEntryCreate] = Field(default_factory=list)
    salary_entries: List[SalaryEntryCreate] = Field(default_factory=list)
    service_entries: List[ServiceEntryCreate] = Field(default_factory=list)


class TransactionCreate(TransactionBase):
    type: TransactionType
    user_id: int = Field(..., description="Creator of the document")


class TransactionUpdate(TransactionBase):
    """Full replacement of header and entries. The type of a document cannot change."""

    pass


# ============================================================================
# Responses
# ============================================================================


class CashEntryResponse(BaseModel):
    id: int
    cash_register_id: int
    currency_id: int
    amount: Decimal
    note: Optional[str] = None

    class Config:
        from_attributes = True


class ItemResponse(BaseModel):
    id: int
    product_id: int
    warehouse_id: int
    warehouse_to_id: Optional[int] = None
    quantity: Decimal
    price: Decimal
    amount: Decimal

    class Config:
        from_attributes = True


class CounterpartyEntryResponse(BaseModel):
    id: int
    counterparty_id: int
    currency_id: int
    amount: Decimal

    class Config:
        from_attributes = True


class DividendEntryResponse(BaseModel):
    id: int
    partner_id: int
    currency_id: int
    type: BalanceEntryType
    amount: Decimal

    class Config:
        from_attributes = True


class SalaryEntryResponse(BaseModel):
    id: int
    user_id: int
    currency_id: int
    type: BalanceEntryType
    amount: Decimal

    class Config:
        from_attributes = True


class ServiceEntryResponse(BaseModel):
    id: int
    service_id: int
    quantity: Decimal
    price: Decimal
    amount: Decimal
    note: Optional[str] = None

    class Config:
        from_attributes = True


class TransactionSummary(BaseModel):
    """List row: header only."""

    id: int
    type: TransactionType
    number: str
    date: date_type
    status: DocumentStatus
    counterparty_id: Optional[int] = None
    partner_id: Optional[int] = None
    currency_id: Optional[int] = None
    user_id: int
    total_amount: Decimal
    paid_amount: Decimal
    debt_amount: Decimal
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransactionResponse(TransactionSummary):
    cash_entries: List[CashEntryResponse] = []
    items: List[ItemResponse] = []
    counterparty_entries: List[CounterpartyEntryResponse] = []
    dividend_entries: List[DividendEntryResponse] = []
    salary_entries: List[SalaryEntryResponse] = []
    service_entries: List[ServiceEntryResponse] = []


class TransactionListResponse(BaseModel):
    total: int
    transactions: List[TransactionSummary]


class TransactionDeleteResponse(BaseModel):
    message: str
