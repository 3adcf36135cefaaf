from datetime import date as date_type
from decimal import Decimal
from typing import Dict, List

from pydantic import BaseModel

from app.models.transaction import TransactionType
from app.schemas.transaction import (
    CashEntryResponse,
    CounterpartyEntryResponse,
    DividendEntryResponse,
    ItemResponse,
    SalaryEntryResponse,
)


class CashBalanceResponse(BaseModel):
    cash_register_id: int
    currency_id: int
    balance: Decimal

    class Config:
        from_attributes = True


class CounterpartyBalanceResponse(BaseModel):
    counterparty_id: int
    currency_id: int
    balance: Decimal

    class Config:
        from_attributes = True


class DividendBalanceResponse(BaseModel):
    partner_id: int
    currency_id: int
    total_accrued: Decimal
    total_paid: Decimal
    balance: Decimal

    class Config:
        from_attributes = True


class SalaryBalanceResponse(BaseModel):
    user_id: int
    currency_id: int
    accrued: Decimal
    paid: Decimal
    balance: Decimal

    class Config:
        from_attributes = True


class StockBalanceResponse(BaseModel):
    warehouse_id: int
    product_id: int
    quantity: Decimal
    avg_cost: Decimal
    total_value: Decimal

    class Config:
        from_attributes = True


class WarehouseStockSummary(BaseModel):
    warehouse_id: int
    warehouse_name: str
    product_count: int
    total_quantity: Decimal
    total_value: Decimal


class BalanceDrift(BaseModel):
    ledger: str
    key: Dict[str, int]
    stored: Decimal
    expected: Decimal
    difference: Decimal


class ReconciliationResponse(BaseModel):
    balanced: bool
    drifts: List[BalanceDrift]


class MovementDocument(BaseModel):
    id: int
    type: TransactionType
    number: str
    date: date_type

    class Config:
        from_attributes = True


class CashMovement(CashEntryResponse):
    transaction: MovementDocument


class StockMovement(ItemResponse):
    transaction: MovementDocument


class CounterpartyMovement(CounterpartyEntryResponse):
    transaction: MovementDocument


class DividendMovement(DividendEntryResponse):
    transaction: MovementDocument


class SalaryMovement(SalaryEntryResponse):
    transaction: MovementDocument


class CashMovementList(BaseModel):
    total: int
    movements: List[CashMovement]


class StockMovementList(BaseModel):
    total: int
    movements: List[StockMovement]


class CounterpartyMovementList(BaseModel):
    total: int
    movements: List[CounterpartyMovement]


class DividendMovementList(BaseModel):
    total: int
    movements: List[DividendMovement]


class SalaryMovementList(BaseModel):
    total: int
    movements: List[SalaryMovement]


class DividendShare(BaseModel):
    partner_id: int
    partner_name: str
    share_percent: Decimal
    amount: Decimal


class DividendDistributionResponse(BaseModel):
    currency_id: int
    total_amount: Decimal
    distribution: List[DividendShare]
