"""
Balance API: read-only views of the five ledgers, their movement history,
dividend distribution and the reconciliation report.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.schemas.balance import (
    CashBalanceResponse,
    CashMovementList,
    CounterpartyBalanceResponse,
    CounterpartyMovementList,
    DividendBalanceResponse,
    DividendDistributionResponse,
    DividendMovementList,
    ReconciliationResponse,
    SalaryBalanceResponse,
    SalaryMovementList,
    StockBalanceResponse,
    StockMovementList,
    WarehouseStockSummary,
)
from app.services import balance_service

router = APIRouter()


@router.get("/cash", response_model=List[CashBalanceResponse])
def cash_balances(
    cash_register_id: Optional[int] = Query(None),
    currency_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    return balance_service.list_cash_balances(db, cash_register_id=cash_register_id, currency_id=currency_id)


@router.get("/cash/movements", response_model=CashMovementList)
def cash_movements(
    cash_register_id: Optional[int] = Query(None),
    currency_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    movements, total = balance_service.cash_movements(
        db, cash_register_id=cash_register_id, currency_id=currency_id,
        date_from=date_from, date_to=date_to, skip=skip, limit=limit,
    )
    return {"total": total, "movements": movements}


@router.get("/stock", response_model=List[StockBalanceResponse])
def stock_balances(
    warehouse_id: Optional[int] = Query(None),
    product_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    return balance_service.list_stock_balances(db, warehouse_id=warehouse_id, product_id=product_id)


@router.get("/stock/summary", response_model=List[WarehouseStockSummary])
def stock_summary(db: Session = Depends(get_db)):
    """Quantity and value on hand per warehouse."""
    return balance_service.stock_summary(db)


@router.get("/stock/movements", response_model=StockMovementList)
def stock_movements(
    warehouse_id: Optional[int] = Query(None, description="Matches either side of a transfer"),
    product_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    movements, total = balance_service.stock_movements(
        db, warehouse_id=warehouse_id, product_id=product_id,
        date_from=date_from, date_to=date_to, skip=skip, limit=limit,
    )
    return {"total": total, "movements": movements}


@router.get("/counterparties", response_model=List[CounterpartyBalanceResponse])
def counterparty_balances(
    counterparty_id: Optional[int] = Query(None),
    currency_id: Optional[int] = Query(None),
    non_zero: bool = Query(False, description="Only open balances"),
    db: Session = Depends(get_db),
):
    return balance_service.list_counterparty_balances(
        db, counterparty_id=counterparty_id, currency_id=currency_id, non_zero=non_zero
    )


@router.get("/counterparties/movements", response_model=CounterpartyMovementList)
def counterparty_movements(
    counterparty_id: Optional[int] = Query(None),
    currency_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    movements, total = balance_service.counterparty_movements(
        db, counterparty_id=counterparty_id, currency_id=currency_id,
        date_from=date_from, date_to=date_to, skip=skip, limit=limit,
    )
    return {"total": total, "movements": movements}


@router.get("/dividends", response_model=List[DividendBalanceResponse])
def dividend_balances(
    partner_id: Optional[int] = Query(None),
    currency_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    return balance_service.list_dividend_balances(db, partner_id=partner_id, currency_id=currency_id)


@router.get("/dividends/movements", response_model=DividendMovementList)
def dividend_movements(
    partner_id: Optional[int] = Query(None),
    currency_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    movements, total = balance_service.dividend_movements(
        db, partner_id=partner_id, currency_id=currency_id,
        date_from=date_from, date_to=date_to, skip=skip, limit=limit,
    )
    return {"total": total, "movements": movements}


@router.get("/dividends/distribution", response_model=DividendDistributionResponse)
def dividend_distribution(
    amount: Decimal = Query(..., gt=0),
    currency_id: int = Query(...),
    db: Session = Depends(get_db),
):
    """Split an amount across active partners by share. Posts nothing."""
    return balance_service.dividend_distribution(db, amount, currency_id)


@router.get("/salaries", response_model=List[SalaryBalanceResponse])
def salary_balances(
    user_id: Optional[int] = Query(None),
    currency_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    return balance_service.list_salary_balances(db, user_id=user_id, currency_id=currency_id)


@router.get("/salaries/movements", response_model=SalaryMovementList)
def salary_movements(
    user_id: Optional[int] = Query(None),
    currency_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    movements, total = balance_service.salary_movements(
        db, user_id=user_id, currency_id=currency_id,
        date_from=date_from, date_to=date_to, skip=skip, limit=limit,
    )
    return {"total": total, "movements": movements}


@router.get("/reconciliation", response_model=ReconciliationResponse)
def reconciliation(db: Session = Depends(get_db)):
    """Compare every stored balance with the sum of its confirmed entries."""
    return balance_service.check_reconciliation(db)
