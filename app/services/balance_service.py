"""
Read side of the balance ledgers: listings, movement history, stock valuation,
dividend distribution and reconciliation. Nothing here mutates a ledger.
"""

from collections import defaultdict
from datetime import date as date_type
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.common.exceptions import NotFound
from app.logger_config import logger
from app.models.balance import (
    CashBalance,
    CounterpartyBalance,
    PartnerDividendBalance,
    SalaryBalance,
    StockBalance,
)
from app.models.recipe import Production, ProductionIngredient, ProductionOutput
from app.models.references import Currency, Partner, Warehouse
from app.models.transaction import (
    BalanceEntryType,
    DocumentStatus,
    Transaction,
    TransactionCashEntry,
    TransactionCounterpartyEntry,
    TransactionDividendEntry,
    TransactionItem,
    TransactionSalaryEntry,
)
from app.utils.rounding import money, quantity as round_quantity, to_decimal


def list_cash_balances(
    db: Session,
    cash_register_id: Optional[int] = None,
    currency_id: Optional[int] = None,
) -> List[CashBalance]:
    query = db.query(CashBalance).options(joinedload(CashBalance.cash_register))
    if cash_register_id:
        query = query.filter(CashBalance.cash_register_id == cash_register_id)
    if currency_id:
        query = query.filter(CashBalance.currency_id == currency_id)
    return query.order_by(CashBalance.cash_register_id, CashBalance.currency_id).all()


def list_counterparty_balances(
    db: Session,
    counterparty_id: Optional[int] = None,
    currency_id: Optional[int] = None,
    non_zero: bool = False,
) -> List[CounterpartyBalance]:
    query = db.query(CounterpartyBalance).options(joinedload(CounterpartyBalance.counterparty))
    if counterparty_id:
        query = query.filter(CounterpartyBalance.counterparty_id == counterparty_id)
    if currency_id:
        query = query.filter(CounterpartyBalance.currency_id == currency_id)
    if non_zero:
        query = query.filter(CounterpartyBalance.balance != 0)
    return query.order_by(CounterpartyBalance.counterparty_id, CounterpartyBalance.currency_id).all()


def list_dividend_balances(
    db: Session,
    partner_id: Optional[int] = None,
    currency_id: Optional[int] = None,
) -> List[PartnerDividendBalance]:
    query = db.query(PartnerDividendBalance).options(joinedload(PartnerDividendBalance.partner))
    if partner_id:
        query = query.filter(PartnerDividendBalance.partner_id == partner_id)
    if currency_id:
        query = query.filter(PartnerDividendBalance.currency_id == currency_id)
    return query.order_by(PartnerDividendBalance.partner_id, PartnerDividendBalance.currency_id).all()


def list_salary_balances(
    db: Session,
    user_id: Optional[int] = None,
    currency_id: Optional[int] = None,
) -> List[SalaryBalance]:
    query = db.query(SalaryBalance).options(joinedload(SalaryBalance.user))
    if user_id:
        query = query.filter(SalaryBalance.user_id == user_id)
    if currency_id:
        query = query.filter(SalaryBalance.currency_id == currency_id)
    return query.order_by(SalaryBalance.user_id, SalaryBalance.currency_id).all()


def list_stock_balances(
    db: Session,
    warehouse_id: Optional[int] = None,
    product_id: Optional[int] = None,
) -> List[StockBalance]:
    query = db.query(StockBalance).options(
        joinedload(StockBalance.product),
        joinedload(StockBalance.warehouse),
    )
    if warehouse_id:
        query = query.filter(StockBalance.warehouse_id == warehouse_id)
    if product_id:
        query = query.filter(StockBalance.product_id == product_id)
    return query.order_by(StockBalance.warehouse_id, StockBalance.product_id).all()


def stock_summary(db: Session) -> List[Dict[str, Any]]:
    """
    Per warehouse: number of products on hand, total quantity and total value
    (sum of quantity x avg_cost).
    """
    rows = (
        db.query(
            Warehouse.id,
            Warehouse.name,
            func.count(StockBalance.id),
            func.coalesce(func.sum(StockBalance.quantity), 0),
            func.coalesce(func.sum(StockBalance.quantity * StockBalance.avg_cost), 0),
        )
        .join(StockBalance, StockBalance.warehouse_id == Warehouse.id)
        .filter(StockBalance.quantity != 0)
        .group_by(Warehouse.id, Warehouse.name)
        .order_by(Warehouse.id)
        .all()
    )
    return [
        {
            "warehouse_id": warehouse_id,
            "warehouse_name": name,
            "product_count": count,
            "total_quantity": to_decimal(total_quantity),
            "total_value": money(total_value),
        }
        for warehouse_id, name, count, total_quantity, total_value in rows
    ]


# ==================== MOVEMENTS ====================


def _movements(
    db: Session,
    entry_model,
    criteria: List[Any],
    date_from: Optional[date_type],
    date_to: Optional[date_type],
    skip: int,
    limit: int,
) -> Tuple[List[Any], int]:
    """Entries of confirmed transactions, newest document first. Returns (items, total_count)."""
    query = (
        db.query(entry_model)
        .join(Transaction, entry_model.transaction_id == Transaction.id)
        .options(joinedload(entry_model.transaction))
        .filter(Transaction.status == DocumentStatus.confirmed, *criteria)
    )
    if date_from:
        query = query.filter(Transaction.date >= date_from)
    if date_to:
        query = query.filter(Transaction.date <= date_to)

    total = query.count()
    rows = query.order_by(Transaction.date.desc(), entry_model.id.desc()).offset(skip).limit(limit).all()
    return rows, total


def cash_movements(
    db: Session,
    cash_register_id: Optional[int] = None,
    currency_id: Optional[int] = None,
    date_from: Optional[date_type] = None,
    date_to: Optional[date_type] = None,
    skip: int = 0,
    limit: int = 20,
):
    criteria = []
    if cash_register_id:
        criteria.append(TransactionCashEntry.cash_register_id == cash_register_id)
    if currency_id:
        criteria.append(TransactionCashEntry.currency_id == currency_id)
    return _movements(db, TransactionCashEntry, criteria, date_from, date_to, skip, limit)


def counterparty_movements(
    db: Session,
    counterparty_id: Optional[int] = None,
    currency_id: Optional[int] = None,
    date_from: Optional[date_type] = None,
    date_to: Optional[date_type] = None,
    skip: int = 0,
    limit: int = 20,
):
    criteria = []
    if counterparty_id:
        criteria.append(TransactionCounterpartyEntry.counterparty_id == counterparty_id)
    if currency_id:
        criteria.append(TransactionCounterpartyEntry.currency_id == currency_id)
    return _movements(db, TransactionCounterpartyEntry, criteria, date_from, date_to, skip, limit)


def dividend_movements(
    db: Session,
    partner_id: Optional[int] = None,
    currency_id: Optional[int] = None,
    date_from: Optional[date_type] = None,
    date_to: Optional[date_type] = None,
    skip: int = 0,
    limit: int = 20,
):
    criteria = []
    if partner_id:
        criteria.append(TransactionDividendEntry.partner_id == partner_id)
    if currency_id:
        criteria.append(TransactionDividendEntry.currency_id == currency_id)
    return _movements(db, TransactionDividendEntry, criteria, date_from, date_to, skip, limit)


def salary_movements(
    db: Session,
    user_id: Optional[int] = None,
    currency_id: Optional[int] = None,
    date_from: Optional[date_type] = None,
    date_to: Optional[date_type] = None,
    skip: int = 0,
    limit: int = 20,
):
    criteria = []
    if user_id:
        criteria.append(TransactionSalaryEntry.user_id == user_id)
    if currency_id:
        criteria.append(TransactionSalaryEntry.currency_id == currency_id)
    return _movements(db, TransactionSalaryEntry, criteria, date_from, date_to, skip, limit)


def stock_movements(
    db: Session,
    warehouse_id: Optional[int] = None,
    product_id: Optional[int] = None,
    date_from: Optional[date_type] = None,
    date_to: Optional[date_type] = None,
    skip: int = 0,
    limit: int = 20,
):
    """Item lines of confirmed transactions; a warehouse matches either side of a transfer."""
    criteria = []
    if warehouse_id:
        criteria.append(
            or_(TransactionItem.warehouse_id == warehouse_id, TransactionItem.warehouse_to_id == warehouse_id)
        )
    if product_id:
        criteria.append(TransactionItem.product_id == product_id)
    return _movements(db, TransactionItem, criteria, date_from, date_to, skip, limit)


# ==================== DIVIDENDS ====================


def dividend_distribution(db: Session, amount, currency_id: int) -> Dict[str, Any]:
    """
    Split amount across active partners by share_percent. Each share is rounded
    to cents; whatever rounding leaves over goes to the last partner.
    Nothing is posted; the result is a proposal for a dividend_accrual document.
    """
    amount = money(amount)
    if amount <= 0:
        raise ValueError("amount must be positive")
    if not db.query(Currency).filter(Currency.id == currency_id).first():
        raise NotFound(f"Currency not found: {currency_id}")

    partners = db.query(Partner).filter(Partner.is_active.is_(True)).order_by(Partner.id).all()
    distribution = [
        {
            "partner_id": partner.id,
            "partner_name": partner.name,
            "share_percent": to_decimal(partner.share_percent),
            "amount": money(amount * to_decimal(partner.share_percent) / 100),
        }
        for partner in partners
    ]

    remainder = amount - sum((line["amount"] for line in distribution), Decimal("0"))
    if remainder != 0 and distribution:
        distribution[-1]["amount"] = money(distribution[-1]["amount"] + remainder)

    logger.debug(f"Dividend of {amount} split across {len(distribution)} partner(s), remainder {remainder}")
    return {"currency_id": currency_id, "total_amount": amount, "distribution": distribution}


# ==================== RECONCILIATION ====================


def _confirmed_sums(db: Session, entry_model, key_columns, *criteria) -> Dict[Tuple, Decimal]:
    """Sum entry amounts on confirmed transactions, grouped by key_columns."""
    rows = (
        db.query(*key_columns, func.coalesce(func.sum(entry_model.amount), 0))
        .join(Transaction, entry_model.transaction_id == Transaction.id)
        .filter(Transaction.status == DocumentStatus.confirmed, *criteria)
        .group_by(*key_columns)
        .all()
    )
    return {tuple(row[:-1]): money(row[-1]) for row in rows}


def _expected_stock(db: Session) -> Dict[Tuple, Decimal]:
    """
    Stock quantity per (warehouse_id, product_id) implied by confirmed documents:
    item lines at their warehouse, transfer credits at warehouse_to_id, production
    ingredients out and outputs in at actual quantities.
    """
    expected: Dict[Tuple, Decimal] = defaultdict(Decimal)

    def add(rows, sign: int):
        for warehouse_id, product_id, total in rows:
            expected[(warehouse_id, product_id)] += sign * to_decimal(total)

    confirmed_items = (
        db.query(TransactionItem)
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .filter(Transaction.status == DocumentStatus.confirmed)
    )
    add(
        confirmed_items.with_entities(
            TransactionItem.warehouse_id, TransactionItem.product_id, func.sum(TransactionItem.quantity)
        )
        .group_by(TransactionItem.warehouse_id, TransactionItem.product_id)
        .all(),
        1,
    )
    add(
        confirmed_items.filter(TransactionItem.warehouse_to_id.isnot(None))
        .with_entities(
            TransactionItem.warehouse_to_id, TransactionItem.product_id, func.sum(func.abs(TransactionItem.quantity))
        )
        .group_by(TransactionItem.warehouse_to_id, TransactionItem.product_id)
        .all(),
        1,
    )
    add(
        db.query(
            ProductionIngredient.warehouse_id,
            ProductionIngredient.product_id,
            func.sum(ProductionIngredient.actual_quantity),
        )
        .join(Production, ProductionIngredient.production_id == Production.id)
        .filter(Production.status == DocumentStatus.confirmed)
        .group_by(ProductionIngredient.warehouse_id, ProductionIngredient.product_id)
        .all(),
        -1,
    )
    add(
        db.query(
            Production.output_warehouse_id,
            ProductionOutput.product_id,
            func.sum(ProductionOutput.actual_quantity),
        )
        .join(Production, ProductionOutput.production_id == Production.id)
        .filter(Production.status == DocumentStatus.confirmed)
        .group_by(Production.output_warehouse_id, ProductionOutput.product_id)
        .all(),
        1,
    )
    return {key: round_quantity(total) for key, total in expected.items()}


def _stored(
    db: Session,
    model,
    key_names: Tuple[str, ...],
    field: str,
    rounder: Callable[[Any], Decimal] = money,
) -> Dict[Tuple, Decimal]:
    return {
        tuple(getattr(row, name) for name in key_names): rounder(getattr(row, field))
        for row in db.query(model).all()
    }


def _compare(
    ledger: str,
    key_names: Tuple[str, ...],
    stored: Dict[Tuple, Decimal],
    expected: Dict[Tuple, Decimal],
    rounder: Callable[[Any], Decimal] = money,
) -> List[Dict[str, Any]]:
    drifts = []
    for key in sorted(set(stored) | set(expected)):
        stored_value = stored.get(key, rounder(0))
        expected_value = expected.get(key, rounder(0))
        if stored_value != expected_value:
            drifts.append({
                "ledger": ledger,
                "key": dict(zip(key_names, key)),
                "stored": stored_value,
                "expected": expected_value,
                "difference": rounder(stored_value - expected_value),
            })
    return drifts


def check_reconciliation(db: Session) -> Dict[str, Any]:
    """
    Recompute cash, counterparty, dividend and salary balances from the entries
    of confirmed transactions, and stock quantities from confirmed transactions
    and productions, then report every key whose stored row disagrees.
    Stock avg_cost is not reconciled: it depends on posting order.
    """
    drifts: List[Dict[str, Any]] = []

    stock_keys = ("warehouse_id", "product_id")
    drifts += _compare(
        "stock",
        stock_keys,
        _stored(db, StockBalance, stock_keys, "quantity", round_quantity),
        _expected_stock(db),
        round_quantity,
    )

    for ledger, model, entry_model, key_name in (
        ("cash", CashBalance, TransactionCashEntry, "cash_register_id"),
        ("counterparty", CounterpartyBalance, TransactionCounterpartyEntry, "counterparty_id"),
    ):
        key_names = (key_name, "currency_id")
        key_columns = [getattr(entry_model, name) for name in key_names]
        drifts += _compare(
            ledger,
            key_names,
            _stored(db, model, key_names, "balance"),
            _confirmed_sums(db, entry_model, key_columns),
        )

    for ledger, model, entry_model, key_name, accrued_field, paid_field in (
        ("dividend", PartnerDividendBalance, TransactionDividendEntry, "partner_id", "total_accrued", "total_paid"),
        ("salary", SalaryBalance, TransactionSalaryEntry, "user_id", "accrued", "paid"),
    ):
        key_names = (key_name, "currency_id")
        key_columns = [getattr(entry_model, name) for name in key_names]
        for entry_type, field in (
            (BalanceEntryType.accrual, accrued_field),
            (BalanceEntryType.payment, paid_field),
        ):
            drifts += _compare(
                f"{ledger}.{field}",
                key_names,
                _stored(db, model, key_names, field),
                _confirmed_sums(db, entry_model, key_columns, entry_model.type == entry_type),
            )

    if drifts:
        logger.warning(f"Reconciliation found {len(drifts)} drifting balance(s)")
    else:
        logger.info("Reconciliation clean: all balances match confirmed entries")

    return {"balanced": not drifts, "drifts": drifts}
