"""
Balance ledger store.

Each ledger is a keyed accumulator over one dimension (cash register, counterparty,
partner, employee, warehouse+product) and one currency. The only way to change a
row is apply_delta: lock the row (creating it with zero defaults on first touch),
add the signed deltas, flush. Callers are the transaction and production engines,
always inside app.core.database.unit_of_work.
"""

from decimal import Decimal
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from app.common.exceptions import InsufficientStock
from app.logger_config import logger
from app.models.balance import (
    CashBalance,
    CounterpartyBalance,
    PartnerDividendBalance,
    SalaryBalance,
    StockBalance,
)
from app.utils.rounding import money, quantity as round_quantity, to_decimal, unit_cost


def calculate_weighted_average(
    current_qty: Decimal,
    current_avg_cost: Decimal,
    new_qty: Decimal,
    new_cost: Decimal,
) -> Decimal:
    """
    Calculate weighted average cost.
    Formula: (old_qty * old_cost + new_qty * new_cost) / (old_qty + new_qty)
    """
    current_qty = to_decimal(current_qty)
    new_qty = to_decimal(new_qty)
    total_qty = current_qty + new_qty
    if total_qty == 0:
        logger.warning("Weighted average calculation with zero total quantity")
        return Decimal("0")

    current_value = current_qty * to_decimal(current_avg_cost)
    new_value = new_qty * to_decimal(new_cost)
    weighted_avg = unit_cost((current_value + new_value) / total_qty)

    logger.debug(
        f"Weighted average calculated: "
        f"Current({current_qty} @ {current_avg_cost}) + "
        f"New({new_qty} @ {new_cost}) = "
        f"Total({total_qty} @ {weighted_avg})"
    )
    return weighted_avg


class BalanceLedger:
    """Upsert-and-accumulate store for one balance table."""

    model = None
    key_fields: Tuple[str, ...] = ()
    amount_fields: Tuple[str, ...] = ()

    def __init__(self, db: Session):
        self.db = db

    def _criteria(self, key: Dict[str, int]):
        missing = [f for f in self.key_fields if f not in key]
        if missing:
            raise ValueError(f"{self.model.__name__} key is missing {', '.join(missing)}")
        return [getattr(self.model, f) == key[f] for f in self.key_fields]

    def get(self, **key):
        """Read a row without locking it; None when the key was never touched."""
        return self.db.query(self.model).filter(*self._criteria(key)).first()

    def _locked(self, key: Dict[str, int]):
        # populate_existing: the values must be the ones read under the lock,
        # not whatever the identity map held before.
        return (
            self.db.query(self.model)
            .filter(*self._criteria(key))
            .with_for_update()
            .populate_existing()
            .first()
        )

    def _get_or_create(self, key: Dict[str, int]):
        row = self._locked(key)
        if row is None:
            row = self.model(**key, **{f: Decimal("0") for f in self._zero_fields()})
            self.db.add(row)
            self.db.flush()
            logger.debug(f"{self.model.__name__} created for {key}")
        return row

    def _zero_fields(self) -> Tuple[str, ...]:
        return self.amount_fields

    def apply_delta(self, key: Dict[str, int], **deltas):
        """Add each signed delta to its field of the row at key."""
        unknown = set(deltas) - set(self.amount_fields)
        if unknown:
            raise ValueError(f"{self.model.__name__} has no ledger field(s): {', '.join(sorted(unknown))}")

        row = self._get_or_create(key)
        for field, delta in deltas.items():
            setattr(row, field, money(to_decimal(getattr(row, field)) + to_decimal(delta)))
        self.db.flush()
        logger.debug(f"{self.model.__name__} {key} += {deltas}")
        return row


class CashLedger(BalanceLedger):
    model = CashBalance
    key_fields = ("cash_register_id", "currency_id")
    amount_fields = ("balance",)

    def post(self, cash_register_id: int, currency_id: int, amount) -> CashBalance:
        return self.apply_delta(
            {"cash_register_id": cash_register_id, "currency_id": currency_id}, balance=amount
        )


class CounterpartyLedger(BalanceLedger):
    model = CounterpartyBalance
    key_fields = ("counterparty_id", "currency_id")
    amount_fields = ("balance",)

    def post(self, counterparty_id: int, currency_id: int, amount) -> CounterpartyBalance:
        return self.apply_delta(
            {"counterparty_id": counterparty_id, "currency_id": currency_id}, balance=amount
        )


class DividendLedger(BalanceLedger):
    model = PartnerDividendBalance
    key_fields = ("partner_id", "currency_id")
    amount_fields = ("total_accrued", "total_paid")

    def accrue(self, partner_id: int, currency_id: int, amount) -> PartnerDividendBalance:
        return self.apply_delta({"partner_id": partner_id, "currency_id": currency_id}, total_accrued=amount)

    def pay(self, partner_id: int, currency_id: int, amount) -> PartnerDividendBalance:
        return self.apply_delta({"partner_id": partner_id, "currency_id": currency_id}, total_paid=amount)


class SalaryLedger(BalanceLedger):
    model = SalaryBalance
    key_fields = ("user_id", "currency_id")
    amount_fields = ("accrued", "paid")

    def accrue(self, user_id: int, currency_id: int, amount) -> SalaryBalance:
        return self.apply_delta({"user_id": user_id, "currency_id": currency_id}, accrued=amount)

    def pay(self, user_id: int, currency_id: int, amount) -> SalaryBalance:
        return self.apply_delta({"user_id": user_id, "currency_id": currency_id}, paid=amount)


class StockLedger(BalanceLedger):
    """
    Stock on hand per (warehouse, product) with weighted average cost.
    Document moves keep an emptied row so its avg_cost survives a later reversal;
    production consume and remove drop it.
    """

    model = StockBalance
    key_fields = ("warehouse_id", "product_id")
    amount_fields = ("quantity",)

    def _zero_fields(self) -> Tuple[str, ...]:
        return ("quantity", "avg_cost")

    def _settle(self, row: StockBalance, drop_negative: bool = False) -> Optional[StockBalance]:
        if row.quantity == 0 or (drop_negative and row.quantity < 0):
            logger.debug(f"StockBalance dropped for warehouse {row.warehouse_id}, product {row.product_id}")
            self.db.delete(row)
            self.db.flush()
            return None
        self.db.flush()
        return row

    def apply_delta(self, key: Dict[str, int], quantity=0, price=0, drop_empty: bool = False) -> Optional[StockBalance]:
        """
        Move signed quantity in or out. avg_cost is recomputed only for an inflow
        at a positive price; outflows and zero-priced inflows keep the current cost.
        With drop_empty, a row landing exactly at zero is deleted.
        """
        quantity = round_quantity(quantity)
        price = to_decimal(price)

        row = self._get_or_create(key)
        if quantity > 0 and price > 0:
            row.avg_cost = calculate_weighted_average(row.quantity, row.avg_cost, quantity, price)
        row.quantity = round_quantity(to_decimal(row.quantity) + quantity)
        logger.debug(f"StockBalance {key} += {quantity} @ {price}")
        if drop_empty:
            return self._settle(row)
        self.db.flush()
        return row

    def move(self, warehouse_id: int, product_id: int, quantity, price=0) -> Optional[StockBalance]:
        return self.apply_delta({"warehouse_id": warehouse_id, "product_id": product_id}, quantity, price)

    def consume(self, warehouse_id: int, product_id: int, quantity, product_name: str = "") -> Decimal:
        """
        Draw quantity out of stock for production and return its value at the
        current average cost. Raises InsufficientStock when the row cannot cover it.
        """
        quantity = round_quantity(quantity)
        row = self._locked({"warehouse_id": warehouse_id, "product_id": product_id})
        available = to_decimal(row.quantity) if row is not None else Decimal("0")
        if row is None or available < quantity:
            raise InsufficientStock(product_id, product_name or str(product_id), quantity, available)

        value = quantity * to_decimal(row.avg_cost)
        row.quantity = round_quantity(available - quantity)
        self._settle(row)
        return value

    def receive_at_cost(self, warehouse_id: int, product_id: int, quantity, cost) -> Optional[StockBalance]:
        """Inflow valued at cost; avg_cost is always re-averaged, even at zero cost."""
        quantity = round_quantity(quantity)
        row = self._get_or_create({"warehouse_id": warehouse_id, "product_id": product_id})
        row.avg_cost = calculate_weighted_average(row.quantity, row.avg_cost, quantity, cost)
        row.quantity = round_quantity(to_decimal(row.quantity) + quantity)
        return self._settle(row)

    def remove(self, warehouse_id: int, product_id: int, quantity) -> Optional[StockBalance]:
        """Take quantity out with no availability check; drops the row at zero or below."""
        row = self._locked({"warehouse_id": warehouse_id, "product_id": product_id})
        if row is None:
            logger.warning(f"No stock balance to remove from: warehouse {warehouse_id}, product {product_id}")
            return None
        row.quantity = round_quantity(to_decimal(row.quantity) - round_quantity(quantity))
        return self._settle(row, drop_negative=True)


class Ledgers:
    """The five ledgers bound to one session."""

    def __init__(self, db: Session):
        self.cash = CashLedger(db)
        self.counterparty = CounterpartyLedger(db)
        self.dividend = DividendLedger(db)
        self.salary = SalaryLedger(db)
        self.stock = StockLedger(db)
