"""
Per-type behaviour of transactions, looked up once instead of branched on.

Each TransactionType maps to a TransactionTypeRule:
  - prefix:        document number prefix
  - item_sign:     how item quantities are sign-normalized
  - counterparty:  how the automatic counterparty entry amount is derived
                   (None: no automatic entry for this type)
"""

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from app.models.transaction import TransactionType
from app.utils.rounding import to_decimal


class ItemSign(str, enum.Enum):
    negative = "negative"   # outflow from warehouse_id
    positive = "positive"   # inflow into warehouse_id
    as_is = "as_is"         # caller decides


class CounterpartyRule(str, enum.Enum):
    debt = "debt"                   # +(total - paid): they owe us the unpaid part
    negated_debt = "negated_debt"   # -(total - paid): we owe them the unpaid part
    minus_cash = "minus_cash"       # -|cash total|
    plus_cash = "plus_cash"         # +|cash total|


@dataclass(frozen=True)
class TransactionTypeRule:
    type: TransactionType
    prefix: str
    item_sign: ItemSign = ItemSign.as_is
    counterparty: Optional[CounterpartyRule] = None

    def normalize_quantity(self, quantity) -> Decimal:
        quantity = to_decimal(quantity)
        if self.item_sign == ItemSign.negative:
            return -abs(quantity)
        if self.item_sign == ItemSign.positive:
            return abs(quantity)
        return quantity

    def counterparty_amount(self, total_amount, paid_amount, cash_total) -> Decimal:
        """Signed amount of the automatic counterparty entry, from the counterparty's side."""
        debt = to_decimal(total_amount) - to_decimal(paid_amount)
        cash = abs(to_decimal(cash_total))
        if self.counterparty == CounterpartyRule.debt:
            return debt
        if self.counterparty == CounterpartyRule.negated_debt:
            return -debt
        if self.counterparty == CounterpartyRule.minus_cash:
            return -cash
        if self.counterparty == CounterpartyRule.plus_cash:
            return cash
        return Decimal("0")


TYPE_RULES: Dict[TransactionType, TransactionTypeRule] = {
    rule.type: rule
    for rule in (
        TransactionTypeRule(TransactionType.cash_in, "CI"),
        TransactionTypeRule(TransactionType.cash_out, "CO"),
        TransactionTypeRule(TransactionType.sale, "SL", ItemSign.negative, CounterpartyRule.debt),
        TransactionTypeRule(TransactionType.sale_payment, "SP", counterparty=CounterpartyRule.minus_cash),
        TransactionTypeRule(TransactionType.purchase, "PU", ItemSign.positive, CounterpartyRule.negated_debt),
        TransactionTypeRule(TransactionType.purchase_payment, "PP", counterparty=CounterpartyRule.plus_cash),
        TransactionTypeRule(TransactionType.transfer, "TR", ItemSign.negative),
        TransactionTypeRule(TransactionType.dividend_accrual, "DA"),
        TransactionTypeRule(TransactionType.dividend_payment, "DP"),
        TransactionTypeRule(TransactionType.salary_accrual, "SA"),
        TransactionTypeRule(TransactionType.salary_payment, "SY"),
        TransactionTypeRule(TransactionType.writeoff, "WO", ItemSign.negative),
        # Loan in: cash arrives, we owe the lender. Loan out: cash leaves, they owe us.
        TransactionTypeRule(TransactionType.loan_in, "LI", counterparty=CounterpartyRule.minus_cash),
        TransactionTypeRule(TransactionType.loan_out, "LO", counterparty=CounterpartyRule.plus_cash),
    )
}


def get_type_rule(transaction_type) -> TransactionTypeRule:
    return TYPE_RULES[TransactionType(transaction_type)]
