from decimal import Decimal

import pytest

from app.models.transaction import TransactionType
from app.services.transaction_types import TYPE_RULES, CounterpartyRule, ItemSign, get_type_rule


def test_every_type_has_a_rule():
    assert set(TYPE_RULES) == set(TransactionType)


def test_prefixes_are_unique():
    prefixes = [rule.prefix for rule in TYPE_RULES.values()]
    assert len(prefixes) == len(set(prefixes))


def test_lookup_accepts_plain_string():
    assert get_type_rule("sale").prefix == "SL"
    with pytest.raises(ValueError):
        get_type_rule("barter")


@pytest.mark.parametrize(
    "transaction_type, quantity, expected",
    [
        (TransactionType.sale, Decimal("5"), Decimal("-5")),
        (TransactionType.sale, Decimal("-5"), Decimal("-5")),
        (TransactionType.transfer, Decimal("3"), Decimal("-3")),
        (TransactionType.writeoff, Decimal("2"), Decimal("-2")),
        (TransactionType.purchase, Decimal("-4"), Decimal("4")),
        (TransactionType.cash_in, Decimal("-7"), Decimal("-7")),
    ],
)
def test_item_sign_normalization(transaction_type, quantity, expected):
    assert get_type_rule(transaction_type).normalize_quantity(quantity) == expected


@pytest.mark.parametrize(
    "transaction_type, expected",
    [
        (TransactionType.sale, Decimal("700")),
        (TransactionType.purchase, Decimal("-700")),
        (TransactionType.sale_payment, Decimal("-250")),
        (TransactionType.purchase_payment, Decimal("250")),
        (TransactionType.loan_in, Decimal("-250")),
        (TransactionType.loan_out, Decimal("250")),
    ],
)
def test_counterparty_amount(transaction_type, expected):
    # total 1000, paid 300, cash total -250 (sign of cash is ignored)
    rule = get_type_rule(transaction_type)
    assert rule.counterparty_amount(Decimal("1000"), Decimal("300"), Decimal("-250")) == expected


def test_types_without_counterparty_rule():
    for transaction_type in (
        TransactionType.cash_in,
        TransactionType.cash_out,
        TransactionType.transfer,
        TransactionType.writeoff,
        TransactionType.dividend_accrual,
        TransactionType.dividend_payment,
        TransactionType.salary_accrual,
        TransactionType.salary_payment,
    ):
        rule = get_type_rule(transaction_type)
        assert rule.counterparty is None
        assert rule.counterparty_amount(100, 0, 100) == Decimal("0")


def test_sign_rules_of_stock_types():
    assert get_type_rule(TransactionType.sale).item_sign == ItemSign.negative
    assert get_type_rule(TransactionType.purchase).item_sign == ItemSign.positive
    assert get_type_rule(TransactionType.purchase).counterparty == CounterpartyRule.negated_debt
