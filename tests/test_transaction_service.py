from decimal import Decimal

import pytest

from app.common.exceptions import AlreadyConfirmed, CurrencyMismatch, InvalidState, NotFound
from app.models.transaction import (
    BalanceEntryType,
    DocumentStatus,
    Transaction,
    TransactionCashEntry,
    TransactionType,
)
from app.services.ledger_service import Ledgers
from app.services.transaction_service import TransactionService


def _cash(db, ids, register="till", currency="usd"):
    row = Ledgers(db).cash.get(cash_register_id=ids[register], currency_id=ids[currency])
    return row.balance if row else None


def _stock(db, ids, warehouse, product):
    row = Ledgers(db).stock.get(warehouse_id=ids[warehouse], product_id=ids[product])
    return row.quantity if row else None


def _counterparty(db, ids, currency="usd"):
    row = Ledgers(db).counterparty.get(counterparty_id=ids["customer"], currency_id=ids[currency])
    return row.balance if row else None


class TestCreate:
    def test_creates_draft_without_touching_ledgers(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.cash_in,
            "user_id": ids["user"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": "50"}],
        })

        assert transaction.status == DocumentStatus.draft
        assert transaction.number.startswith("CI-")
        assert [e.amount for e in transaction.cash_entries] == [Decimal("50.00")]
        assert _cash(db, ids) is None

    def test_sale_items_are_stored_as_outflow(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.sale,
            "user_id": ids["user"],
            "items": [{"product_id": ids["cake"], "warehouse_id": ids["wh_a"], "quantity": 3, "price": "12.50"}],
        })

        item = transaction.items[0]
        assert item.quantity == Decimal("-3")
        assert item.amount == Decimal("37.50")

    def test_service_entry_amount(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.sale,
            "user_id": ids["user"],
            "service_entries": [{"service_id": ids["delivery"], "quantity": 2, "price": "15"}],
        })

        entry = transaction.service_entries[0]
        assert entry.amount == Decimal("30.00")

    def test_line_amounts_use_the_stored_price(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.sale,
            "user_id": ids["user"],
            "items": [{"product_id": ids["cake"], "warehouse_id": ids["wh_a"], "quantity": 10, "price": "8.125"}],
            "service_entries": [{"service_id": ids["delivery"], "quantity": 10, "price": "0.005"}],
        })

        item = transaction.items[0]
        assert (item.price, item.amount) == (Decimal("8.13"), Decimal("81.30"))
        entry = transaction.service_entries[0]
        assert (entry.price, entry.amount) == (Decimal("0.01"), Decimal("0.10"))

    def test_register_currency_must_match_entry(self, db, ids):
        with pytest.raises(CurrencyMismatch, match="Main till"):
            TransactionService(db).create({
                "type": TransactionType.cash_in,
                "user_id": ids["user"],
                "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["eur"], "amount": 10}],
            })

        assert db.query(Transaction).count() == 0

    def test_register_currency_must_match_document(self, db, ids):
        with pytest.raises(CurrencyMismatch, match="document currency"):
            TransactionService(db).create({
                "type": TransactionType.cash_in,
                "user_id": ids["user"],
                "currency_id": ids["usd"],
                "cash_entries": [{"cash_register_id": ids["bank_eur"], "currency_id": ids["eur"], "amount": 10}],
            })

        assert db.query(Transaction).count() == 0
        assert db.query(TransactionCashEntry).count() == 0

    def test_unknown_register_is_not_found(self, db, ids):
        with pytest.raises(NotFound):
            TransactionService(db).create({
                "type": TransactionType.cash_in,
                "user_id": ids["user"],
                "cash_entries": [{"cash_register_id": 999, "currency_id": ids["usd"], "amount": 10}],
            })


class TestAutoCounterpartyEntry:
    def test_sale_books_unpaid_part(self, db, ids):
        service = TransactionService(db)
        transaction = service.create({
            "type": TransactionType.sale,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "currency_id": ids["usd"],
            "total_amount": 1000,
            "paid_amount": 300,
        })

        assert len(transaction.counterparty_entries) == 1
        entry = transaction.counterparty_entries[0]
        assert entry.counterparty_id == ids["customer"]
        assert entry.amount == Decimal("700.00")

        service.confirm(transaction)
        assert _counterparty(db, ids) == Decimal("700.00")

    def test_purchase_books_our_debt(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.purchase,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "currency_id": ids["usd"],
            "total_amount": 400,
            "paid_amount": 100,
        })

        assert transaction.counterparty_entries[0].amount == Decimal("-300.00")

    def test_sale_payment_uses_cash_total(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.sale_payment,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 250}],
        })

        entry = transaction.counterparty_entries[0]
        assert entry.amount == Decimal("-250.00")
        # no document currency: the first cash entry's currency is used
        assert entry.currency_id == ids["usd"]

    def test_loan_in_owes_the_lender(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.loan_in,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 5000}],
        })

        assert transaction.number.startswith("LI-")
        assert transaction.counterparty_entries[0].amount == Decimal("-5000.00")

    def test_explicit_entries_suppress_derivation(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.sale,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "total_amount": 1000,
            "counterparty_entries": [
                {"counterparty_id": ids["customer"], "currency_id": ids["usd"], "amount": 10},
            ],
        })

        assert [e.amount for e in transaction.counterparty_entries] == [Decimal("10.00")]

    def test_fully_paid_sale_has_no_entry(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.sale,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "total_amount": 100,
            "paid_amount": 100,
        })

        assert transaction.counterparty_entries == []

    def test_cash_in_never_derives(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.cash_in,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 20}],
        })

        assert transaction.counterparty_entries == []


class TestConfirmAndCancel:
    def test_confirm_then_cancel_restores_every_ledger(self, db, ids, stock_in):
        stock_in(ids["cake"], 10, "4.00")
        service = TransactionService(db)
        opening = service.create({
            "type": TransactionType.cash_in,
            "user_id": ids["user"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": "100.00"}],
        })
        service.confirm(opening)
        assert _cash(db, ids) == Decimal("100.00")

        sale = service.create({
            "type": TransactionType.sale,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "currency_id": ids["usd"],
            "total_amount": "80.00",
            "paid_amount": "50.00",
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": "50.00"}],
            "items": [{"product_id": ids["cake"], "warehouse_id": ids["wh_a"], "quantity": 4, "price": "20"}],
        })
        service.confirm(sale)
        assert _cash(db, ids) == Decimal("150.00")
        assert _stock(db, ids, "wh_a", "cake") == Decimal("6")
        assert _counterparty(db, ids) == Decimal("30.00")

        cancelled = service.cancel(service.get(sale.id))
        assert cancelled.status == DocumentStatus.cancelled
        assert _cash(db, ids) == Decimal("100.00")
        assert _stock(db, ids, "wh_a", "cake") == Decimal("10")
        assert _counterparty(db, ids) == Decimal("0.00")

    def test_cancel_keeps_avg_cost(self, db, ids, stock_in):
        stock_in(ids["flour"], 10, "2.00")
        second = stock_in(ids["flour"], 10, "4.00")
        service = TransactionService(db)

        service.cancel(service.get(second.id))

        row = Ledgers(db).stock.get(warehouse_id=ids["wh_a"], product_id=ids["flour"])
        assert row.quantity == Decimal("10")
        assert row.avg_cost == Decimal("3.0000")

    def test_cancel_restores_avg_cost_of_emptied_row(self, db, ids, stock_in):
        stock_in(ids["flour"], 10, "2.00")
        service = TransactionService(db)
        sale = service.confirm(service.create({
            "type": TransactionType.sale,
            "user_id": ids["user"],
            "items": [{"product_id": ids["flour"], "warehouse_id": ids["wh_a"], "quantity": 10, "price": "5"}],
        }))
        emptied = Ledgers(db).stock.get(warehouse_id=ids["wh_a"], product_id=ids["flour"])
        assert (emptied.quantity, emptied.avg_cost) == (Decimal("0"), Decimal("2.0000"))

        service.cancel(service.get(sale.id))

        row = Ledgers(db).stock.get(warehouse_id=ids["wh_a"], product_id=ids["flour"])
        assert row.quantity == Decimal("10")
        assert row.avg_cost == Decimal("2.0000")

    def test_transfer_moves_stock_between_warehouses(self, db, ids, stock_in):
        stock_in(ids["flour"], 20, "5.00")
        service = TransactionService(db)
        transfer = service.create({
            "type": TransactionType.transfer,
            "user_id": ids["user"],
            "items": [{
                "product_id": ids["flour"],
                "warehouse_id": ids["wh_a"],
                "warehouse_to_id": ids["wh_b"],
                "quantity": 10,
            }],
        })
        assert transfer.items[0].quantity == Decimal("-10")

        service.confirm(transfer)
        assert _stock(db, ids, "wh_a", "flour") == Decimal("10")
        assert _stock(db, ids, "wh_b", "flour") == Decimal("10")

        service.cancel(service.get(transfer.id))
        assert _stock(db, ids, "wh_a", "flour") == Decimal("20")
        assert _stock(db, ids, "wh_b", "flour") == Decimal("0")

    def test_transfer_source_is_debited_for_any_type(self, db, ids):
        transaction = TransactionService(db).create({
            "type": TransactionType.cash_in,
            "user_id": ids["user"],
            "items": [{
                "product_id": ids["flour"],
                "warehouse_id": ids["wh_a"],
                "warehouse_to_id": ids["wh_b"],
                "quantity": 4,
            }],
        })

        assert transaction.items[0].quantity == Decimal("-4")

    def test_dividend_and_salary_entries(self, db, ids):
        service = TransactionService(db)
        accrual = service.create({
            "type": TransactionType.dividend_accrual,
            "user_id": ids["user"],
            "partner_id": ids["partner"],
            "dividend_entries": [
                {"partner_id": ids["partner"], "currency_id": ids["usd"], "type": "accrual", "amount": 500},
            ],
            "salary_entries": [
                {"user_id": ids["user"], "currency_id": ids["usd"], "type": BalanceEntryType.accrual, "amount": 900},
                {"user_id": ids["user"], "currency_id": ids["usd"], "type": BalanceEntryType.payment, "amount": 400},
            ],
        })
        service.confirm(accrual)

        ledgers = Ledgers(db)
        dividend = ledgers.dividend.get(partner_id=ids["partner"], currency_id=ids["usd"])
        salary = ledgers.salary.get(user_id=ids["user"], currency_id=ids["usd"])
        assert (dividend.total_accrued, dividend.total_paid, dividend.balance) == (
            Decimal("500.00"), Decimal("0.00"), Decimal("500.00"),
        )
        assert (salary.accrued, salary.paid, salary.balance) == (
            Decimal("900.00"), Decimal("400.00"), Decimal("500.00"),
        )

        service.cancel(service.get(accrual.id))
        dividend = ledgers.dividend.get(partner_id=ids["partner"], currency_id=ids["usd"])
        assert dividend.balance == Decimal("0.00")

    def test_confirm_twice_raises_and_leaves_ledgers(self, db, ids):
        service = TransactionService(db)
        transaction = service.create({
            "type": TransactionType.cash_in,
            "user_id": ids["user"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 40}],
        })
        service.confirm(transaction)

        with pytest.raises(AlreadyConfirmed):
            service.confirm(service.get(transaction.id))

        assert _cash(db, ids) == Decimal("40.00")

    def test_cancel_draft_is_a_pure_status_flip(self, db, ids):
        service = TransactionService(db)
        draft = service.create({"type": TransactionType.cash_out, "user_id": ids["user"]})

        cancelled = service.cancel(draft)

        assert cancelled.status == DocumentStatus.cancelled
        assert Ledgers(db).cash.get(cash_register_id=ids["till"], currency_id=ids["usd"]) is None

    def test_cancel_draft_with_entries_moves_nothing(self, db, ids):
        service = TransactionService(db)
        draft = service.create({
            "type": TransactionType.cash_in,
            "user_id": ids["user"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 40}],
        })

        service.cancel(draft)

        assert _cash(db, ids) is None

    def test_cancelled_is_terminal(self, db, ids):
        service = TransactionService(db)
        transaction = service.cancel(service.create({"type": TransactionType.cash_in, "user_id": ids["user"]}))

        with pytest.raises(InvalidState, match="cannot confirm a cancelled document"):
            service.confirm(transaction)
        with pytest.raises(InvalidState, match="already cancelled"):
            service.cancel(service.get(transaction.id))


class TestConfirmRollback:
    def test_failed_transfer_credit_keeps_source_stock(self, db, ids, stock_in, monkeypatch):
        stock_in(ids["flour"], 20, "5.00")
        service = TransactionService(db)
        transfer = service.create({
            "type": TransactionType.transfer,
            "user_id": ids["user"],
            "items": [{"product_id": ids["flour"], "warehouse_id": ids["wh_a"], "warehouse_to_id": ids["wh_b"], "quantity": 10}],
        })
        move = service.ledgers.stock.move
        calls = []

        def failing_move(*args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("destination warehouse write failed")
            return move(*args, **kwargs)

        monkeypatch.setattr(service.ledgers.stock, "move", failing_move)

        with pytest.raises(RuntimeError):
            service.confirm(transfer)

        assert len(calls) == 2
        assert _stock(db, ids, "wh_a", "flour") == Decimal("20")
        assert _stock(db, ids, "wh_b", "flour") is None
        assert service.get(transfer.id).status == DocumentStatus.draft

    def test_failed_counterparty_post_keeps_cash_untouched(self, db, ids, monkeypatch):
        service = TransactionService(db)
        payment = service.create({
            "type": TransactionType.sale_payment,
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 75}],
        })

        def failing_post(*args, **kwargs):
            raise RuntimeError("counterparty ledger unavailable")

        monkeypatch.setattr(service.ledgers.counterparty, "post", failing_post)

        with pytest.raises(RuntimeError):
            service.confirm(payment)

        assert _cash(db, ids) is None
        assert _counterparty(db, ids) is None
        assert service.get(payment.id).status == DocumentStatus.draft


class TestEditAndDelete:
    def test_update_replaces_entries_and_keeps_number(self, db, ids):
        service = TransactionService(db)
        transaction = service.create({
            "type": TransactionType.cash_in,
            "user_id": ids["user"],
            "cash_entries": [
                {"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 10},
                {"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 20},
            ],
        })
        number = transaction.number

        updated = service.update(transaction, {
            "description": "corrected",
            "cash_entries": [{"cash_register_id": ids["bank_eur"], "currency_id": ids["eur"], "amount": 99}],
        })

        assert updated.number == number
        assert updated.description == "corrected"
        assert [(e.cash_register_id, e.amount) for e in updated.cash_entries] == [(ids["bank_eur"], Decimal("99.00"))]
        assert db.query(TransactionCashEntry).count() == 1

    def test_update_validates_currency(self, db, ids):
        service = TransactionService(db)
        transaction = service.create({"type": TransactionType.cash_in, "user_id": ids["user"]})

        with pytest.raises(CurrencyMismatch):
            service.update(transaction, {
                "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["eur"], "amount": 1}],
            })

    def test_confirmed_document_cannot_be_edited_or_deleted(self, db, ids):
        service = TransactionService(db)
        transaction = service.confirm(service.create({"type": TransactionType.cash_in, "user_id": ids["user"]}))

        with pytest.raises(InvalidState, match="cannot edit a confirmed document"):
            service.update(transaction, {"description": "late change"})
        with pytest.raises(InvalidState, match="cancelling it first"):
            service.delete(service.get(transaction.id))

    def test_delete_draft_cascades_entries(self, db, ids):
        service = TransactionService(db)
        transaction = service.create({
            "type": TransactionType.cash_in,
            "user_id": ids["user"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": 5}],
        })
        transaction_id = transaction.id

        service.delete(transaction)

        assert db.query(Transaction).count() == 0
        assert db.query(TransactionCashEntry).count() == 0
        with pytest.raises(NotFound):
            service.get(transaction_id)


class TestList:
    def test_filters_and_paging(self, db, ids):
        service = TransactionService(db)
        service.create({"type": TransactionType.cash_in, "user_id": ids["user"]})
        sale = service.create({"type": TransactionType.sale, "user_id": ids["user"], "counterparty_id": ids["customer"]})
        service.confirm(sale)
        service.create({"type": TransactionType.sale, "user_id": ids["user"]})

        rows, total = service.list(type=TransactionType.sale)
        assert total == 2
        assert all(row.type == TransactionType.sale for row in rows)

        rows, total = service.list(status=DocumentStatus.confirmed)
        assert [row.id for row in rows] == [sale.id]

        rows, total = service.list(counterparty_id=ids["customer"])
        assert total == 1

        rows, total = service.list(limit=1)
        assert total == 3
        assert len(rows) == 1

        rows, total = service.list(search="CI-")
        assert total == 1
