"""
Transaction engine: creates, edits, confirms, cancels and deletes transactions.

Ledgers change only on confirm (entry deltas applied) and on cancel of a confirmed
document (the same deltas applied negated). Every operation runs inside one
unit of work, so a failure anywhere leaves documents and ledgers untouched.
"""

from datetime import date as date_type
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from app.common.exceptions import AlreadyConfirmed, CurrencyMismatch, InvalidState, NotFound
from app.core.config import settings
from app.core.database import unit_of_work
from app.logger_config import logger
from app.models.references import CashRegister
from app.models.transaction import (
    BalanceEntryType,
    DocumentStatus,
    Transaction,
    TransactionCashEntry,
    TransactionCounterpartyEntry,
    TransactionDividendEntry,
    TransactionItem,
    TransactionSalaryEntry,
    TransactionServiceEntry,
    TransactionType,
)
from app.services.ledger_service import Ledgers
from app.services.numbering import next_document_number
from app.services.transaction_types import TransactionTypeRule, get_type_rule
from app.utils.rounding import money, quantity as round_quantity, to_decimal


HEADER_FIELDS = (
    "type",
    "date",
    "counterparty_id",
    "partner_id",
    "currency_id",
    "description",
    "total_amount",
    "paid_amount",
    "user_id",
)

ENTRY_GROUPS = (
    "cash_entries",
    "items",
    "counterparty_entries",
    "dividend_entries",
    "salary_entries",
    "service_entries",
)


def _with_entries(query):
    return query.options(*(selectinload(getattr(Transaction, group)) for group in ENTRY_GROUPS))


class TransactionService:
    def __init__(self, db: Session):
        self.db = db
        self.ledgers = Ledgers(db)

    # ==================== QUERIES ====================

    def get(self, transaction_id: int) -> Transaction:
        """Transaction with all entry groups loaded; NotFound when missing."""
        transaction = _with_entries(self.db.query(Transaction)).filter(Transaction.id == transaction_id).first()
        if not transaction:
            raise NotFound(f"Transaction not found: {transaction_id}")
        return transaction

    def list(
        self,
        skip: int = 0,
        limit: int = 20,
        type: Optional[TransactionType] = None,
        types: Optional[List[TransactionType]] = None,
        status: Optional[DocumentStatus] = None,
        counterparty_id: Optional[int] = None,
        partner_id: Optional[int] = None,
        date_from: Optional[date_type] = None,
        date_to: Optional[date_type] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Transaction], int]:
        """List transactions with optional filters. Returns (items, total_count)."""
        query = self.db.query(Transaction)

        if type:
            query = query.filter(Transaction.type == type)
        if types:
            query = query.filter(Transaction.type.in_(types))
        if status:
            query = query.filter(Transaction.status == status)
        if counterparty_id:
            query = query.filter(Transaction.counterparty_id == counterparty_id)
        if partner_id:
            query = query.filter(Transaction.partner_id == partner_id)
        if date_from:
            query = query.filter(Transaction.date >= date_from)
        if date_to:
            query = query.filter(Transaction.date <= date_to)
        if search:
            query = query.filter(Transaction.number.ilike(f"%{search}%"))

        total = query.count()
        rows = (
            query.order_by(Transaction.date.desc(), Transaction.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return rows, total

    # ==================== LIFECYCLE ====================

    def create(self, data: Dict[str, Any]) -> Transaction:
        """Create a draft transaction with its entries. No ledger moves yet."""
        rule = get_type_rule(data["type"])
        doc_date = data.get("date") or date_type.today()

        with unit_of_work(self.db):
            self._validate_cash_register_currencies(data)

            transaction = Transaction(
                number=next_document_number(self.db, Transaction, rule.prefix, doc_date),
                status=DocumentStatus.draft,
            )
            self._apply_header(transaction, {**data, "date": doc_date})
            self.db.add(transaction)
            self.db.flush()

            self._create_entries(transaction, data, rule)

        logger.info(f"Transaction created: {transaction.number} ({rule.type.value})")
        return self.get(transaction.id)

    def update(self, transaction: Transaction, data: Dict[str, Any]) -> Transaction:
        """Replace header fields and every entry of a not-yet-confirmed transaction."""
        if transaction.is_confirmed():
            raise InvalidState("cannot edit a confirmed document")

        with unit_of_work(self.db):
            transaction = self._lock(transaction)
            if transaction.is_confirmed():
                raise InvalidState("cannot edit a confirmed document")

            self._validate_cash_register_currencies(data)

            for group in ENTRY_GROUPS:
                getattr(transaction, group).clear()
            self.db.flush()

            self._apply_header(transaction, data)
            self.db.flush()

            self._create_entries(transaction, data, get_type_rule(transaction.type))

        logger.info(f"Transaction updated: {transaction.number}")
        return self.get(transaction.id)

    def confirm(self, transaction: Transaction) -> Transaction:
        """Apply every entry's delta to its ledger and freeze the document."""
        with unit_of_work(self.db):
            transaction = self._lock(transaction)
            if transaction.is_confirmed():
                raise AlreadyConfirmed("document is already confirmed")
            if transaction.is_cancelled():
                raise InvalidState("cannot confirm a cancelled document")

            self._post_entries(transaction, Decimal("1"))
            transaction.status = DocumentStatus.confirmed

        logger.info(f"Transaction confirmed: {transaction.number}")
        return self.get(transaction.id)

    def cancel(self, transaction: Transaction) -> Transaction:
        """
        Cancel a document. A confirmed one has its ledger effects reversed first;
        a draft is just marked cancelled. Cancelled is terminal, so cancelling
        it again raises InvalidState rather than re-setting the status.
        """
        with unit_of_work(self.db):
            transaction = self._lock(transaction)
            if transaction.is_cancelled():
                raise InvalidState("document is already cancelled")

            was_confirmed = transaction.is_confirmed()
            if was_confirmed:
                self._post_entries(transaction, Decimal("-1"))
            transaction.status = DocumentStatus.cancelled

        logger.info(
            f"Transaction cancelled: {transaction.number}"
            + (" (ledger effects reversed)" if was_confirmed else "")
        )
        return self.get(transaction.id)

    def delete(self, transaction: Transaction) -> None:
        """Delete a document that is not confirmed; entries cascade."""
        with unit_of_work(self.db):
            transaction = self._lock(transaction)
            if transaction.is_confirmed():
                raise InvalidState("delete the confirmed document by cancelling it first")
            number = transaction.number
            self.db.delete(transaction)

        logger.info(f"Transaction deleted: {number}")

    # ==================== HELPERS ====================

    def _lock(self, transaction: Transaction) -> Transaction:
        locked = (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction.id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if locked is None:
            raise NotFound(f"Transaction not found: {transaction.id}")
        return locked

    def _apply_header(self, transaction: Transaction, data: Dict[str, Any]) -> None:
        for field in HEADER_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field in ("total_amount", "paid_amount"):
                value = money(value)
            elif field == "type":
                value = TransactionType(value)
            elif field == "date" and value is None:
                continue
            setattr(transaction, field, value)

        if transaction.total_amount is None:
            transaction.total_amount = Decimal("0.00")
        if transaction.paid_amount is None:
            transaction.paid_amount = Decimal("0.00")

    def _validate_cash_register_currencies(self, data: Dict[str, Any]) -> None:
        """Every cash entry must use its register's currency, and the document's when it has one."""
        transaction_currency_id = data.get("currency_id")

        for entry in data.get("cash_entries") or []:
            register = self.db.query(CashRegister).filter(CashRegister.id == entry["cash_register_id"]).first()
            if not register:
                raise NotFound(f"Cash register not found: {entry['cash_register_id']}")

            if register.currency_id != entry["currency_id"]:
                raise CurrencyMismatch(
                    f'Cash register "{register.name}" only works with its bound currency. '
                    f"Choose a register with the matching currency."
                )

            if transaction_currency_id and register.currency_id != transaction_currency_id:
                raise CurrencyMismatch(
                    f'Cash register "{register.name}" cannot be used for a document in the selected currency. '
                    f"Choose a register bound to the document currency."
                )

    def _create_entries(self, transaction: Transaction, data: Dict[str, Any], rule: TransactionTypeRule) -> None:
        for entry in data.get("cash_entries") or []:
            transaction.cash_entries.append(
                TransactionCashEntry(
                    cash_register_id=entry["cash_register_id"],
                    currency_id=entry["currency_id"],
                    amount=money(entry["amount"]),
                    note=entry.get("note"),
                )
            )

        for item in data.get("items") or []:
            quantity = rule.normalize_quantity(item["quantity"])
            if item.get("warehouse_to_id"):
                # Two-sided movement: the source warehouse is always the debited side.
                quantity = -abs(quantity)
            quantity = round_quantity(quantity)
            price = money(item.get("price"))
            transaction.items.append(
                TransactionItem(
                    product_id=item["product_id"],
                    warehouse_id=item["warehouse_id"],
                    warehouse_to_id=item.get("warehouse_to_id"),
                    quantity=quantity,
                    price=price,
                    amount=money(abs(quantity) * price),
                )
            )

        counterparty_entries = data.get("counterparty_entries") or []
        if counterparty_entries:
            for entry in counterparty_entries:
                transaction.counterparty_entries.append(
                    TransactionCounterpartyEntry(
                        counterparty_id=entry["counterparty_id"],
                        currency_id=entry["currency_id"],
                        amount=money(entry["amount"]),
                    )
                )
        elif transaction.counterparty_id and rule.counterparty is not None:
            self._create_counterparty_entry(transaction, data, rule)

        for entry in data.get("dividend_entries") or []:
            transaction.dividend_entries.append(
                TransactionDividendEntry(
                    partner_id=entry["partner_id"],
                    currency_id=entry["currency_id"],
                    type=BalanceEntryType(entry["type"]),
                    amount=money(entry["amount"]),
                )
            )

        for entry in data.get("salary_entries") or []:
            transaction.salary_entries.append(
                TransactionSalaryEntry(
                    user_id=entry["user_id"],
                    currency_id=entry["currency_id"],
                    type=BalanceEntryType(entry["type"]),
                    amount=money(entry["amount"]),
                )
            )

        for entry in data.get("service_entries") or []:
            quantity = round_quantity(entry.get("quantity", 1))
            price = money(entry.get("price"))
            transaction.service_entries.append(
                TransactionServiceEntry(
                    service_id=entry["service_id"],
                    quantity=quantity,
                    price=price,
                    amount=money(abs(quantity) * price),
                    note=entry.get("note"),
                )
            )

        self.db.flush()

    def _create_counterparty_entry(self, transaction: Transaction, data: Dict[str, Any], rule: TransactionTypeRule) -> None:
        """Derive the single counterparty entry implied by a sale, purchase, payment or loan."""
        cash_entries = data.get("cash_entries") or []
        cash_total = sum((to_decimal(e.get("amount")) for e in cash_entries), Decimal("0"))

        amount = money(rule.counterparty_amount(transaction.total_amount, transaction.paid_amount, cash_total))
        if amount == 0:
            logger.debug(f"No automatic counterparty entry for {transaction.number}: zero amount")
            return

        currency_id = transaction.currency_id
        if currency_id is None and cash_entries:
            currency_id = cash_entries[0]["currency_id"]
        if currency_id is None:
            currency_id = settings.DEFAULT_CURRENCY_ID

        transaction.counterparty_entries.append(
            TransactionCounterpartyEntry(
                counterparty_id=transaction.counterparty_id,
                currency_id=currency_id,
                amount=amount,
            )
        )
        logger.debug(f"Automatic counterparty entry for {transaction.number}: {amount}")

    def _post_entries(self, transaction: Transaction, sign: Decimal) -> None:
        """
        Walk every entry group in attachment order and apply sign * delta to its ledger.
        sign = 1 confirms, sign = -1 reverses. Reversals never touch avg_cost.
        """
        ledgers = self.ledgers

        for entry in transaction.cash_entries:
            ledgers.cash.post(entry.cash_register_id, entry.currency_id, sign * entry.amount)

        for item in transaction.items:
            price = item.price if sign > 0 else 0
            ledgers.stock.move(item.warehouse_id, item.product_id, sign * item.quantity, price)
            if item.warehouse_to_id:
                # Transfer: the destination receives what the source gave up.
                ledgers.stock.move(item.warehouse_to_id, item.product_id, sign * abs(item.quantity), price)

        for entry in transaction.counterparty_entries:
            ledgers.counterparty.post(entry.counterparty_id, entry.currency_id, sign * entry.amount)

        for entry in transaction.dividend_entries:
            if entry.type == BalanceEntryType.accrual:
                ledgers.dividend.accrue(entry.partner_id, entry.currency_id, sign * entry.amount)
            else:
                ledgers.dividend.pay(entry.partner_id, entry.currency_id, sign * entry.amount)

        for entry in transaction.salary_entries:
            if entry.type == BalanceEntryType.accrual:
                ledgers.salary.accrue(entry.user_id, entry.currency_id, sign * entry.amount)
            else:
                ledgers.salary.pay(entry.user_id, entry.currency_id, sign * entry.amount)
