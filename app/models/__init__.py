# app/models/__init__.py
from .references import CashRegister, CashRegisterType, Counterparty, Currency, Partner, Product, Service, User, Warehouse
from .balance import CashBalance, CounterpartyBalance, PartnerDividendBalance, SalaryBalance, StockBalance
from .transaction import (
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
from .recipe import Production, ProductionIngredient, ProductionOutput, Recipe, RecipeIngredient, RecipeOutput
