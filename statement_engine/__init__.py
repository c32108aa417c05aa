"""
Trial Balance Statement Engine (``statement_engine``).

Responsibility
--------------
Turns an unordered trial balance into a balance sheet, income statement,
statement of changes in equity and simplified cash flow statement, under
IFRS or ASC presentation ordering, with optional normalization of
multi-currency entries into one reporting currency.

Architecture position
---------------------
Leaf-first: ``chart`` / ``classifier`` -> ``currency`` -> ``aggregation``
-> ``statements`` -> ``service``.  Everything below ``service`` is pure;
``rates`` is the only module performing I/O.

Invariants enforced
-------------------
* Conservation: category totals in debit-minus-credit terms plus the
  unmapped bucket equal the trial balance's net debit.
* One net income per bundle, shared by SOCIE and cash flow.

Failure modes
-------------
* ``InvalidStandardError``, ``MissingRateError``, ``InvalidRateError``,
  ``RateFetchError``, ``InvalidEntryError`` (see ``statement_kernel.exceptions``).
"""

from statement_engine.aggregation import AggregationTotals, aggregate
from statement_engine.chart import ChartOfAccounts
from statement_engine.classifier import (
    DEFAULT_KEYWORD_RULES,
    AccountClassifier,
    KeywordRule,
)
from statement_engine.config import (
    DEFAULT_CASH_FLOW_CLASSIFICATION,
    ReportingConfig,
    StatementOptions,
)
from statement_engine.currency import convert, normalize_rate_table
from statement_engine.models import (
    AccountClassification,
    BalanceSheet,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatement,
    EquityChanges,
    IncomeStatement,
    MajorCategory,
    NonCashKind,
    NormalBalance,
    PresentationStandard,
    ReportBundle,
    ReportMetadata,
    StatementRow,
    SubCategory,
    TrialBalanceEntry,
    UnmappedAccount,
    UnmappedSummary,
)
from statement_engine.rates import HttpRateProvider, RateProvider
from statement_engine.service import StatementService, generate_statements
from statement_engine.statements import (
    build_balance_sheet,
    build_cash_flow_statement,
    build_equity_changes,
    build_income_statement,
    render_to_dict,
)

__all__ = [
    # Config
    "ReportingConfig",
    "StatementOptions",
    "DEFAULT_CASH_FLOW_CLASSIFICATION",
    # Classification
    "ChartOfAccounts",
    "AccountClassifier",
    "KeywordRule",
    "DEFAULT_KEYWORD_RULES",
    # Currency
    "convert",
    "normalize_rate_table",
    "RateProvider",
    "HttpRateProvider",
    # Aggregation
    "AggregationTotals",
    "aggregate",
    # Models
    "AccountClassification",
    "BalanceSheet",
    "CashFlowLineItem",
    "CashFlowSection",
    "CashFlowStatement",
    "EquityChanges",
    "IncomeStatement",
    "MajorCategory",
    "NonCashKind",
    "NormalBalance",
    "PresentationStandard",
    "ReportBundle",
    "ReportMetadata",
    "StatementRow",
    "SubCategory",
    "TrialBalanceEntry",
    "UnmappedAccount",
    "UnmappedSummary",
    # Statements
    "build_balance_sheet",
    "build_cash_flow_statement",
    "build_equity_changes",
    "build_income_statement",
    "render_to_dict",
    # Service
    "StatementService",
    "generate_statements",
]
