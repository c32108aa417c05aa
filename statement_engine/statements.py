"""
Pure financial statement assembly functions.

These functions turn one ``AggregationTotals`` into the four statements
and the unmapped reconciliation bucket.  ZERO I/O. ZERO side effects.

All monetary values are Decimal. All outputs are frozen dataclasses.

- No assembler reads raw trial balance entries.
- No clock access (the service stamps metadata).
- Deterministic: same totals always produce the same statements.
- Net income is computed once, by ``build_income_statement``; every other
  statement receives that value.
"""

from __future__ import annotations

import dataclasses
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from statement_engine.aggregation import AggregationTotals
from statement_engine.models import (
    ZERO,
    BalanceSheet,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatement,
    EquityChanges,
    IncomeStatement,
    MajorCategory,
    NonCashKind,
    PresentationStandard,
    StatementRow,
    SubCategory,
    UnmappedSummary,
)

# Order in which liquidity buckets are presented, per standard
SUB_CATEGORY_ORDER: dict[PresentationStandard, tuple[SubCategory, ...]] = {
    PresentationStandard.ASC: (SubCategory.CURRENT, SubCategory.NONCURRENT),
    PresentationStandard.IFRS: (SubCategory.NONCURRENT, SubCategory.CURRENT),
}

_NON_CASH_LABELS: dict[NonCashKind, str] = {
    NonCashKind.DEPRECIATION: "Add back: Depreciation",
    NonCashKind.AMORTIZATION: "Add back: Amortization",
    NonCashKind.STOCK_COMPENSATION: "Add back: Stock Compensation",
}


def format_label(sub: SubCategory, major: MajorCategory) -> str:
    """``(noncurrent, asset)`` -> ``"Noncurrent Assets"``."""
    plural = "Liabilities" if major is MajorCategory.LIABILITY else f"{major.value.title()}s"
    return f"{sub.value.title()} {plural}"


def _sum_rows(rows: tuple[StatementRow, ...]) -> Decimal:
    return sum((row.amount for row in rows), ZERO)


def _liquidity_rows(
    totals: AggregationTotals,
    major: MajorCategory,
    standard: PresentationStandard,
) -> tuple[StatementRow, ...]:
    return tuple(
        StatementRow(label=format_label(sub, major), amount=totals.bucket(major, sub))
        for sub in SUB_CATEGORY_ORDER[standard]
    )


# =========================================================================
# 1. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    totals: AggregationTotals,
    standard: PresentationStandard,
    net_income: Decimal,
) -> BalanceSheet:
    """
    Build a classified balance sheet (ASC 210 / IAS 1 ordering).

    1. Asset and liability rows per liquidity bucket, current-first under
       ASC and noncurrent-first under IFRS
    2. A single equity row (contra equity such as dividends already netted)
    3. Net income for the period is not closed into equity; the check is
       ``assets == liabilities + equity + net_income``
    """
    assets = _liquidity_rows(totals, MajorCategory.ASSET, standard)
    liabilities = _liquidity_rows(totals, MajorCategory.LIABILITY, standard)
    equity = (
        StatementRow(label="Equity", amount=totals.category_total(MajorCategory.EQUITY)),
    )

    total_assets = _sum_rows(assets)
    total_liabilities = _sum_rows(liabilities)
    total_equity = _sum_rows(equity)

    return BalanceSheet(
        standard=standard,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        total_equity=total_equity,
        current_period_earnings=net_income,
        is_balanced=(total_assets == total_liabilities + total_equity + net_income),
    )


# =========================================================================
# 2. INCOME STATEMENT
# =========================================================================


def build_income_statement(totals: AggregationTotals) -> IncomeStatement:
    """Single-step income statement: net income = revenue - expenses."""
    total_revenue = totals.revenue
    total_expenses = totals.expenses
    return IncomeStatement(
        revenues=(StatementRow(label="Revenue", amount=total_revenue),),
        expenses=(StatementRow(label="Expenses", amount=total_expenses),),
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_income=total_revenue - total_expenses,
    )


# =========================================================================
# 3. STATEMENT OF CHANGES IN EQUITY
# =========================================================================


def build_equity_changes(
    totals: AggregationTotals,
    income_statement: IncomeStatement,
) -> EquityChanges:
    """
    Roll retained earnings forward.

    ``net_income`` is taken from ``income_statement`` as-is.
    """
    opening = totals.opening_retained_earnings
    net_income = income_statement.net_income
    dividends = totals.dividends
    return EquityChanges(
        opening_retained_earnings=opening,
        net_income=net_income,
        dividends=dividends,
        ending_retained_earnings=opening + net_income - dividends,
    )


# =========================================================================
# 4. CASH FLOW STATEMENT
# =========================================================================


def build_cash_flow_statement(
    totals: AggregationTotals,
    income_statement: IncomeStatement,
) -> CashFlowStatement:
    """
    Simplified indirect-method statement of cash flows (ASC 230 / IAS 7).

    Steps:
    1. Net income from the income statement
    2. Add back non-cash expenses (depreciation, amortization, stock
       compensation)
    3. Accounts routed by the override table: each contributes its cash
       effect (credit - debit) to its section.  Revenue and expense
       accounts routed outside operating are also backed out of operating,
       since net income already contains them.
    4. Investing and financing hold only routed accounts
    """
    net_income = income_statement.net_income

    non_cash = tuple(
        CashFlowLineItem(description=_NON_CASH_LABELS[kind], amount=amount)
        for kind in NonCashKind
        if (amount := totals.non_cash_addbacks.get(kind, ZERO)) != ZERO
    )

    operating_lines: list[CashFlowLineItem] = []
    section_lines: dict[CashFlowSection, list[CashFlowLineItem]] = {
        CashFlowSection.INVESTING: [],
        CashFlowSection.FINANCING: [],
    }
    for item in totals.cash_flow_items:
        if item.section is CashFlowSection.OPERATING:
            # Already inside net income; routing it to operating is a no-op
            if not item.in_net_income:
                operating_lines.append(CashFlowLineItem(item.account, item.amount))
            continue
        section_lines[item.section].append(CashFlowLineItem(item.account, item.amount))
        if item.in_net_income:
            operating_lines.append(
                CashFlowLineItem(f"Reclassified to {item.section.value}: {item.account}", -item.amount)
            )

    operating_reclassifications = tuple(operating_lines)
    investing_activities = tuple(section_lines[CashFlowSection.INVESTING])
    financing_activities = tuple(section_lines[CashFlowSection.FINANCING])

    def _total(lines: tuple[CashFlowLineItem, ...]) -> Decimal:
        return sum((line.amount for line in lines), ZERO)

    operating = net_income + _total(non_cash) + _total(operating_reclassifications)
    investing = _total(investing_activities)
    financing = _total(financing_activities)

    return CashFlowStatement(
        net_income=net_income,
        non_cash_adjustments=non_cash,
        operating_reclassifications=operating_reclassifications,
        investing_activities=investing_activities,
        financing_activities=financing_activities,
        operating=operating,
        investing=investing,
        financing=financing,
        net_change_in_cash=operating + investing + financing,
    )


# =========================================================================
# 5. UNMAPPED RECONCILIATION
# =========================================================================


def build_unmapped_summary(totals: AggregationTotals) -> UnmappedSummary:
    return UnmappedSummary(accounts=totals.unmapped_accounts, total=totals.unmapped_total)


# =========================================================================
# Serialization
# =========================================================================


def render_to_dict(
    obj: object,
    precision: int | None = 2,
) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Handles:
    - Decimal -> str, rounded half-up to ``precision`` places
      (``precision=None`` keeps full precision)
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    - None preserved
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        if precision is None:
            return str(obj)
        return str(obj.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP))
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item, precision) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v, precision) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name), precision)
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
