"""
Statement Engine Domain Models (``statement_engine.models``).

Responsibility
--------------
Frozen dataclass value objects for everything that crosses a component
boundary: trial balance entries in, account classifications between the
classifier and the aggregation pass, and the four statements plus the
unmapped reconciliation bucket out.

Architecture position
---------------------
Pure data definitions with ZERO I/O.  No dependency on the service,
the rate provider or configuration files.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields are ``Decimal``; ints, floats and numeric strings
  are coerced at the ``TrialBalanceEntry`` boundary.
* ``TrialBalanceEntry`` rejects empty account names and negative amounts.

Failure modes
-------------
* ``InvalidEntryError`` from ``TrialBalanceEntry`` construction.
* ``InvalidStandardError`` from ``PresentationStandard.parse``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from statement_kernel.exceptions import InvalidEntryError, InvalidStandardError

ZERO = Decimal("0")


# =========================================================================
# Enums
# =========================================================================


class PresentationStandard(str, Enum):
    """Presentation standard governing statement ordering."""

    IFRS = "IFRS"
    ASC = "ASC"

    @classmethod
    def parse(cls, value: PresentationStandard | str) -> PresentationStandard:
        """Resolve a standard by value; never substitutes a default."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            candidate = value.strip().upper()
            for member in cls:
                if member.value == candidate:
                    return member
        raise InvalidStandardError(value, tuple(m.value for m in cls))


class MajorCategory(str, Enum):
    """Financial statement category of a ledger account."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    UNMAPPED = "unmapped"


class SubCategory(str, Enum):
    """Balance sheet liquidity split for assets and liabilities."""

    CURRENT = "current"
    NONCURRENT = "noncurrent"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class CashFlowSection(str, Enum):
    """Sections of the statement of cash flows."""

    OPERATING = "operating"
    INVESTING = "investing"
    FINANCING = "financing"


class NonCashKind(str, Enum):
    """Non-cash expenses added back in the indirect-method operating figure."""

    DEPRECIATION = "depreciation"
    AMORTIZATION = "amortization"
    STOCK_COMPENSATION = "stock_compensation"


_NATURAL_SIDE: dict[MajorCategory, NormalBalance] = {
    MajorCategory.ASSET: NormalBalance.DEBIT,
    MajorCategory.EXPENSE: NormalBalance.DEBIT,
    MajorCategory.LIABILITY: NormalBalance.CREDIT,
    MajorCategory.EQUITY: NormalBalance.CREDIT,
    MajorCategory.REVENUE: NormalBalance.CREDIT,
    # Unmapped amounts are carried in debit-minus-credit terms
    MajorCategory.UNMAPPED: NormalBalance.DEBIT,
}


def natural_side(major: MajorCategory) -> NormalBalance:
    """Side on which a category's totals are naturally positive."""
    return _NATURAL_SIDE[major]


# =========================================================================
# Amount coercion
# =========================================================================


def coerce_amount(value: Any) -> Decimal:
    """
    Coerce a numeric input to a finite Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its
    binary expansion.  ``None`` is treated as zero.

    Raises:
        ValueError: value is not a finite number.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not an amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    else:
        raise ValueError(f"Unsupported amount type: {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


# =========================================================================
# Input
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceEntry:
    """
    One account line of an unordered trial balance.

    Both ``debit`` and ``credit`` may be populated; the net amount is
    still well-defined.
    """

    account: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    currency: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.account, str) or not self.account.strip():
            raise InvalidEntryError(str(self.account), "account name is empty")
        for side in ("debit", "credit"):
            try:
                amount = coerce_amount(getattr(self, side))
            except ValueError as exc:
                raise InvalidEntryError(self.account, f"{side}: {exc}") from exc
            if amount < ZERO:
                raise InvalidEntryError(self.account, f"{side} is negative ({amount})")
            object.__setattr__(self, side, amount)
        if self.currency is not None:
            code = str(self.currency).strip().upper()
            object.__setattr__(self, "currency", code or None)

    @property
    def net_debit(self) -> Decimal:
        """Debit minus credit."""
        return self.debit - self.credit

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> TrialBalanceEntry:
        """Build an entry from a parsed record (``account, debit, credit, currency?``)."""
        return cls(
            account=record.get("account", ""),
            debit=record.get("debit") or ZERO,
            credit=record.get("credit") or ZERO,
            currency=record.get("currency") or None,
        )


# =========================================================================
# Classification
# =========================================================================


@dataclass(frozen=True)
class AccountClassification:
    """
    Where a ledger account lands on the financial statements.

    ``normal_balance`` defaults to the category's natural side.  A
    classification whose normal balance is opposite to its category's
    natural side is a contra account (accumulated depreciation,
    dividends): its net reduces the category total.
    """

    major: MajorCategory
    sub: SubCategory | None = None
    normal_balance: NormalBalance | None = None

    def __post_init__(self) -> None:
        if self.normal_balance is None:
            object.__setattr__(self, "normal_balance", natural_side(self.major))
        if self.sub is not None and self.major not in (
            MajorCategory.ASSET,
            MajorCategory.LIABILITY,
        ):
            object.__setattr__(self, "sub", None)
        if self.sub is None and self.major in (
            MajorCategory.ASSET,
            MajorCategory.LIABILITY,
        ):
            object.__setattr__(self, "sub", SubCategory.CURRENT)

    @property
    def is_contra(self) -> bool:
        return (
            self.major is not MajorCategory.UNMAPPED
            and self.normal_balance != natural_side(self.major)
        )

    @property
    def is_mapped(self) -> bool:
        return self.major is not MajorCategory.UNMAPPED


UNMAPPED = AccountClassification(MajorCategory.UNMAPPED)


# =========================================================================
# Statements
# =========================================================================


@dataclass(frozen=True)
class StatementRow:
    """A labelled amount on a statement."""

    label: str
    amount: Decimal


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every report bundle."""

    standard: PresentationStandard
    currency: str | None
    entity_name: str
    generated_at: str  # ISO format timestamp
    entry_count: int = 0


@dataclass(frozen=True)
class BalanceSheet:
    """
    Statement of financial position.

    Asset and liability rows are ordered current-first under ASC and
    noncurrent-first under IFRS.  Amounts are natural balances, positive
    when an account carries its normal balance.
    """

    standard: PresentationStandard
    assets: tuple[StatementRow, ...]
    liabilities: tuple[StatementRow, ...]
    equity: tuple[StatementRow, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    current_period_earnings: Decimal
    # total_assets == total_liabilities + total_equity + current_period_earnings
    is_balanced: bool


@dataclass(frozen=True)
class IncomeStatement:
    """Single-step income statement: Revenue - Expenses = Net Income."""

    revenues: tuple[StatementRow, ...]
    expenses: tuple[StatementRow, ...]
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal


@dataclass(frozen=True)
class EquityChanges:
    """Statement of changes in equity (retained earnings roll-forward)."""

    opening_retained_earnings: Decimal
    net_income: Decimal
    dividends: Decimal
    ending_retained_earnings: Decimal


@dataclass(frozen=True)
class CashFlowLineItem:
    """A single line in a cash flow section."""

    description: str
    amount: Decimal


@dataclass(frozen=True)
class CashFlowStatement:
    """
    Simplified indirect-method statement of cash flows.

    Operating = net income + non-cash add-backs + operating reclassifications.
    Investing and financing carry only accounts routed there by overrides.
    """

    net_income: Decimal
    non_cash_adjustments: tuple[CashFlowLineItem, ...]
    operating_reclassifications: tuple[CashFlowLineItem, ...]
    investing_activities: tuple[CashFlowLineItem, ...]
    financing_activities: tuple[CashFlowLineItem, ...]
    operating: Decimal
    investing: Decimal
    financing: Decimal
    net_change_in_cash: Decimal


@dataclass(frozen=True)
class UnmappedAccount:
    """An account the classifier could not place, with its debit-minus-credit net."""

    account: str
    net_amount: Decimal


@dataclass(frozen=True)
class UnmappedSummary:
    """Reconciliation bucket for accounts excluded from every statement."""

    accounts: tuple[UnmappedAccount, ...] = field(default_factory=tuple)
    total: Decimal = ZERO


@dataclass(frozen=True)
class ReportBundle:
    """The four statements generated from one trial balance."""

    metadata: ReportMetadata
    balance_sheet: BalanceSheet
    income_statement: IncomeStatement
    socie: EquityChanges
    cash_flow: CashFlowStatement
    unmapped: UnmappedSummary
