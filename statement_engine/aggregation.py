"""
Aggregation Pass (``statement_engine.aggregation``).

Folds a trial balance into per-category running totals in one linear,
order-independent pass.  The resulting ``AggregationTotals`` is the only
input the statement assemblers read; no assembler goes back to the raw
entries.

Sign conventions
----------------
* ``net = debit - credit`` for debit-normal classifications and
  ``credit - debit`` for credit-normal ones.
* Contra classifications (normal side opposite to the category's natural
  side) negate ``net`` before it is added, so accumulated depreciation
  reduces assets and dividends reduce equity.
* Category totals are therefore natural balances: positive when the
  category carries its normal balance.

Conservation
------------
Converting every category total back to debit-minus-credit terms and
adding the unmapped bucket reproduces ``sum(debit - credit)`` over all
entries.  ``AggregationTotals.signed_total()`` performs that conversion.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from statement_kernel.logging_config import get_logger

from statement_engine.classifier import AccountClassifier, contains_any, normalize_account_name
from statement_engine.models import (
    ZERO,
    AccountClassification,
    CashFlowSection,
    MajorCategory,
    NonCashKind,
    NormalBalance,
    SubCategory,
    TrialBalanceEntry,
    UnmappedAccount,
    natural_side,
)

logger = get_logger("engine.aggregation")

CategoryKey = tuple[MajorCategory, SubCategory | None]

# Equity trackers match by name among accounts classified as equity only;
# dividend income and dividends payable are not distributions.
_is_retained_earnings = contains_any("retained earning")
_is_dividend = contains_any("dividend")

NON_CASH_KEYWORDS: tuple[tuple[NonCashKind, tuple[str, ...]], ...] = (
    (NonCashKind.DEPRECIATION, ("depreciation",)),
    (NonCashKind.AMORTIZATION, ("amortization", "amortisation")),
    (
        NonCashKind.STOCK_COMPENSATION,
        (
            "stock compensation", "stock-based compensation", "stock based compensation",
            "share-based", "share based", "equity compensation",
        ),
    ),
)


def natural_net(entry: TrialBalanceEntry, classification: AccountClassification) -> Decimal:
    """Net amount on the classification's normal side."""
    if classification.normal_balance == NormalBalance.DEBIT:
        return entry.debit - entry.credit
    return entry.credit - entry.debit


def non_cash_kind(normalized_name: str) -> NonCashKind | None:
    """Which non-cash add-back an expense account name denotes, if any."""
    for kind, needles in NON_CASH_KEYWORDS:
        if any(n in normalized_name for n in needles):
            return kind
    return None


@dataclass(frozen=True)
class CashFlowItem:
    """An account routed to a cash flow section by the override table."""

    account: str
    section: CashFlowSection
    # credit - debit: positive is a cash inflow
    amount: Decimal
    # Revenue/expense accounts are already inside net income
    in_net_income: bool


@dataclass(frozen=True)
class AggregationTotals:
    """
    Category totals for one generation call.

    Created fresh by ``aggregate`` and discarded after assembly.
    """

    category_totals: Mapping[CategoryKey, Decimal]
    opening_retained_earnings: Decimal = ZERO
    dividends: Decimal = ZERO
    non_cash_addbacks: Mapping[NonCashKind, Decimal] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    cash_flow_items: tuple[CashFlowItem, ...] = ()
    unmapped_accounts: tuple[UnmappedAccount, ...] = ()
    unmapped_total: Decimal = ZERO
    entry_count: int = 0

    def bucket(self, major: MajorCategory, sub: SubCategory | None = None) -> Decimal:
        """Natural-balance total of one ``(major, sub)`` bucket."""
        return self.category_totals.get((major, sub), ZERO)

    def category_total(self, major: MajorCategory) -> Decimal:
        """Natural-balance total of a major category across sub-categories."""
        return sum(
            (amount for (m, _), amount in self.category_totals.items() if m is major),
            ZERO,
        )

    @property
    def revenue(self) -> Decimal:
        return self.category_total(MajorCategory.REVENUE)

    @property
    def expenses(self) -> Decimal:
        return self.category_total(MajorCategory.EXPENSE)

    def signed_total(self) -> Decimal:
        """All category totals in debit-minus-credit terms, plus unmapped."""
        total = self.unmapped_total
        for (major, _), amount in self.category_totals.items():
            if natural_side(major) == NormalBalance.DEBIT:
                total += amount
            else:
                total -= amount
        return total


def aggregate(
    entries: Iterable[TrialBalanceEntry],
    classifier: AccountClassifier,
    cash_flow_overrides: Mapping[str, CashFlowSection] | None = None,
) -> AggregationTotals:
    """
    Fold trial balance entries into ``AggregationTotals``.

    ``cash_flow_overrides`` keys are case-folded account names (see
    ``config.resolve_cash_flow_overrides``).
    """
    overrides = cash_flow_overrides or {}
    buckets: dict[CategoryKey, Decimal] = {}
    addbacks: dict[NonCashKind, Decimal] = {}
    unmapped: dict[str, Decimal] = {}
    cash_flow_items: list[CashFlowItem] = []
    opening_re = ZERO
    dividends = ZERO
    unmapped_total = ZERO
    count = 0

    for entry in entries:
        count += 1
        classification = classifier.classify(entry.account)
        name = normalize_account_name(entry.account)

        if not classification.is_mapped:
            unmapped_total += entry.net_debit
            unmapped[entry.account] = unmapped.get(entry.account, ZERO) + entry.net_debit
            continue

        net = natural_net(entry, classification)
        if classification.is_contra:
            net = -net
        key = (classification.major, classification.sub)
        buckets[key] = buckets.get(key, ZERO) + net

        if classification.major is MajorCategory.EQUITY:
            if _is_retained_earnings(name):
                opening_re += entry.credit - entry.debit
            elif _is_dividend(name):
                dividends += entry.debit - entry.credit

        if classification.major is MajorCategory.EXPENSE:
            kind = non_cash_kind(name)
            if kind is not None:
                addbacks[kind] = addbacks.get(kind, ZERO) + net

        section = overrides.get(entry.account.strip().casefold())
        if section is not None:
            cash_flow_items.append(
                CashFlowItem(
                    account=entry.account,
                    section=section,
                    amount=entry.credit - entry.debit,
                    in_net_income=classification.major
                    in (MajorCategory.REVENUE, MajorCategory.EXPENSE),
                )
            )

    unmapped_accounts = tuple(
        UnmappedAccount(account=account, net_amount=amount)
        for account, amount in sorted(unmapped.items())
    )
    if unmapped_accounts:
        logger.warning(
            "unmapped_accounts_detected",
            extra={
                "unmapped_count": len(unmapped_accounts),
                "unmapped_total": str(unmapped_total),
                "accounts": [a.account for a in unmapped_accounts],
            },
        )

    totals = AggregationTotals(
        category_totals=MappingProxyType(buckets),
        opening_retained_earnings=opening_re,
        dividends=dividends,
        non_cash_addbacks=MappingProxyType(addbacks),
        cash_flow_items=tuple(
            sorted(cash_flow_items, key=lambda i: (i.section.value, i.account, i.amount))
        ),
        unmapped_accounts=unmapped_accounts,
        unmapped_total=unmapped_total,
        entry_count=count,
    )
    logger.debug(
        "trial_balance_aggregated",
        extra={
            "entry_count": count,
            "bucket_count": len(buckets),
            "revenue": str(totals.revenue),
            "expenses": str(totals.expenses),
        },
    )
    return totals
