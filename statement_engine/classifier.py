"""
Chart-of-Accounts Classifier (``statement_engine.classifier``).

Responsibility
--------------
Maps an account name or code to an ``AccountClassification``.  Pure and
total: every input, including empty or unknown names, resolves to a
classification and nothing is raised.

Resolution order
----------------
1. Exact, case-sensitive match in the injected ``ChartOfAccounts``.
2. Case-insensitive exact match in the same chart.
3. Keyword heuristic: the normalized lowercase name is tested against an
   ordered tuple of ``KeywordRule`` objects; the first match wins.
4. ``unmapped``.

Keyword rule priority
---------------------
Substrings overlap ("interest expense" also contains "interest", "income
tax payable" also contains "income"), so the order below is part of the
contract.  More specific phrases come first:

 1. accumulated depreciation / amortization   -> contra asset, noncurrent
 2. allowance for doubtful accounts            -> contra asset, current
 3. prepaid                                    -> asset, current
 4. payable / accrued, long-term or noncurrent -> liability, noncurrent
 5. payable / accrued                          -> liability, current
 6. deferred / unearned revenue                -> liability, current
 7. expense, cost of, depreciation, ...        -> expense
 8. dividends received / dividend income       -> revenue
 9. dividend / drawings                        -> contra equity
10. revenue, sales, income, gain, fees earned  -> revenue
11. loss, charges, rental, fees                -> expense
12. loan, debt, bond, liability, long-term     -> liability, noncurrent
13. loan, debt, bond, liability                -> liability, current
14. capital, equity, retained earnings, stock  -> equity
15. cash, bank, receivable, inventory, ...     -> asset, current
16. property, plant, equipment, intangible ... -> asset, noncurrent
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from statement_engine.chart import ChartOfAccounts
from statement_engine.models import (
    UNMAPPED,
    AccountClassification,
    MajorCategory,
    NormalBalance,
    SubCategory,
)

_DASHES = re.compile(r"[\u2010-\u2015\u2212]")
_SPACES = re.compile(r"\s+")


def normalize_account_name(name: str) -> str:
    """Lowercase, unify dash variants and collapse whitespace."""
    text = _DASHES.sub("-", name.casefold())
    return _SPACES.sub(" ", text).strip()


# =========================================================================
# Rule predicates
# =========================================================================

Predicate = Callable[[str], bool]


def contains_any(*needles: str) -> Predicate:
    """Match when the normalized name contains at least one needle."""
    return lambda name: any(n in name for n in needles)


def contains_all(*predicates: Predicate) -> Predicate:
    """Match when every predicate matches."""
    return lambda name: all(p(name) for p in predicates)


_LONG_TERM = contains_any("noncurrent", "non-current", "non current", "long")


@dataclass(frozen=True)
class KeywordRule:
    """A heuristic ``(predicate, classification)`` pair."""

    name: str
    predicate: Predicate
    classification: AccountClassification

    def matches(self, normalized_name: str) -> bool:
        return self.predicate(normalized_name)


def _asset(sub: SubCategory, contra: bool = False) -> AccountClassification:
    side = NormalBalance.CREDIT if contra else NormalBalance.DEBIT
    return AccountClassification(MajorCategory.ASSET, sub, side)


def _liability(sub: SubCategory) -> AccountClassification:
    return AccountClassification(MajorCategory.LIABILITY, sub)


_PAYABLE = contains_any("payable", "accrued", "accrual")
_BORROWING = contains_any("loan", "debt", "borrowing", "bond", "mortgage", "liabilit")

DEFAULT_KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        "accumulated_depreciation",
        contains_all(
            contains_any("accumulated"),
            contains_any("depreciation", "amortization", "amortisation"),
        ),
        _asset(SubCategory.NONCURRENT, contra=True),
    ),
    KeywordRule(
        "doubtful_allowance",
        contains_any("doubtful", "allowance for bad", "allowance for credit loss"),
        _asset(SubCategory.CURRENT, contra=True),
    ),
    KeywordRule("prepaid", contains_any("prepaid", "prepayment"), _asset(SubCategory.CURRENT)),
    KeywordRule(
        "payable_long_term",
        contains_all(_PAYABLE, _LONG_TERM),
        _liability(SubCategory.NONCURRENT),
    ),
    KeywordRule("payable", _PAYABLE, _liability(SubCategory.CURRENT)),
    KeywordRule(
        "unearned_revenue",
        contains_any("deferred revenue", "unearned", "deferred income", "customer deposit"),
        _liability(SubCategory.CURRENT),
    ),
    KeywordRule(
        "expense",
        contains_any(
            "expense",
            "cost of",
            "depreciation",
            "amortization",
            "amortisation",
            "compensation",
            "salar",
            "wage",
            "impairment",
        ),
        AccountClassification(MajorCategory.EXPENSE),
    ),
    KeywordRule(
        "dividend_income",
        contains_any("dividends received", "dividend received", "dividend income", "dividend revenue"),
        AccountClassification(MajorCategory.REVENUE),
    ),
    KeywordRule(
        "dividend",
        contains_any("dividend", "drawing"),
        AccountClassification(MajorCategory.EQUITY, normal_balance=NormalBalance.DEBIT),
    ),
    KeywordRule(
        "revenue",
        contains_any("revenue", "sales", "income", "fees earned", "gain"),
        AccountClassification(MajorCategory.REVENUE),
    ),
    KeywordRule(
        "expense_charge",
        contains_any("loss", "charges", "rental", "fees"),
        AccountClassification(MajorCategory.EXPENSE),
    ),
    KeywordRule(
        "borrowing_long_term",
        contains_all(_BORROWING, _LONG_TERM),
        _liability(SubCategory.NONCURRENT),
    ),
    KeywordRule("borrowing", _BORROWING, _liability(SubCategory.CURRENT)),
    KeywordRule(
        "equity",
        contains_any(
            "capital", "equity", "retained earning", "common stock",
            "preferred stock", "treasury stock", "share premium", "paid-in",
        ),
        AccountClassification(MajorCategory.EQUITY),
    ),
    KeywordRule(
        "current_asset",
        contains_any(
            "cash", "bank", "receivable", "inventor", "supplies",
            "short-term investment", "marketable",
        ),
        _asset(SubCategory.CURRENT),
    ),
    KeywordRule(
        "noncurrent_asset",
        contains_any(
            "property", "plant", "equipment", "intangible", "goodwill",
            "building", "land", "vehicle", "machinery", "furniture",
            "investment", "patent", "software",
        ),
        _asset(SubCategory.NONCURRENT),
    ),
)


# =========================================================================
# Classifier
# =========================================================================

class ClassificationSource(str, Enum):
    """Which resolution step produced a classification."""

    CHART_EXACT = "chart_exact"
    CHART_CASE_INSENSITIVE = "chart_case_insensitive"
    KEYWORD = "keyword"
    UNMAPPED = "unmapped"


@dataclass(frozen=True)
class Resolution:
    """A classification together with how it was reached."""

    classification: AccountClassification
    source: ClassificationSource
    rule: str | None = None


class AccountClassifier:
    """
    Total classifier over an injected chart and keyword rule set.

    Stateless after construction; safe to share across concurrent
    statement generations.
    """

    def __init__(
        self,
        chart: ChartOfAccounts | None = None,
        rules: Sequence[KeywordRule] = DEFAULT_KEYWORD_RULES,
    ):
        self._chart = chart if chart is not None else ChartOfAccounts.default()
        self._rules = tuple(rules)

    @property
    def chart(self) -> ChartOfAccounts:
        return self._chart

    @property
    def rules(self) -> tuple[KeywordRule, ...]:
        return self._rules

    def resolve(self, account_name: object) -> Resolution:
        """Classify and report which step matched."""
        if not isinstance(account_name, str):
            if account_name is None:
                return Resolution(UNMAPPED, ClassificationSource.UNMAPPED)
            account_name = str(account_name)

        exact = self._chart.get(account_name)
        if exact is not None:
            return Resolution(exact, ClassificationSource.CHART_EXACT)

        folded = self._chart.get_folded(account_name)
        if folded is not None:
            return Resolution(folded, ClassificationSource.CHART_CASE_INSENSITIVE)

        normalized = normalize_account_name(account_name)
        if normalized:
            for rule in self._rules:
                if rule.matches(normalized):
                    return Resolution(rule.classification, ClassificationSource.KEYWORD, rule.name)

        return Resolution(UNMAPPED, ClassificationSource.UNMAPPED)

    def classify(self, account_name: object) -> AccountClassification:
        """Classify an account name; unknown names resolve to ``unmapped``."""
        return self.resolve(account_name).classification
