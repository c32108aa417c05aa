"""
Chart of Accounts (``statement_engine.chart``).

Responsibility
--------------
Holds the static table of known account names and their statement
classification.  The table is constructed explicitly (from the packaged
YAML, a caller's YAML file, or a plain mapping), is immutable once built,
and is injected into ``AccountClassifier``.  There is no module-level
singleton: every engine instance owns the chart it was given.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown category, sub-category or balance side  -> ``ChartOfAccountsError``.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from statement_kernel.exceptions import ChartOfAccountsError
from statement_kernel.logging_config import get_logger

from statement_engine.models import (
    AccountClassification,
    MajorCategory,
    NormalBalance,
    SubCategory,
)

logger = get_logger("engine.chart")

DEFAULT_CHART_PATH = Path(__file__).parent / "data" / "chart_of_accounts.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_classification(name: str, data: Mapping[str, Any]) -> AccountClassification:
    """Parse one chart row (``major``, optional ``sub`` and ``normal_balance``)."""
    if not isinstance(data, Mapping):
        raise ChartOfAccountsError(name, "row must be a mapping")
    if "major" not in data:
        raise ChartOfAccountsError(name, "missing 'major'")
    try:
        major = MajorCategory(str(data["major"]).lower())
        sub = SubCategory(str(data["sub"]).lower()) if data.get("sub") else None
        side = (
            NormalBalance(str(data["normal_balance"]).lower())
            if data.get("normal_balance")
            else None
        )
    except ValueError as exc:
        raise ChartOfAccountsError(name, str(exc)) from exc
    if major is MajorCategory.UNMAPPED:
        raise ChartOfAccountsError(name, "'unmapped' cannot be assigned explicitly")
    return AccountClassification(major=major, sub=sub, normal_balance=side)


class ChartOfAccounts(Mapping[str, AccountClassification]):
    """
    Immutable name -> classification table.

    Supports exact (case-sensitive) lookup through the ``Mapping``
    interface and case-insensitive lookup through ``get_folded``.
    """

    def __init__(self, accounts: Mapping[str, AccountClassification]):
        self._accounts = MappingProxyType(dict(accounts))
        folded: dict[str, AccountClassification] = {}
        for name, classification in self._accounts.items():
            # First spelling wins when two names differ only by case
            folded.setdefault(name.casefold(), classification)
        self._folded = MappingProxyType(folded)

    def __getitem__(self, name: str) -> AccountClassification:
        return self._accounts[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._accounts)

    def __len__(self) -> int:
        return len(self._accounts)

    def get_folded(self, name: str) -> AccountClassification | None:
        """Case-insensitive lookup (surrounding whitespace ignored)."""
        return self._folded.get(name.strip().casefold())

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> ChartOfAccounts:
        """Build a chart from ``{name: {major, sub?, normal_balance?}}``."""
        return cls(
            {name: parse_classification(name, row) for name, row in data.items()}
        )

    @classmethod
    def from_yaml(cls, path: Path | str) -> ChartOfAccounts:
        """Load a chart from a YAML file with a top-level ``accounts`` mapping."""
        raw = load_yaml_file(Path(path))
        accounts = raw.get("accounts", {})
        if not isinstance(accounts, Mapping):
            raise ChartOfAccountsError(str(path), "'accounts' must be a mapping")
        chart = cls.from_dict(accounts)
        logger.info(
            "chart_of_accounts_loaded",
            extra={"path": str(path), "account_count": len(chart)},
        )
        return chart

    @classmethod
    def default(cls) -> ChartOfAccounts:
        """The packaged default chart."""
        return cls.from_yaml(DEFAULT_CHART_PATH)
