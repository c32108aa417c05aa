"""
Reporting Configuration Schema.

``ReportingConfig`` carries engine-instance defaults (presentation
standard, reporting currency, display precision, chart location, cash-flow
routing).  ``StatementOptions`` carries the per-call overrides accepted by
``StatementService.generate_statements``.

Cash-flow routing maps specific account names to a statement of cash
flows section.  Defaults per standard:

    Account              | ASC        | IFRS
    ---------------------|------------|-----------
    Interest Income      | operating  | operating
    Interest Expense     | operating  | operating
    Dividends Received   | operating  | operating
    Dividends Paid       | financing  | financing

IAS 7 also permits interest and dividends received in investing, and
interest paid in financing; callers elect those through overrides.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Self

from statement_kernel.exceptions import InvalidCashFlowSectionError
from statement_kernel.logging_config import get_logger

from statement_engine.chart import load_yaml_file
from statement_engine.models import CashFlowSection, PresentationStandard

logger = get_logger("engine.config")

_SHARED_CASH_FLOW_DEFAULTS: dict[str, CashFlowSection] = {
    "Interest Income": CashFlowSection.OPERATING,
    "Interest Expense": CashFlowSection.OPERATING,
    "Dividends Received": CashFlowSection.OPERATING,
    "Dividends Paid": CashFlowSection.FINANCING,
}

DEFAULT_CASH_FLOW_CLASSIFICATION: Mapping[PresentationStandard, Mapping[str, CashFlowSection]] = (
    MappingProxyType({
        PresentationStandard.ASC: MappingProxyType(dict(_SHARED_CASH_FLOW_DEFAULTS)),
        PresentationStandard.IFRS: MappingProxyType(dict(_SHARED_CASH_FLOW_DEFAULTS)),
    })
)


def parse_cash_flow_section(account: str, value: CashFlowSection | str) -> CashFlowSection:
    """Resolve a section name, raising a typed error for unknown values."""
    if isinstance(value, CashFlowSection):
        return value
    try:
        return CashFlowSection(str(value).strip().lower())
    except ValueError:
        raise InvalidCashFlowSectionError(account, value) from None


def resolve_cash_flow_overrides(
    standard: PresentationStandard,
    *layers: Mapping[str, CashFlowSection | str] | None,
) -> Mapping[str, CashFlowSection]:
    """
    Merge the standard's defaults with override layers, later layers winning.

    Keys of the result are case-folded account names.
    """
    merged: dict[str, CashFlowSection] = {
        name.casefold(): section
        for name, section in DEFAULT_CASH_FLOW_CLASSIFICATION[standard].items()
    }
    for layer in layers:
        if not layer:
            continue
        for account, section in layer.items():
            merged[str(account).strip().casefold()] = parse_cash_flow_section(account, section)
    return MappingProxyType(merged)


def _normalize_currency(code: str | None) -> str | None:
    if code is None:
        return None
    code = str(code).strip().upper()
    if len(code) != 3:
        raise ValueError("reporting_currency must be a 3-letter ISO 4217 code")
    return code


@dataclass
class ReportingConfig:
    """
    Configuration schema for a statement engine instance.

    Loaded once at startup and treated as read-only afterwards.
    """

    # Default presentation standard when a call does not name one
    standard: PresentationStandard = PresentationStandard.IFRS

    # Currency all entries are normalized into; None disables normalization
    reporting_currency: str | None = None

    # Entity name shown on reports
    entity_name: str = "Company"

    # Rounding precision for display fields
    display_precision: int = 2

    # Chart of accounts YAML; None uses the packaged default chart
    chart_path: str | None = None

    # Account name -> cash flow section, layered over the standard's defaults
    cash_flow_overrides: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.standard = PresentationStandard.parse(self.standard)
        self.reporting_currency = _normalize_currency(self.reporting_currency)
        if self.display_precision < 0:
            raise ValueError("display_precision cannot be negative")
        for account, section in self.cash_flow_overrides.items():
            parse_cash_flow_section(account, section)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Create config from dictionary."""
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: Path | str) -> Self:
        """Create config from the ``reporting`` section of a YAML file."""
        raw = load_yaml_file(Path(path))
        return cls.from_dict(raw.get("reporting", raw))


_OPTION_ALIASES = {
    "reportingCurrency": "reporting_currency",
    "rateTable": "rate_table",
    "classifyOverrides": "classify_overrides",
    "classify": "classify_overrides",
}


def canonical_option_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase option keys onto ``StatementOptions`` field names."""
    return {_OPTION_ALIASES.get(key, key): value for key, value in data.items()}


@dataclass(frozen=True)
class StatementOptions:
    """
    Per-call options for statement generation.

    Any field left as None falls back to the engine's ``ReportingConfig``.
    ``standard`` is validated eagerly; an unrecognized value raises
    ``InvalidStandardError`` rather than falling back to a default.
    """

    standard: PresentationStandard | str | None = None
    reporting_currency: str | None = None
    rate_table: Mapping[str, Any] | None = None
    classify_overrides: Mapping[str, CashFlowSection | str] | None = None

    def __post_init__(self):
        if self.standard is not None:
            object.__setattr__(self, "standard", PresentationStandard.parse(self.standard))
        object.__setattr__(
            self, "reporting_currency", _normalize_currency(self.reporting_currency),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatementOptions:
        """Accept both snake_case and the camelCase keys used by web callers."""
        return cls(**canonical_option_keys(data))
