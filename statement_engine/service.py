"""
Statement Orchestrator (``statement_engine.service``).

Responsibility
--------------
Single entry point for statement generation.  Sequences currency
normalization -> aggregation -> assembly and returns one ``ReportBundle``.
No financial logic lives here; it delegates to ``aggregation`` and the
pure assemblers in ``statements``.

Architecture position
---------------------
Outermost engine layer.  Constructor: ``config`` + ``classifier`` +
``clock``, all optional and injectable.  The chart of accounts is loaded
once at construction and shared read-only by every call.

Invariants enforced
-------------------
* Standard is validated before any entry is touched; no default is
  substituted for an invalid explicit value.
* Currency normalization is a complete pre-pass: every entry is converted
  before the first one is classified.
* Atomic: either a full ``ReportBundle`` is returned or an exception
  propagates; partial bundles are never produced.
* ``socie.net_income`` and ``cash_flow.net_income`` are the income
  statement's ``net_income`` object.
* No state is kept between calls; concurrent calls need no locking.

Failure modes
-------------
* Unknown standard  -> ``InvalidStandardError``.
* Entry currency without a rate  -> ``MissingRateError``.
* Rate provider failure (async path)  -> ``RateFetchError`` propagates.
* Malformed entry record  -> ``InvalidEntryError``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from typing import Any

from statement_kernel.clock import Clock, SystemClock
from statement_kernel.exceptions import MissingRateError
from statement_kernel.logging_config import LogContext, get_logger

from statement_engine.aggregation import aggregate
from statement_engine.chart import ChartOfAccounts
from statement_engine.classifier import AccountClassifier
from statement_engine.config import (
    ReportingConfig,
    StatementOptions,
    canonical_option_keys,
    resolve_cash_flow_overrides,
)
from statement_engine.currency import RateTable, convert, normalize_rate_table
from statement_engine.models import (
    PresentationStandard,
    ReportBundle,
    ReportMetadata,
    TrialBalanceEntry,
)
from statement_engine.rates import RateProvider
from statement_engine.statements import (
    build_balance_sheet,
    build_cash_flow_statement,
    build_equity_changes,
    build_income_statement,
    build_unmapped_summary,
    render_to_dict,
)

logger = get_logger("engine.service")

EntryInput = TrialBalanceEntry | Mapping[str, Any]


def coerce_entries(entries: Iterable[EntryInput]) -> list[TrialBalanceEntry]:
    """Materialize the input, building entries from plain records."""
    return [
        entry if isinstance(entry, TrialBalanceEntry) else TrialBalanceEntry.from_record(entry)
        for entry in entries
    ]


def needs_normalization(
    entries: Iterable[TrialBalanceEntry],
    reporting_currency: str | None,
) -> bool:
    """Whether any entry carries a currency other than the reporting one."""
    if reporting_currency is None:
        return False
    return any(
        entry.currency is not None and entry.currency != reporting_currency
        for entry in entries
    )


def normalize_entries(
    entries: list[TrialBalanceEntry],
    reporting_currency: str | None,
    rates: RateTable | None,
) -> list[TrialBalanceEntry]:
    """
    Convert every foreign-currency entry into ``reporting_currency``.

    Entries without a currency, or already in the reporting currency, pass
    through unchanged.  With no reporting currency nothing is converted.

    Raises:
        MissingRateError: a foreign entry's currency (or the reporting
            currency) has no rate, including when ``rates`` is None.
    """
    if reporting_currency is None:
        return entries

    normalized: list[TrialBalanceEntry] = []
    for entry in entries:
        if entry.currency is None or entry.currency == reporting_currency:
            normalized.append(entry)
            continue
        if rates is None:
            raise MissingRateError(entry.currency, entry.currency, reporting_currency)
        normalized.append(
            TrialBalanceEntry(
                account=entry.account,
                debit=convert(entry.debit, entry.currency, reporting_currency, rates),
                credit=convert(entry.credit, entry.currency, reporting_currency, rates),
                currency=reporting_currency,
            )
        )
    return normalized


class StatementService:
    """
    Financial statement generation service.

    Contract
    --------
    * ``generate_statements`` returns a complete ``ReportBundle`` or raises.
    * ``agenerate_statements`` awaits at most one rate fetch, then runs the
      same synchronous pipeline.

    Guarantees
    ----------
    * Clock is injectable for deterministic testing.
    * All monetary amounts use ``Decimal``.

    Non-goals
    ---------
    * Does NOT validate that debits equal credits.
    * Does NOT retry or time out rate fetches.
    """

    def __init__(
        self,
        config: ReportingConfig | None = None,
        classifier: AccountClassifier | None = None,
        clock: Clock | None = None,
    ):
        self._config = config or ReportingConfig.with_defaults()
        if classifier is None:
            chart = (
                ChartOfAccounts.from_yaml(self._config.chart_path)
                if self._config.chart_path
                else ChartOfAccounts.default()
            )
            classifier = AccountClassifier(chart)
        self._classifier = classifier
        self._clock = clock or SystemClock()

        logger.info(
            "statement_service_initialized",
            extra={
                "entity_name": self._config.entity_name,
                "standard": self._config.standard.value,
                "reporting_currency": self._config.reporting_currency,
                "chart_account_count": len(self._classifier.chart),
            },
        )

    @property
    def config(self) -> ReportingConfig:
        return self._config

    @property
    def classifier(self) -> AccountClassifier:
        return self._classifier

    def _standard(self, options: StatementOptions) -> PresentationStandard:
        if options.standard is None:
            return self._config.standard
        return PresentationStandard.parse(options.standard)

    def _reporting_currency(self, options: StatementOptions) -> str | None:
        return options.reporting_currency or self._config.reporting_currency

    # =========================================================================
    # Public API
    # =========================================================================

    def generate_statements(
        self,
        entries: Iterable[EntryInput],
        options: StatementOptions | None = None,
    ) -> ReportBundle:
        """
        Generate the four statements from a trial balance.

        Args:
            entries: ``TrialBalanceEntry`` objects or ``{account, debit,
                credit, currency?}`` records, in any order.
            options: Per-call overrides of the service configuration.

        Returns:
            ReportBundle with balance sheet, income statement, SOCIE, cash
            flow statement and the unmapped reconciliation bucket.
        """
        options = options or StatementOptions()
        standard = self._standard(options)
        currency = self._reporting_currency(options)

        with LogContext.bind(entity_name=self._config.entity_name, standard=standard.value):
            entry_list = coerce_entries(entries)
            rates = (
                normalize_rate_table(options.rate_table)
                if options.rate_table is not None
                else None
            )

            normalized = normalize_entries(entry_list, currency, rates)
            converted = sum(1 for a, b in zip(entry_list, normalized) if a is not b)
            if converted:
                logger.info(
                    "entries_normalized",
                    extra={
                        "reporting_currency": currency,
                        "converted_count": converted,
                        "entry_count": len(entry_list),
                    },
                )

            overrides = resolve_cash_flow_overrides(
                standard,
                self._config.cash_flow_overrides,
                options.classify_overrides,
            )
            totals = aggregate(normalized, self._classifier, overrides)

            income_statement = build_income_statement(totals)
            bundle = ReportBundle(
                metadata=ReportMetadata(
                    standard=standard,
                    currency=currency,
                    entity_name=self._config.entity_name,
                    generated_at=self._clock.now().isoformat(),
                    entry_count=totals.entry_count,
                ),
                balance_sheet=build_balance_sheet(
                    totals, standard, income_statement.net_income,
                ),
                income_statement=income_statement,
                socie=build_equity_changes(totals, income_statement),
                cash_flow=build_cash_flow_statement(totals, income_statement),
                unmapped=build_unmapped_summary(totals),
            )

            logger.info(
                "statements_generated",
                extra={
                    "entry_count": totals.entry_count,
                    "reporting_currency": currency,
                    "net_income": str(income_statement.net_income),
                    "is_balanced": bundle.balance_sheet.is_balanced,
                    "unmapped_count": len(bundle.unmapped.accounts),
                },
            )
        return bundle

    async def agenerate_statements(
        self,
        entries: Iterable[EntryInput],
        options: StatementOptions | None = None,
        rate_provider: RateProvider | None = None,
    ) -> ReportBundle:
        """
        Async variant that fetches a rate table when one is needed.

        The provider is awaited once, with the reporting currency as base,
        only if some entry needs converting and ``options.rate_table`` is
        absent.  Everything after the fetch is synchronous.
        """
        options = options or StatementOptions()
        # Validate before suspending
        self._standard(options)
        currency = self._reporting_currency(options)
        entry_list = coerce_entries(entries)

        if (
            rate_provider is not None
            and options.rate_table is None
            and needs_normalization(entry_list, currency)
        ):
            rates = await rate_provider.fetch_rates(currency)
            options = dataclasses.replace(options, rate_table=rates)

        return self.generate_statements(entry_list, options)

    def render(self, bundle: ReportBundle) -> dict[str, Any]:
        """Serialize a bundle at the configured ``display_precision``."""
        return render_to_dict(bundle, precision=self._config.display_precision)


def generate_statements(
    entries: Iterable[EntryInput],
    options: StatementOptions | None = None,
    **kwargs: Any,
) -> ReportBundle:
    """
    Convenience wrapper using a default ``StatementService``.

    Options may be given as a ``StatementOptions`` or as keyword arguments
    (``standard="ASC"``, ``reporting_currency="EUR"``, ...); keyword
    arguments override fields of ``options``.
    """
    if options is None:
        options = StatementOptions.from_dict(kwargs)
    elif kwargs:
        options = dataclasses.replace(options, **canonical_option_keys(kwargs))
    return StatementService().generate_statements(entries, options)
