"""
Tests for the statement orchestrator (statement_engine/service.py).

Covers option resolution, currency normalization as a pre-pass, atomic
failure, the cross-statement net income contract and log events.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from statement_kernel.exceptions import (
    InvalidEntryError,
    InvalidStandardError,
    MissingRateError,
    RateFetchError,
)
from statement_engine.config import ReportingConfig, StatementOptions
from statement_engine.models import (
    PresentationStandard,
    ReportBundle,
    TrialBalanceEntry,
    UnmappedAccount,
)
from statement_engine.service import (
    StatementService,
    generate_statements,
    needs_normalization,
    normalize_entries,
)
from statement_engine.statements import render_to_dict

# =========================================================================
# Fixtures / helpers
# =========================================================================

SOCIE_EXAMPLE = [
    {"account": "Sales Revenue", "credit": 1000},
    {"account": "Rent Expense", "debit": 400},
    {"account": "Retained Earnings", "credit": 200},
    {"account": "Dividends", "debit": 50},
]


def _ordering_entries() -> list[TrialBalanceEntry]:
    return [
        TrialBalanceEntry("Property, Plant & Equipment", debit=Decimal("500")),
        TrialBalanceEntry("Cash", debit=Decimal("100")),
    ]


class _StubRateProvider:
    """Records calls and returns a fixed table."""

    def __init__(self, rates=None, error: Exception | None = None):
        self.rates = rates or {}
        self.error = error
        self.calls: list[str] = []

    async def fetch_rates(self, base: str):
        self.calls.append(base)
        if self.error is not None:
            raise self.error
        return self.rates


# =========================================================================
# Bundle contents
# =========================================================================


class TestGenerateStatements:

    def test_socie_roll_forward(self, statement_service):
        bundle = statement_service.generate_statements(SOCIE_EXAMPLE)
        assert bundle.income_statement.net_income == Decimal("600")
        assert bundle.socie.opening_retained_earnings == Decimal("200")
        assert bundle.socie.dividends == Decimal("50")
        assert bundle.socie.ending_retained_earnings == Decimal("750")

    def test_net_income_is_shared_object(self, statement_service):
        bundle = statement_service.generate_statements(SOCIE_EXAMPLE)
        assert bundle.socie.net_income is bundle.income_statement.net_income
        assert bundle.cash_flow.net_income is bundle.income_statement.net_income
        assert bundle.balance_sheet.current_period_earnings is bundle.income_statement.net_income

    def test_asc_current_assets_first(self, statement_service):
        bundle = statement_service.generate_statements(
            _ordering_entries(), StatementOptions(standard="ASC"),
        )
        assert [r.label for r in bundle.balance_sheet.assets] == [
            "Current Assets", "Noncurrent Assets",
        ]
        assert bundle.balance_sheet.assets[0].amount == Decimal("100")

    def test_ifrs_noncurrent_assets_first(self, statement_service):
        bundle = statement_service.generate_statements(
            _ordering_entries(), StatementOptions(standard="IFRS"),
        )
        assert [r.label for r in bundle.balance_sheet.assets] == [
            "Noncurrent Assets", "Current Assets",
        ]
        assert bundle.balance_sheet.assets[0].amount == Decimal("500")

    def test_config_standard_used_when_option_absent(self, classifier, deterministic_clock):
        service = StatementService(
            ReportingConfig(standard="ASC"), classifier, deterministic_clock,
        )
        bundle = service.generate_statements(_ordering_entries())
        assert bundle.metadata.standard is PresentationStandard.ASC
        assert bundle.balance_sheet.assets[0].label == "Current Assets"

    def test_unmapped_exposed(self, statement_service):
        bundle = statement_service.generate_statements(
            [TrialBalanceEntry("Mystery Account", debit=Decimal("30"))],
        )
        assert bundle.unmapped.total == Decimal("30")
        assert bundle.unmapped.accounts == (UnmappedAccount("Mystery Account", Decimal("30")),)
        assert bundle.balance_sheet.total_assets == Decimal("0")
        assert bundle.income_statement.net_income == Decimal("0")

    def test_metadata(self, statement_service, deterministic_clock):
        bundle = statement_service.generate_statements(SOCIE_EXAMPLE)
        assert bundle.metadata.entity_name == "Company"
        assert bundle.metadata.generated_at == deterministic_clock.now().isoformat()
        assert bundle.metadata.entry_count == 4
        assert bundle.metadata.currency is None

    def test_accepts_generator_input(self, statement_service):
        bundle = statement_service.generate_statements(
            TrialBalanceEntry.from_record(r) for r in SOCIE_EXAMPLE
        )
        assert bundle.income_statement.net_income == Decimal("600")

    def test_invalid_record_rejected(self, statement_service):
        with pytest.raises(InvalidEntryError):
            statement_service.generate_statements([{"account": "", "debit": 5}])

    def test_classify_overrides_route_cash_flow(self, statement_service):
        entries = [
            {"account": "Sales Revenue", "credit": 1000},
            {"account": "Interest Income", "credit": 100},
        ]
        bundle = statement_service.generate_statements(
            entries,
            StatementOptions(classify_overrides={"Interest Income": "investing"}),
        )
        assert bundle.cash_flow.investing == Decimal("100")
        assert bundle.cash_flow.operating == Decimal("1000")
        assert bundle.cash_flow.net_change_in_cash == Decimal("1100")

    def test_default_dividends_paid_financing(self, statement_service):
        bundle = statement_service.generate_statements(
            [{"account": "Dividends Paid", "debit": 50}],
        )
        assert bundle.cash_flow.financing == Decimal("-50")

    def test_bundle_renders(self, statement_service):
        bundle = statement_service.generate_statements(SOCIE_EXAMPLE)
        rendered = render_to_dict(bundle)
        assert rendered["socie"]["ending_retained_earnings"] == "750.00"
        assert rendered["metadata"]["standard"] == "IFRS"

    def test_render_uses_configured_precision(self, classifier, deterministic_clock):
        service = StatementService(
            ReportingConfig(display_precision=0), classifier, deterministic_clock,
        )
        bundle = service.generate_statements([
            {"account": "Cash", "debit": "10.46"},
            {"account": "Sales Revenue", "credit": "10.46"},
        ])
        rendered = service.render(bundle)
        assert rendered["balance_sheet"]["total_assets"] == "10"
        assert rendered["income_statement"]["net_income"] == "10"

    def test_render_default_precision(self, statement_service):
        rendered = statement_service.render(statement_service.generate_statements(SOCIE_EXAMPLE))
        assert rendered["socie"]["dividends"] == "50.00"

    def test_dividends_payable_leaves_socie_dividends(self, statement_service):
        bundle = statement_service.generate_statements([
            {"account": "Sales Revenue", "credit": 1000},
            {"account": "Cash", "debit": 1000},
            {"account": "Dividends", "debit": 50},
            {"account": "Dividends Payable", "credit": 50},
        ])
        assert bundle.socie.dividends == Decimal("50")
        assert bundle.socie.ending_retained_earnings == Decimal("950")


# =========================================================================
# Validation and atomic failure
# =========================================================================


class TestFailures:

    def test_invalid_standard(self, statement_service):
        with pytest.raises(InvalidStandardError):
            statement_service.generate_statements(SOCIE_EXAMPLE, StatementOptions(standard="GAAP"))

    def test_missing_rate_aborts(self, statement_service, captured_logs):
        entries = [
            TrialBalanceEntry("Cash", debit=Decimal("100"), currency="USD"),
            TrialBalanceEntry("Sales Revenue", credit=Decimal("100"), currency="XYZ"),
        ]
        options = StatementOptions(reporting_currency="USD", rate_table={"USD": 1})
        with pytest.raises(MissingRateError) as exc_info:
            statement_service.generate_statements(entries, options)
        assert exc_info.value.currency == "XYZ"
        assert not [r for r in captured_logs() if r["message"] == "statements_generated"]

    def test_foreign_entry_without_table(self, statement_service):
        entries = [TrialBalanceEntry("Cash", debit=Decimal("100"), currency="EUR")]
        with pytest.raises(MissingRateError):
            statement_service.generate_statements(
                entries, StatementOptions(reporting_currency="USD"),
            )


# =========================================================================
# Currency normalization
# =========================================================================


class TestCurrencyNormalization:

    def test_foreign_entries_converted(self, statement_service):
        entries = [
            TrialBalanceEntry("Cash", debit=Decimal("100"), currency="USD"),
            TrialBalanceEntry("Sales Revenue", credit=Decimal("90"), currency="EUR"),
        ]
        options = StatementOptions(
            reporting_currency="EUR",
            rate_table={"USD": 1, "EUR": Decimal("0.9")},
        )
        bundle = statement_service.generate_statements(entries, options)
        assert bundle.balance_sheet.total_assets == Decimal("90")
        assert bundle.income_statement.total_revenue == Decimal("90")
        assert bundle.metadata.currency == "EUR"

    def test_entries_without_currency_untouched(self, statement_service):
        entries = [TrialBalanceEntry("Cash", debit=Decimal("100"))]
        bundle = statement_service.generate_statements(
            entries, StatementOptions(reporting_currency="EUR", rate_table={"USD": 1}),
        )
        assert bundle.balance_sheet.total_assets == Decimal("100")

    def test_no_reporting_currency_no_conversion(self):
        entries = [TrialBalanceEntry("Cash", debit=Decimal("100"), currency="JPY")]
        assert normalize_entries(entries, None, None) is entries

    def test_normalization_logged(self, statement_service, captured_logs):
        entries = [TrialBalanceEntry("Cash", debit=Decimal("100"), currency="USD")]
        statement_service.generate_statements(
            entries,
            StatementOptions(reporting_currency="EUR", rate_table={"USD": 1, "EUR": "0.9"}),
        )
        normalized = [r for r in captured_logs() if r["message"] == "entries_normalized"]
        assert normalized[0]["converted_count"] == 1
        assert normalized[0]["reporting_currency"] == "EUR"

    def test_needs_normalization(self):
        entries = [
            TrialBalanceEntry("Cash", debit=Decimal("1"), currency="EUR"),
            TrialBalanceEntry("Bank", debit=Decimal("1")),
        ]
        assert needs_normalization(entries, "USD") is True
        assert needs_normalization(entries, "EUR") is False
        assert needs_normalization(entries, None) is False


# =========================================================================
# Async path
# =========================================================================


class TestAsyncGeneration:

    @pytest.mark.asyncio
    async def test_rates_fetched_once_with_reporting_base(self, statement_service):
        provider = _StubRateProvider({"EUR": Decimal("1"), "USD": Decimal("1.25")})
        entries = [
            TrialBalanceEntry("Cash", debit=Decimal("125"), currency="USD"),
            TrialBalanceEntry("Sales Revenue", credit=Decimal("125"), currency="USD"),
        ]
        bundle = await statement_service.agenerate_statements(
            entries, StatementOptions(reporting_currency="EUR"), provider,
        )
        assert provider.calls == ["EUR"]
        assert bundle.balance_sheet.total_assets == Decimal("100")
        assert bundle.income_statement.net_income == Decimal("100")

    @pytest.mark.asyncio
    async def test_supplied_table_skips_fetch(self, statement_service):
        provider = _StubRateProvider()
        entries = [TrialBalanceEntry("Cash", debit=Decimal("100"), currency="USD")]
        await statement_service.agenerate_statements(
            entries,
            StatementOptions(reporting_currency="EUR", rate_table={"USD": 1, "EUR": "0.9"}),
            provider,
        )
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_no_fetch_when_nothing_to_convert(self, statement_service):
        provider = _StubRateProvider()
        bundle = await statement_service.agenerate_statements(SOCIE_EXAMPLE, None, provider)
        assert provider.calls == []
        assert isinstance(bundle, ReportBundle)

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, statement_service):
        provider = _StubRateProvider(error=RateFetchError("EUR", "Failed to fetch rates (503)", 503))
        entries = [TrialBalanceEntry("Cash", debit=Decimal("100"), currency="USD")]
        with pytest.raises(RateFetchError):
            await statement_service.agenerate_statements(
                entries, StatementOptions(reporting_currency="EUR"), provider,
            )

    @pytest.mark.asyncio
    async def test_invalid_standard_before_fetch(self, statement_service):
        provider = _StubRateProvider()
        with pytest.raises(InvalidStandardError):
            await statement_service.agenerate_statements(
                SOCIE_EXAMPLE, StatementOptions.from_dict({"standard": "XBRL"}), provider,
            )
        assert provider.calls == []


# =========================================================================
# Module-level convenience and logging
# =========================================================================


class TestConvenienceFunction:

    def test_keyword_options(self):
        bundle = generate_statements(_ordering_entries(), standard="ASC")
        assert bundle.metadata.standard is PresentationStandard.ASC

    def test_camel_case_keywords(self):
        bundle = generate_statements(
            [{"account": "Cash", "debit": 100, "currency": "USD"}],
            reportingCurrency="EUR",
            rateTable={"USD": 1, "EUR": 0.9},
        )
        assert bundle.balance_sheet.total_assets == Decimal("90")

    def test_keywords_override_options(self):
        bundle = generate_statements(
            _ordering_entries(), StatementOptions(standard="ASC"), standard="IFRS",
        )
        assert bundle.metadata.standard is PresentationStandard.IFRS

    def test_defaults_to_ifrs(self):
        assert generate_statements(SOCIE_EXAMPLE).metadata.standard is PresentationStandard.IFRS


class TestLogging:

    def test_statements_generated_event(self, statement_service, captured_logs):
        statement_service.generate_statements(SOCIE_EXAMPLE, StatementOptions(standard="ASC"))
        events = [r for r in captured_logs() if r["message"] == "statements_generated"]
        assert len(events) == 1
        event = events[0]
        assert event["net_income"] == "600"
        assert event["entry_count"] == 4
        assert event["standard"] == "ASC"
        assert event["entity_name"] == "Company"
        # The example trial balance carries no assets
        assert event["is_balanced"] is False

    def test_context_restored_after_call(self, statement_service):
        from statement_kernel.logging_config import LogContext

        statement_service.generate_statements(SOCIE_EXAMPLE)
        assert "standard" not in LogContext.get_all()
