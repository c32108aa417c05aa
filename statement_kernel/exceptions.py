"""
Typed Exception Hierarchy for the Statement Engine.

Every error has a typed class (catch by type, not by message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
carrying the data that caused it.

    StatementKernelError (base)
    |
    +-- EntryError
    |   +-- InvalidEntryError
    |
    +-- CurrencyError
    |   +-- MissingRateError
    |   +-- InvalidRateError
    |   +-- RateFetchError
    |
    +-- ConfigurationError
        +-- InvalidStandardError
        +-- InvalidCashFlowSectionError
        +-- ChartOfAccountsError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Entry           | INVALID_ENTRY               | Empty account name or negative amount
----------------|-----------------------------|-----------------------------------------
Currency        | MISSING_RATE                | Currency code absent from the rate table
                | INVALID_RATE                | Rate is zero, negative or not numeric
                | RATE_FETCH_FAILED           | Rate provider returned no usable table
----------------|-----------------------------|-----------------------------------------
Configuration   | INVALID_STANDARD            | Standard is neither IFRS nor ASC
                | INVALID_CASH_FLOW_SECTION   | Override maps to an unknown section
                | INVALID_CHART               | Chart of accounts file is malformed

Classification never raises: unknown accounts resolve to ``unmapped`` and
are reported in the bundle's reconciliation bucket.
"""


class StatementKernelError(Exception):
    """
    Base exception for all statement engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STATEMENT_KERNEL_ERROR"


# Entry-related exceptions


class EntryError(StatementKernelError):
    """Base exception for trial balance entry errors."""

    code: str = "ENTRY_ERROR"


class InvalidEntryError(EntryError):
    """A trial balance entry violates its input contract."""

    code: str = "INVALID_ENTRY"

    def __init__(self, account: str, reason: str):
        self.account = account
        self.reason = reason
        super().__init__(f"Invalid trial balance entry '{account}': {reason}")


# Currency-related exceptions


class CurrencyError(StatementKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class MissingRateError(CurrencyError):
    """A currency code required for conversion is absent from the rate table."""

    code: str = "MISSING_RATE"

    def __init__(self, currency: str, from_currency: str, to_currency: str):
        self.currency = currency
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(
            f"Missing rate for {currency} "
            f"(converting {from_currency} -> {to_currency})"
        )


class InvalidRateError(CurrencyError):
    """A rate table entry is zero, negative or not a number."""

    code: str = "INVALID_RATE"

    def __init__(self, currency: str, rate: object):
        self.currency = currency
        self.rate = str(rate)
        super().__init__(f"Invalid exchange rate for {currency}: {rate!r}")


class RateFetchError(CurrencyError):
    """The rate-table collaborator did not return a usable table."""

    code: str = "RATE_FETCH_FAILED"

    def __init__(self, base_currency: str, reason: str, status_code: int | None = None):
        self.base_currency = base_currency
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch rates for base {base_currency}: {reason}")


# Configuration-related exceptions


class ConfigurationError(StatementKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class InvalidStandardError(ConfigurationError):
    """Presentation standard is not one of the recognized values."""

    code: str = "INVALID_STANDARD"

    def __init__(self, standard: object, allowed: tuple[str, ...] = ("IFRS", "ASC")):
        self.standard = str(standard)
        self.allowed = list(allowed)
        super().__init__(
            f"Unrecognized presentation standard {standard!r}; "
            f"expected one of {', '.join(allowed)}"
        )


class InvalidCashFlowSectionError(ConfigurationError):
    """A cash-flow override maps an account to an unknown section."""

    code: str = "INVALID_CASH_FLOW_SECTION"

    def __init__(self, account: str, section: object):
        self.account = account
        self.section = str(section)
        super().__init__(
            f"Cash flow override for '{account}' names unknown section {section!r}"
        )


class ChartOfAccountsError(ConfigurationError):
    """A chart-of-accounts definition is malformed."""

    code: str = "INVALID_CHART"

    def __init__(self, account: str, reason: str):
        self.account = account
        self.reason = reason
        super().__init__(f"Invalid chart of accounts entry '{account}': {reason}")
