"""
Currency Normalizer (``statement_engine.currency``).

Converts amounts between currency codes through a rate table anchored to
a single base currency: ``rates[code]`` is the number of units of ``code``
per one unit of the base.  A cross rate is therefore
``amount / rates[from] * rates[to]``.

Pure functions, no I/O.  The table itself comes from the caller or from a
``RateProvider`` (see ``statement_engine.rates``).
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from statement_kernel.exceptions import InvalidRateError, MissingRateError

from statement_engine.models import ZERO, coerce_amount

RateTable = Mapping[str, Decimal]


def normalize_rate_table(rates: Mapping[str, Any]) -> RateTable:
    """
    Coerce a raw rate mapping into an immutable ``{CODE: Decimal}`` table.

    Codes are upper-cased and stripped.

    Raises:
        InvalidRateError: a rate is not a number, or is zero or negative.
    """
    table: dict[str, Decimal] = {}
    for code, raw in rates.items():
        key = str(code).strip().upper()
        try:
            rate = coerce_amount(raw)
        except ValueError as exc:
            raise InvalidRateError(key, raw) from exc
        if rate <= ZERO:
            raise InvalidRateError(key, raw)
        table[key] = rate
    return MappingProxyType(table)


def _rate_for(code: str, rates: Mapping[str, Any], from_currency: str, to_currency: str) -> Decimal:
    try:
        raw = rates[code]
    except KeyError:
        raise MissingRateError(code, from_currency, to_currency) from None
    try:
        rate = coerce_amount(raw)
    except ValueError as exc:
        raise InvalidRateError(code, raw) from exc
    if rate <= ZERO:
        raise InvalidRateError(code, raw)
    return rate


def convert(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    rates: Mapping[str, Any],
) -> Decimal:
    """
    Convert ``amount`` from one currency to another via the table's base.

    Same-currency conversion returns ``amount`` unchanged, without
    consulting the table.

    Raises:
        MissingRateError: either code is absent from ``rates``.
        InvalidRateError: a looked-up rate is zero, negative or not numeric.
    """
    if from_currency == to_currency:
        return amount
    from_rate = _rate_for(from_currency, rates, from_currency, to_currency)
    to_rate = _rate_for(to_currency, rates, from_currency, to_currency)
    return coerce_amount(amount) / from_rate * to_rate
