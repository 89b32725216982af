# app/services/conversion.py
#
# Conversion Helpers
# Pure functions converting amounts between the canonical currency and any
# other currency of a CurrencyTable. A missing or zero rate never raises:
# the amount passes through unchanged and a warning is logged.

import logging

from app.services.currency import CurrencyTable, normalize_code

logger = logging.getLogger(__name__)


def _usable_rate(table: CurrencyTable, code: str):
    rate = table.rates.get(code)
    if not rate:
        logger.warning(
            "[convert] missing rate for %s (canonical %s); amount passed through unchanged",
            code,
            table.canonical_currency,
        )
        return None
    return rate


def to_canonical(amount: float, from_currency: str, table: CurrencyTable) -> float:
    """Amount in `from_currency` -> canonical."""
    from_currency = normalize_code(from_currency)
    if from_currency == table.canonical_currency:
        return amount
    rate = _usable_rate(table, from_currency)
    if rate is None:
        return amount
    return amount / rate


def from_canonical(amount_canonical: float, to_currency: str, table: CurrencyTable) -> float:
    """Canonical amount -> `to_currency`."""
    to_currency = normalize_code(to_currency)
    if to_currency == table.canonical_currency:
        return amount_canonical
    rate = _usable_rate(table, to_currency)
    if rate is None:
        return amount_canonical
    return amount_canonical * rate


def convert_between(amount: float, from_currency: str, to_currency: str, table: CurrencyTable) -> float:
    """
    Convert between two arbitrary currencies, pivoting through canonical.

    When either side is the canonical currency only one step is taken.
    """
    from_currency = normalize_code(from_currency)
    to_currency = normalize_code(to_currency)

    if from_currency == table.canonical_currency:
        return from_canonical(amount, to_currency, table)
    if to_currency == table.canonical_currency:
        return to_canonical(amount, from_currency, table)
    return from_canonical(to_canonical(amount, from_currency, table), to_currency, table)
