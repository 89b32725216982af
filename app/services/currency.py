# app/services/currency.py
#
# Currency Table
# Holds the canonical currency, the display currency and the rate map
# ("units of <code> per 1 unit of canonical"). Tables are immutable; every
# change returns a new table with rates[canonical] == 1.

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional

import config
from app.services.errors import InvalidRateError


def normalize_code(code: str) -> str:
    return str(code or "").strip().upper()


def is_currency_code(code: str) -> bool:
    return len(code) == 3 and code.isalpha()


@dataclass(frozen=True)
class CurrencyTable:
    canonical_currency: str
    display_currency: Optional[str] = None
    rates: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        canonical = normalize_code(self.canonical_currency)
        if not is_currency_code(canonical):
            raise InvalidRateError(f"Invalid canonical currency: {self.canonical_currency!r}")

        display = normalize_code(self.display_currency) or None
        if display is not None and not is_currency_code(display):
            raise InvalidRateError(f"Invalid display currency: {self.display_currency!r}")

        rates = {normalize_code(code): float(value) for code, value in (self.rates or {}).items()}
        rates[canonical] = 1.0

        # frozen dataclass: normalized values go through object.__setattr__
        object.__setattr__(self, "canonical_currency", canonical)
        object.__setattr__(self, "display_currency", display)
        object.__setattr__(self, "rates", rates)

    @property
    def effective_display(self) -> str:
        return self.display_currency or self.canonical_currency

    @property
    def currencies(self) -> List[str]:
        return list(self.rates)

    def rate(self, code: str) -> Optional[float]:
        return self.rates.get(normalize_code(code))

    def missing_rates(self, codes: Iterable[str]) -> List[str]:
        """Codes whose rate is absent or zero (conversions through them are no-ops)."""
        return [c for c in (normalize_code(x) for x in codes) if not self.rates.get(c)]

    # ---- Rate changes ----

    def with_rates(self, fetched: Dict[str, float]) -> "CurrencyTable":
        """
        Rate refresh: overlay freshly fetched rates on the current ones.
        Canonical stays as is and its rate is pinned back to 1.
        """
        merged = dict(self.rates)
        for code, value in fetched.items():
            merged[normalize_code(code)] = float(value)
        return replace(self, rates=merged)

    def with_rate(self, code: str, value: float) -> "CurrencyTable":
        """Manual edit of a single rate."""
        code = normalize_code(code)
        if not is_currency_code(code):
            raise InvalidRateError(f"Invalid currency code: {code!r}")
        value = float(value)
        if value <= 0:
            raise InvalidRateError(f"Rate for {code} must be positive, got {value}")
        if code == self.canonical_currency and value != 1.0:
            raise InvalidRateError(f"Rate of canonical currency {code} is always 1")
        rates = dict(self.rates)
        rates[code] = value
        return replace(self, rates=rates)

    def with_display(self, code: Optional[str]) -> "CurrencyTable":
        return replace(self, display_currency=normalize_code(code) or None)

    def to_dict(self) -> dict:
        return {
            "canonicalCurrency": self.canonical_currency,
            "displayCurrency": self.display_currency,
            "rates": dict(self.rates),
        }


def default_rates(
    canonical: str,
    currencies: Optional[Iterable[str]] = None,
) -> Dict[str, float]:
    """All-ones rate map; placeholder until a rate source answers."""
    codes = [normalize_code(c) for c in (currencies or config.SUPPORTED_CURRENCIES)]
    rates = {code: 1.0 for code in codes}
    rates[normalize_code(canonical)] = 1.0
    return rates


def default_table(canonical: Optional[str] = None) -> CurrencyTable:
    """First-run table for a new user."""
    canonical = normalize_code(canonical or config.DEFAULT_CANONICAL_CURRENCY)
    return CurrencyTable(
        canonical_currency=canonical,
        display_currency=canonical,
        rates=default_rates(canonical),
    )


def table_from_dict(data: dict) -> CurrencyTable:
    """Build a table from its export shape (also accepts the legacy baseCurrency key)."""
    canonical = data.get("canonicalCurrency") or data.get("baseCurrency")
    if not canonical:
        raise InvalidRateError("Currency table has no canonical currency")
    rates = data.get("rates") or {}
    if not isinstance(rates, dict):
        raise InvalidRateError("Currency table rates must be a mapping")
    clean = {}
    for code, value in rates.items():
        if not is_currency_code(normalize_code(code)):
            raise InvalidRateError(f"Invalid currency code in rates: {code!r}")
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidRateError(f"Rate for {code} is not a number: {value!r}")
        if value < 0:
            raise InvalidRateError(f"Rate for {code} must not be negative")
        clean[code] = value
    return CurrencyTable(
        canonical_currency=canonical,
        display_currency=data.get("displayCurrency"),
        rates=clean,
    )
