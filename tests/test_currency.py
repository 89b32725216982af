import pytest

from app.services.currency import CurrencyTable, default_table, table_from_dict
from app.services.errors import InvalidRateError


def test_canonical_rate_is_pinned_to_one():
    t = CurrencyTable(canonical_currency="eur", rates={"EUR": 3.0, "usd": 1.1})
    assert t.canonical_currency == "EUR"
    assert t.rates == {"EUR": 1.0, "USD": 1.1}


def test_default_table_is_all_ones():
    t = default_table("AUD")
    assert t.canonical_currency == "AUD"
    assert t.display_currency == "AUD"
    assert set(t.rates) >= {"AUD", "USD", "EUR"}
    assert all(v == 1.0 for v in t.rates.values())


def test_effective_display_falls_back_to_canonical():
    t = CurrencyTable(canonical_currency="USD")
    assert t.display_currency is None
    assert t.effective_display == "USD"
    assert t.with_display("eur").effective_display == "EUR"


def test_with_rates_overlays_and_keeps_unquoted(table):
    refreshed = table.with_rates({"EUR": 0.95, "USD": 7.0})
    assert refreshed.rates["EUR"] == 0.95
    assert refreshed.rates["AUD"] == 1.5
    assert refreshed.rates["USD"] == 1.0
    # original untouched
    assert table.rates["EUR"] == 0.9


def test_with_rate_validation(table):
    assert table.with_rate("GBP", 0.8).rates["GBP"] == 0.8
    with pytest.raises(InvalidRateError):
        table.with_rate("EUR", 0)
    with pytest.raises(InvalidRateError):
        table.with_rate("USD", 2.0)
    with pytest.raises(InvalidRateError):
        table.with_rate("EURO", 1.0)


def test_missing_rates(table):
    t = table.with_rates({"GBP": 0.0})
    assert t.missing_rates(["EUR", "GBP", "JPY"]) == ["GBP", "JPY"]


def test_table_from_dict_accepts_legacy_base_key():
    t = table_from_dict({"baseCurrency": "AUD", "displayCurrency": "USD", "rates": {"USD": "0.66"}})
    assert t.canonical_currency == "AUD"
    assert t.display_currency == "USD"
    assert t.rates["USD"] == 0.66


def test_table_from_dict_rejects_garbage():
    with pytest.raises(InvalidRateError):
        table_from_dict({"rates": {}})
    with pytest.raises(InvalidRateError):
        table_from_dict({"canonicalCurrency": "USD", "rates": {"EUR": "abc"}})
    with pytest.raises(InvalidRateError):
        table_from_dict({"canonicalCurrency": "USD", "rates": {"EURO": 1.0}})
