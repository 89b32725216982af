from datetime import date

import pytest

from conftest import make_tx
from app.services.analytics import (
    Period,
    category_breakdown,
    cumulative_profit_series,
    display_row,
    display_totals,
    filter_by_period,
    period_window,
    totals_for,
)
from app.services.ledger import Ledger


def test_totals_on_empty_ledger_are_zero():
    totals = totals_for(Ledger())
    assert (totals.spent, totals.net, totals.profit_percent) == (0.0, 0.0, 0.0)


def test_totals_unsold_counts_as_negative_cost(state):
    totals = totals_for(state.ledger)
    assert totals.spent == 30.0
    assert totals.net == -15.0
    assert totals.profit_percent == pytest.approx(-50.0)


def test_zero_cost_ledger_has_zero_percent():
    totals = totals_for([make_tx("free", "2024-01-01", 0.0, 5.0)])
    assert totals.net == 5.0
    assert totals.profit_percent == 0.0


def test_display_totals_convert_sums(state):
    totals = display_totals(state.ledger, state.currency_table, "AUD")
    assert totals.spent == pytest.approx(45.0)
    assert totals.net == pytest.approx(-22.5)
    assert totals.profit_percent == pytest.approx(-50.0)


def test_display_totals_default_to_display_currency(state):
    table = state.currency_table.with_display("EUR")
    assert display_totals(state.ledger, table).spent == pytest.approx(27.0)


def test_display_row_for_sold_and_unsold(state):
    sold = display_row(state.ledger.get("a"), state.currency_table, "EUR")
    assert sold["buy"] == pytest.approx(9.0)
    assert sold["sell"] == pytest.approx(13.5)
    assert sold["profit"] == pytest.approx(4.5)
    assert sold["profitPercent"] == pytest.approx(50.0)

    unsold = display_row(state.ledger.get("b"), state.currency_table, "EUR")
    assert unsold["sell"] is None
    assert unsold["profit"] is None
    assert unsold["profitPercent"] is None


def test_period_windows():
    today = date(2024, 3, 20)
    assert period_window(Period.DAY, today) == (date(2024, 3, 19), today)
    assert period_window(Period.WEEK, today) == (date(2024, 3, 13), today)
    assert period_window(Period.MONTH, today) == (date(2024, 3, 1), today)
    assert period_window(Period.ALL, today) == (None, None)


def test_filter_by_period():
    txs = [
        make_tx("old", "2024-01-10", 1.0),
        make_tx("month", "2024-03-02", 1.0),
        make_tx("week", "2024-03-15", 1.0),
        make_tx("today", "2024-03-20", 1.0),
        make_tx("future", "2024-03-25", 1.0),
    ]
    as_of = date(2024, 3, 20)
    assert [t.id for t in filter_by_period(txs, Period.DAY, as_of)] == ["today"]
    assert [t.id for t in filter_by_period(txs, Period.WEEK, as_of)] == ["week", "today"]
    assert [t.id for t in filter_by_period(txs, "month", as_of)] == ["month", "week", "today"]
    assert len(filter_by_period(txs, Period.ALL, as_of)) == 5


def test_series_buckets_same_day_then_accumulates(table):
    txs = [
        make_tx("1", "2024-03-02", 10.0, 15.0),   # +5
        make_tx("2", "2024-03-01", 20.0, 30.0),   # +10
        make_tx("3", "2024-03-02", 4.0, None),    # -4
    ]
    series = cumulative_profit_series(txs, Period.ALL, table, "USD")
    assert [(p.date, p.value) for p in series] == [
        (date(2024, 3, 1), pytest.approx(10.0)),
        (date(2024, 3, 2), pytest.approx(11.0)),
    ]


def test_series_converts_to_display_currency(table):
    txs = [make_tx("1", "2024-03-01", 10.0, 20.0)]
    series = cumulative_profit_series(txs, Period.ALL, table, "AUD")
    assert series[0].value == pytest.approx(15.0)


def test_series_respects_period(table):
    txs = [make_tx("old", "2024-01-01", 10.0, 20.0), make_tx("new", "2024-03-20", 1.0, 3.0)]
    series = cumulative_profit_series(txs, Period.WEEK, table, "USD", as_of=date(2024, 3, 20))
    assert [(p.date, p.value) for p in series] == [(date(2024, 3, 20), pytest.approx(2.0))]


def test_series_empty_input_is_empty(table):
    assert cumulative_profit_series([], Period.ALL, table) == []
    txs = [make_tx("old", "2020-01-01", 1.0)]
    assert cumulative_profit_series(txs, Period.DAY, table, as_of=date(2024, 1, 1)) == []


def test_category_breakdown(state):
    rows = category_breakdown(state.ledger, state.currency_table, "USD")
    assert rows == [
        {"category": "Skin", "spent": 20.0, "net": -20.0},
        {"category": "Case", "spent": 10.0, "net": 5.0},
    ]
    assert category_breakdown([], state.currency_table) == []
