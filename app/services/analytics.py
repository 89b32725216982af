# app/services/analytics.py
#
# Ledger Analytics
# Totals (spend, net profit, profit %), per-row display values, spend by
# category, and the cumulative profit series over a look-back period.
#
# Sums are always taken in canonical currency and converted once at the end.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, List, Optional

import pandas as pd

from app.services.conversion import from_canonical
from app.services.currency import CurrencyTable
from app.services.ledger import (
    Transaction,
    profit_canonical,
    profit_percent,
    unit_buy_price,
    unit_sell_price,
)


class Period(str, Enum):
    DAY = "24h"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


@dataclass(frozen=True)
class Totals:
    spent: float
    net: float
    profit_percent: float

    def to_dict(self) -> dict:
        return {"spent": self.spent, "net": self.net, "profitPercent": self.profit_percent}


@dataclass(frozen=True)
class SeriesPoint:
    date: date
    value: float


# ---- Period filters ----

def period_window(period: Period, as_of: Optional[date] = None):
    """
    (start, end) dates, both inclusive, for a look-back period.
    (None, None) means no bound (all-time).
    """
    period = Period(period)
    today = as_of or date.today()

    if period == Period.DAY:
        return today - timedelta(days=1), today
    if period == Period.WEEK:
        return today - timedelta(days=7), today
    if period == Period.MONTH:
        return today.replace(day=1), today
    return None, None


def filter_by_period(
    transactions: Iterable[Transaction],
    period: Period,
    as_of: Optional[date] = None,
) -> List[Transaction]:
    start, end = period_window(period, as_of)
    if start is None:
        return list(transactions)
    return [t for t in transactions if start <= t.date <= end]


# ---- Totals ----

def totals_for(transactions: Iterable[Transaction]) -> Totals:
    """Canonical-currency totals. An unsold item contributes -buy to net."""
    spent = 0.0
    net = 0.0
    for t in transactions:
        spent += t.buy_amount_canonical
        net += profit_canonical(t)

    pct = net / spent * 100 if spent > 0 else 0.0
    return Totals(spent=spent, net=net, profit_percent=pct)


def display_totals(
    transactions: Iterable[Transaction],
    table: CurrencyTable,
    display_currency: Optional[str] = None,
) -> Totals:
    """Same as totals_for, with the two sums converted after summing."""
    currency = display_currency or table.effective_display
    base = totals_for(transactions)
    return Totals(
        spent=from_canonical(base.spent, currency, table),
        net=from_canonical(base.net, currency, table),
        profit_percent=base.profit_percent,
    )


# ---- Rows ----

def display_row(tx: Transaction, table: CurrencyTable, display_currency: Optional[str] = None) -> dict:
    """
    Per-transaction values for a table view, in display currency.
    Sell, profit and profit % stay None while the item is unsold.
    """
    currency = display_currency or table.effective_display
    sold = tx.is_sold
    sell_unit = unit_sell_price(tx)

    return {
        "id": tx.id,
        "date": tx.date.isoformat(),
        "itemName": tx.item_name,
        "category": tx.category,
        "quantity": tx.quantity,
        "currency": currency,
        "buy": from_canonical(tx.buy_amount_canonical, currency, table),
        "sell": from_canonical(tx.sell_amount_canonical, currency, table) if sold else None,
        "unitBuy": from_canonical(unit_buy_price(tx), currency, table),
        "unitSell": from_canonical(sell_unit, currency, table) if sold else None,
        "profit": from_canonical(profit_canonical(tx), currency, table) if sold else None,
        "profitPercent": profit_percent(tx),
        "notes": tx.notes,
    }


def category_breakdown(
    transactions: Iterable[Transaction],
    table: CurrencyTable,
    display_currency: Optional[str] = None,
) -> List[dict]:
    """Spend and net per category, biggest spend first."""
    currency = display_currency or table.effective_display
    df = _frame(transactions)
    if df.empty:
        return []

    df["category"] = df["category"].replace("", "Uncategorized")
    grouped = (
        df.groupby("category", sort=False)[["buy", "net"]]
        .sum()
        .sort_values("buy", ascending=False)
    )

    return [
        {
            "category": category,
            "spent": from_canonical(float(row.buy), currency, table),
            "net": from_canonical(float(row.net), currency, table),
        }
        for category, row in grouped.iterrows()
    ]


# ---- Series ----

def _frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    rows = [
        {
            "date": t.date,
            "category": t.category,
            "buy": t.buy_amount_canonical,
            "net": profit_canonical(t),
        }
        for t in transactions
    ]
    return pd.DataFrame(rows, columns=["date", "category", "buy", "net"])


def cumulative_profit_series(
    transactions: Iterable[Transaction],
    period: Period,
    table: CurrencyTable,
    display_currency: Optional[str] = None,
    as_of: Optional[date] = None,
) -> List[SeriesPoint]:
    """
    Running total of daily net profit inside `period`.

    Same-day trades fall into one bucket before accumulation. The running
    sum is built in canonical currency and converted point by point at the end.
    """
    currency = display_currency or table.effective_display
    df = _frame(filter_by_period(transactions, period, as_of))
    if df.empty:
        return []

    daily = df.groupby("date", sort=True)["net"].sum()
    running = daily.cumsum()

    return [
        SeriesPoint(date=day, value=from_canonical(float(value), currency, table))
        for day, value in running.items()
    ]
