# app/routes_dashboard.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from .deps import get_store, get_user_key
from app.services.analytics import (
    Period,
    category_breakdown,
    cumulative_profit_series,
    display_totals,
    filter_by_period,
)
from app.services.session_store import SessionStore

router = APIRouter()


def _display(state, currency: Optional[str]) -> str:
    return (currency or state.currency_table.effective_display).upper()


@router.get("/reports/totals")
async def totals(
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    period: Period = Query(Period.ALL),
    as_of: Optional[date] = Query(None),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    state = await store.get(user_key)
    display = _display(state, currency)
    rows = filter_by_period(state.ledger.ordered(), period, as_of)

    payload = display_totals(rows, state.currency_table, display).to_dict()
    payload.update({"currency": display, "period": period.value, "count": len(rows)})
    return payload


@router.get("/reports/series")
async def profit_series(
    period: Period = Query(Period.ALL),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    as_of: Optional[date] = Query(None),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    state = await store.get(user_key)
    display = _display(state, currency)
    points = cumulative_profit_series(state.ledger, period, state.currency_table, display, as_of)
    return {
        "currency": display,
        "period": period.value,
        "points": [{"date": p.date.isoformat(), "value": p.value} for p in points],
    }


@router.get("/reports/categories")
async def categories(
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    state = await store.get(user_key)
    display = _display(state, currency)
    return {
        "currency": display,
        "categories": category_breakdown(state.ledger, state.currency_table, display),
    }


@router.get("/dashboard")
async def dashboard(
    period: Period = Query(Period.MONTH),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """
    Everything the overview screen shows at once: all-time totals,
    the profit curve for `period`, and spend by category.
    """
    state = await store.get(user_key)
    table = state.currency_table
    display = table.effective_display

    points = cumulative_profit_series(state.ledger, period, table, display)
    return {
        "currency": display,
        "canonicalCurrency": table.canonical_currency,
        "totals": display_totals(state.ledger, table, display).to_dict(),
        "series": {
            "period": period.value,
            "points": [{"date": p.date.isoformat(), "value": p.value} for p in points],
        },
        "categories": category_breakdown(state.ledger, table, display),
        "transactionCount": len(state.ledger),
        "missingRates": table.missing_rates([display]),
    }
