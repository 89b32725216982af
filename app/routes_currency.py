# routes_currency.py
"""
Routes for the currency table: display currency, manual rate edits,
rate refresh from the external sources, and canonical currency changes.
"""

from fastapi import APIRouter, Depends

from app.deps import get_store, get_user_key
from app.schemas import CurrencyIn, RateIn
from app.services import operations
from app.services.session_store import SessionStore

router = APIRouter(prefix="/currency")


def _table_payload(store: SessionStore, user_key: str, table) -> dict:
    payload = table.to_dict()
    payload["effectiveDisplay"] = table.effective_display
    payload["missingRates"] = table.missing_rates(dict.fromkeys([*table.currencies, table.effective_display]))
    payload["synced"] = store.is_synced(user_key)
    return payload


def _new_table(operation):
    """Operation returning the table of the state it produced."""
    def run(state):
        new_state, _ = operation(state)
        return new_state, new_state.currency_table
    return run


@router.get("")
async def get_currency_table(
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    state = await store.get(user_key)
    return _table_payload(store, user_key, state.currency_table)


@router.put("/display")
async def set_display_currency(
    body: CurrencyIn,
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """Presentation only; stored amounts are not touched."""
    table = await store.apply(
        user_key,
        _new_table(lambda state: operations.set_display_currency(state, body.currency)),
    )
    return _table_payload(store, user_key, table)


@router.put("/rates/{code}")
async def set_rate(
    code: str,
    body: RateIn,
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    table = await store.apply(
        user_key,
        _new_table(lambda state: operations.set_rate(state, code, body.rate)),
    )
    return _table_payload(store, user_key, table)


@router.post("/refresh")
async def refresh_rates(
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """
    Pull fresh rates for the current canonical currency.

    Always answers 200: when every provider fails, the previous (or
    default) rates are kept and `fallback` is true.
    """
    fetched = await store.refresh_rates(user_key)
    state = await store.get(user_key)
    payload = _table_payload(store, user_key, state.currency_table)
    payload["source"] = fetched.source
    payload["fallback"] = fetched.fallback
    return payload


@router.post("/rebase")
async def change_canonical_currency(
    body: CurrencyIn,
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """
    Move every stored amount and rate onto a new canonical currency.

    Without a usable rate for the target the rebase still completes with
    factor 1 and `degraded` is true.
    """
    result = await store.apply(
        user_key,
        lambda state: operations.change_canonical_currency(state, body.currency),
    )
    payload = _table_payload(store, user_key, result.state.currency_table)
    payload["factor"] = result.factor
    payload["degraded"] = result.degraded
    return payload
