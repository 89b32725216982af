# routes_transactions.py
"""
Routes for the ledger itself: list, add, edit and delete trades.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.deps import get_store, get_user_key
from app.schemas import TransactionIn
from app.services import operations
from app.services.analytics import display_row
from app.services.session_store import SessionStore

router = APIRouter()


def _entry(body: TransactionIn) -> dict:
    return body.model_dump(exclude={"currency"})


def _with_table(operation):
    """Pair the operation's result with the table of the state it produced."""
    def run(state):
        new_state, tx = operation(state)
        return new_state, (tx, new_state.currency_table)
    return run


@router.get("/transactions")
async def list_transactions(
    search: Optional[str] = Query(None),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """
    Trades in reporting order (date ascending), optionally filtered by
    a search string, with amounts in the requested display currency.
    """
    state = await store.get(user_key)
    table = state.currency_table
    display = (currency or table.effective_display).upper()

    rows = [display_row(t, table, display) for t in state.ledger.search(search)]
    return {
        "currency": display,
        "count": len(rows),
        "transactions": rows,
        "missingRates": table.missing_rates([display]),
    }


@router.post("/transactions", status_code=201)
async def add_transaction(
    body: TransactionIn,
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    tx, table = await store.apply(
        user_key,
        _with_table(lambda state: operations.add_transaction(state, _entry(body), body.currency)),
    )
    return {
        "transaction": display_row(tx, table),
        "synced": store.is_synced(user_key),
    }


@router.put("/transactions/{tx_id}")
async def edit_transaction(
    tx_id: str,
    body: TransactionIn,
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    tx, table = await store.apply(
        user_key,
        _with_table(lambda state: operations.edit_transaction(state, tx_id, _entry(body), body.currency)),
    )
    return {
        "transaction": display_row(tx, table),
        "synced": store.is_synced(user_key),
    }


@router.delete("/transactions/{tx_id}")
async def delete_transaction(
    tx_id: str,
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    tx = await store.apply(user_key, lambda state: operations.delete_transaction(state, tx_id))
    return {"deleted": tx.id, "synced": store.is_synced(user_key)}
