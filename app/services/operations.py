# app/services/operations.py
#
# Ledger Operations
# The user actions on a LedgerState (add / edit / delete a trade, change the
# display currency, edit a rate, change the canonical currency). Each takes a
# state and returns (new_state, result) so SessionStore.apply can swap the
# new state in atomically.

from __future__ import annotations

import logging
from typing import Optional, Tuple

from app.services.currency import normalize_code
from app.services.ledger import LedgerState, Transaction, new_transaction
from app.services.rebase import RebaseResult, rebase

logger = logging.getLogger(__name__)


def add_transaction(state: LedgerState, entry: dict, currency: Optional[str] = None) -> Tuple[LedgerState, Transaction]:
    """Record a new trade; `entry` amounts are in `currency` (default canonical)."""
    table = state.currency_table
    tx = new_transaction(
        date=entry.get("date"),
        item_name=entry.get("item_name", ""),
        category=entry.get("category", ""),
        quantity=entry.get("quantity", 1),
        buy_amount=entry.get("buy_amount"),
        sell_amount=entry.get("sell_amount"),
        notes=entry.get("notes", ""),
        currency=currency or table.canonical_currency,
        table=table,
    )
    logger.info("[ledger] added %s (%s)", tx.id, tx.item_name)
    return state.with_ledger(state.ledger.add(tx)), tx


def edit_transaction(
    state: LedgerState,
    tx_id: str,
    entry: dict,
    currency: Optional[str] = None,
) -> Tuple[LedgerState, Transaction]:
    """Replace every field of an existing trade except its id."""
    state.ledger.get(tx_id)
    table = state.currency_table
    tx = new_transaction(
        tx_id=tx_id,
        date=entry.get("date"),
        item_name=entry.get("item_name", ""),
        category=entry.get("category", ""),
        quantity=entry.get("quantity", 1),
        buy_amount=entry.get("buy_amount"),
        sell_amount=entry.get("sell_amount"),
        notes=entry.get("notes", ""),
        currency=currency or table.canonical_currency,
        table=table,
    )
    logger.info("[ledger] edited %s", tx_id)
    return state.with_ledger(state.ledger.replace(tx)), tx


def delete_transaction(state: LedgerState, tx_id: str) -> Tuple[LedgerState, Transaction]:
    tx = state.ledger.get(tx_id)
    logger.info("[ledger] deleted %s", tx_id)
    return state.with_ledger(state.ledger.remove(tx_id)), tx


def set_display_currency(state: LedgerState, code: str) -> Tuple[LedgerState, str]:
    table = state.currency_table.with_display(code)
    return state.with_table(table), table.effective_display


def set_rate(state: LedgerState, code: str, value: float) -> Tuple[LedgerState, float]:
    table = state.currency_table.with_rate(code, value)
    return state.with_table(table), table.rates[normalize_code(code)]


def change_canonical_currency(state: LedgerState, new_base: str) -> Tuple[LedgerState, RebaseResult]:
    result = rebase(state, new_base)
    return result.state, result
