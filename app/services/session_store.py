# app/services/session_store.py
#
# Session Store
# Keeps one authoritative in-memory LedgerState per user key and serializes
# everything that touches it:
#
# - a per-user asyncio.Lock guards reads, mutations and rate refreshes, so a
#   report never runs against a ledger mid-rebase and a rebase never overlaps
#   an in-flight rate fetch;
# - after each mutation the latest state is written through the gateway under
#   a separate per-user write lock, outside the state lock, so a slow write
#   never blocks readers. A failed write leaves the user marked unsynced and
#   is retried by the next write or by flush().

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import config
from app.services.currency import CurrencyTable, default_table, normalize_code
from app.services.errors import LedgerUnavailableError
from app.services.ledger import Ledger, LedgerState
from app.services.rate_sources import RateFetchResult, RateSourceChain

logger = logging.getLogger(__name__)

# fn(state) -> (new_state, result)
Operation = Callable[[LedgerState], Tuple[LedgerState, Any]]


def wanted_codes(table: CurrencyTable) -> List[str]:
    """Codes a refresh asks for: the table's own, the display currency and every supported one."""
    codes = [*table.currencies, table.effective_display, *config.SUPPORTED_CURRENCIES]
    return list(dict.fromkeys(normalize_code(c) for c in codes))


class SessionStore:
    def __init__(self, gateway, rate_chain: Optional[RateSourceChain] = None, default_canonical: str = None):
        self.gateway = gateway
        self.rate_chain = rate_chain
        self.default_canonical = default_canonical

        self._states: Dict[str, LedgerState] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._write_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._unsynced: Set[str] = set()

    # ---- Loading ----

    async def _ensure_loaded(self, user_key: str) -> LedgerState:
        """Caller must hold the user's lock."""
        state = self._states.get(user_key)
        if state is not None:
            return state

        state = await asyncio.to_thread(self.gateway.load, user_key)
        if state is None:
            logger.info("[session] new ledger for %r", user_key)
            state = LedgerState(ledger=Ledger(), currency_table=default_table(self.default_canonical))
        self._states[user_key] = state
        return state

    async def get(self, user_key: str) -> LedgerState:
        """Current state; waits for any in-flight mutation of the same user."""
        async with self._locks[user_key]:
            return await self._ensure_loaded(user_key)

    # ---- Mutations ----

    async def apply(self, user_key: str, operation: Operation) -> Any:
        """
        Run a pure operation against the user's state and swap in its result.

        If the operation raises, the stored state is left untouched.
        """
        async with self._locks[user_key]:
            state = await self._ensure_loaded(user_key)
            new_state, result = operation(state)
            if new_state is None:
                raise LedgerUnavailableError(f"Operation returned no state for {user_key!r}")
            self._states[user_key] = new_state

        await self._persist(user_key)
        return result

    async def refresh_rates(self, user_key: str) -> RateFetchResult:
        """Fetch fresh rates for the user's canonical currency and merge them in."""
        if self.rate_chain is None:
            raise LedgerUnavailableError("No rate source configured")

        async with self._locks[user_key]:
            state = await self._ensure_loaded(user_key)
            table = state.currency_table
            fetched = await self.rate_chain.fetch(
                table.canonical_currency,
                wanted_codes(table),
                previous=table.rates,
            )
            self._states[user_key] = state.with_table(table.with_rates(fetched.rates))

        await self._persist(user_key)
        return fetched

    # ---- Persistence ----

    async def _persist(self, user_key: str) -> bool:
        async with self._write_locks[user_key]:
            state = self._states.get(user_key)
            if state is None:
                return True
            try:
                await asyncio.to_thread(self.gateway.save, user_key, state)
            except Exception:
                self._unsynced.add(user_key)
                logger.exception("[persist] save failed for %r; in-memory state kept, will retry", user_key)
                return False
            self._unsynced.discard(user_key)
            return True

    async def flush(self, user_key: str) -> bool:
        """Retry a pending write; True when the stored copy matches memory."""
        if user_key not in self._unsynced:
            return True
        return await self._persist(user_key)

    def is_synced(self, user_key: str) -> bool:
        return user_key not in self._unsynced

    def forget(self, user_key: str) -> None:
        """Drop the cached state (next access reloads from the gateway)."""
        self._states.pop(user_key, None)
