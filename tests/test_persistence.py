import asyncio

import pytest

from conftest import StubProvider
from app.services import operations
from app.services.errors import TransactionNotFoundError
from app.services.persistence import SqlLedgerGateway
from app.services.rate_sources import RateSourceChain
from app.services.session_store import SessionStore


def test_gateway_round_trip(gateway, state):
    assert gateway.load("u1") is None

    gateway.save("u1", state)
    loaded = gateway.load("u1")

    assert loaded.ledger == state.ledger
    assert loaded.currency_table == state.currency_table
    assert [t.id for t in loaded.ledger] == ["a", "b"]
    assert loaded.ledger.get("b").sell_amount_canonical is None


def test_gateway_save_replaces_previous_snapshot(gateway, state):
    gateway.save("u1", state)
    gateway.save("u1", state.with_ledger(state.ledger.remove("a")))
    assert [t.id for t in gateway.load("u1").ledger] == ["b"]


def test_users_are_isolated(gateway, state):
    gateway.save("alice", state)
    # same ids under another key do not collide
    gateway.save("bob", state.with_ledger(state.ledger.remove("b")))
    assert len(gateway.load("alice").ledger) == 2
    assert len(gateway.load("bob").ledger) == 1


def test_store_creates_default_state(store):
    state = asyncio.run(store.get("new-user"))
    assert len(state.ledger) == 0
    assert state.currency_table.canonical_currency == "USD"


def test_store_apply_persists(store, gateway):
    entry = {"date": "2024-01-01", "item_name": "Case", "buy_amount": 3.0}

    tx = asyncio.run(store.apply("u", lambda s: operations.add_transaction(s, entry)))

    assert store.is_synced("u")
    assert gateway.load("u").ledger.get(tx.id).buy_amount_canonical == 3.0


def test_failed_operation_leaves_state_untouched(store):
    async def run():
        before = await store.get("u")
        with pytest.raises(TransactionNotFoundError):
            await store.apply("u", lambda s: operations.delete_transaction(s, "missing"))
        return before, await store.get("u")

    before, after = asyncio.run(run())
    assert before is after


class FlakyGateway(SqlLedgerGateway):
    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.fail = True

    def save(self, user_key, state):
        if self.fail:
            raise RuntimeError("database is locked")
        super().save(user_key, state)


def test_failed_write_keeps_memory_and_flags_desync(session_factory):
    gateway = FlakyGateway(session_factory)
    store = SessionStore(gateway=gateway)
    entry = {"date": "2024-01-01", "item_name": "Case", "buy_amount": 3.0}

    async def run():
        await store.apply("u", lambda s: operations.add_transaction(s, entry))
        assert not store.is_synced("u")
        # reads still served from memory
        assert len((await store.get("u")).ledger) == 1

        gateway.fail = False
        assert await store.flush("u")

    asyncio.run(run())
    assert store.is_synced("u")
    assert len(gateway.load("u").ledger) == 1


def test_rebase_and_reads_are_serialized(store):
    """A read issued while a rebase is queued sees the rebased state, never a mix."""
    entries = [{"date": f"2024-01-0{i}", "item_name": "x", "buy_amount": 10.0} for i in range(1, 4)]

    async def run():
        for e in entries:
            await store.apply("u", lambda s, e=e: operations.add_transaction(s, e))
        await store.apply("u", lambda s: operations.set_rate(s, "EUR", 0.5))

        rebase_task = asyncio.create_task(
            store.apply("u", lambda s: operations.change_canonical_currency(s, "EUR"))
        )
        await asyncio.sleep(0)
        state = await store.get("u")
        await rebase_task
        return state

    state = asyncio.run(run())
    assert state.currency_table.canonical_currency == "EUR"
    assert {t.buy_amount_canonical for t in state.ledger} == {20.0}


def test_refresh_rates_uses_chain_and_keeps_canonical(gateway):
    chain = RateSourceChain([StubProvider("down", None), StubProvider("up", {"USD": 1.0, "EUR": 0.8})])
    store = SessionStore(gateway=gateway, rate_chain=chain, default_canonical="USD")

    fetched = asyncio.run(store.refresh_rates("u"))
    state = asyncio.run(store.get("u"))

    assert fetched.source == "up"
    assert state.currency_table.canonical_currency == "USD"
    assert state.currency_table.rates["EUR"] == 0.8
    assert gateway.load("u").currency_table.rates["EUR"] == 0.8


def test_refresh_rates_falls_back_to_previous(gateway, state):
    gateway.save("u", state)
    store = SessionStore(gateway=gateway, rate_chain=RateSourceChain([StubProvider("down", None)]))

    fetched = asyncio.run(store.refresh_rates("u"))

    assert fetched.fallback
    assert asyncio.run(store.get("u")).currency_table == state.currency_table


def test_refresh_rates_asks_for_display_currency_without_rate(gateway):
    provider = StubProvider("up", {"USD": 1.0, "EUR": 0.8, "GBP": 0.75})
    store = SessionStore(gateway=gateway, rate_chain=RateSourceChain([provider]), default_canonical="USD")

    async def run():
        await store.apply("u", lambda s: operations.set_display_currency(s, "GBP"))
        assert (await store.get("u")).currency_table.missing_rates(["GBP"]) == ["GBP"]
        await store.refresh_rates("u")
        return await store.get("u")

    state = asyncio.run(run())

    assert "GBP" in provider.codes
    assert {"AUD", "EUR"} <= set(provider.codes)
    assert len(provider.codes) == len(set(provider.codes))
    assert state.currency_table.rates["GBP"] == 0.75
    assert state.currency_table.missing_rates(["GBP"]) == []
