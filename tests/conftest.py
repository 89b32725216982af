"""Pytest configuration and fixtures."""
import os

# Keep the app's default engine off disk before config/db are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import Base
from app.services.currency import CurrencyTable
from app.services.errors import RateSourceUnavailableError
from app.services.ledger import Ledger, LedgerState, Transaction
from app.services.persistence import SqlLedgerGateway
from app.services.rate_sources import RateProvider, RateSourceChain
from app.services.session_store import SessionStore


class StubProvider(RateProvider):
    """Rate provider answering from a dict, or failing when rates is None."""

    def __init__(self, name, rates=None):
        super().__init__("http://stub.invalid")
        self.NAME = name
        self.rates = rates
        self.calls = 0
        self.codes = None

    async def fetch(self, canonical, codes):
        self.calls += 1
        self.codes = list(codes)
        if self.rates is None:
            raise RateSourceUnavailableError(f"{self.NAME}: down")
        return dict(self.rates)


@pytest.fixture
def table():
    """USD canonical; 1 USD = 0.9 EUR = 1.5 AUD."""
    return CurrencyTable(
        canonical_currency="USD",
        display_currency="USD",
        rates={"USD": 1.0, "EUR": 0.9, "AUD": 1.5},
    )


def make_tx(tx_id, day, buy, sell=None, **kw):
    return Transaction(
        id=tx_id,
        date=day if isinstance(day, date) else date.fromisoformat(day),
        item_name=kw.get("item_name", f"Item {tx_id}"),
        category=kw.get("category", "Case"),
        quantity=kw.get("quantity", 1),
        buy_amount_canonical=buy,
        sell_amount_canonical=sell,
        notes=kw.get("notes", ""),
    )


@pytest.fixture
def state(table):
    ledger = Ledger(
        [
            make_tx("a", "2024-03-02", 10.0, 15.0, item_name="Kilowatt Case"),
            make_tx("b", "2024-03-01", 20.0, None, item_name="AK-47 | Redline", category="Skin"),
        ]
    )
    return LedgerState(ledger=ledger, currency_table=table)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def gateway(session_factory):
    return SqlLedgerGateway(session_factory)


@pytest.fixture
def rate_chain():
    return RateSourceChain(
        [
            StubProvider("primary", None),
            StubProvider("secondary", {"USD": 1.0, "EUR": 0.8, "AUD": 1.6}),
        ]
    )


@pytest.fixture
def store(gateway, rate_chain):
    return SessionStore(gateway=gateway, rate_chain=rate_chain, default_canonical="USD")


@pytest.fixture
def client(store):
    from main import create_app

    with TestClient(create_app(store)) as c:
        yield c
