# app/services/ledger.py
#
# Ledger Model
# Transaction records (amounts always in canonical currency), the ordered
# Ledger collection, and the LedgerState bundle that every engine operation
# takes and returns. All three are immutable: edits produce new objects.

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Iterable, Iterator, Optional, Tuple

from app.services.conversion import to_canonical
from app.services.currency import CurrencyTable
from app.services.errors import InvalidTransactionError, TransactionNotFoundError


def new_id() -> str:
    return uuid.uuid4().hex


def parse_date(value) -> date:
    """Accept a date, a datetime, or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
        except ValueError:
            raise InvalidTransactionError(f"Invalid date: {value!r}")
    raise InvalidTransactionError(f"Missing or invalid date: {value!r}")


# ---- Transaction ----

@dataclass(frozen=True)
class Transaction:
    """
    One buy (and optional sell) of `quantity` identical items.

    Amounts are totals in the canonical currency. `sell_amount_canonical`
    is None while the item is unsold; 0.0 is a real zero-priced sale.
    """

    id: str
    date: date
    item_name: str
    category: str
    buy_amount_canonical: float
    sell_amount_canonical: Optional[float] = None
    quantity: int = 1
    notes: str = ""

    def __post_init__(self):
        if not self.id:
            raise InvalidTransactionError("Transaction id is required")
        if not isinstance(self.date, date):
            raise InvalidTransactionError(f"Transaction date must be a date, got {self.date!r}")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise InvalidTransactionError(f"Quantity must be a positive integer, got {self.quantity!r}")
        buy, sell = self.buy_amount_canonical, self.sell_amount_canonical
        if buy is None or not math.isfinite(buy) or buy < 0:
            raise InvalidTransactionError(f"Buy amount must be a finite number >= 0, got {buy!r}")
        if sell is not None and (not math.isfinite(sell) or sell < 0):
            raise InvalidTransactionError(f"Sell amount must be a finite number >= 0, got {sell!r}")

    @property
    def is_sold(self) -> bool:
        return self.sell_amount_canonical is not None

    def scaled(self, factor: float) -> "Transaction":
        """Same trade with both amounts multiplied by `factor` (rebase)."""
        sell = self.sell_amount_canonical
        return replace(
            self,
            buy_amount_canonical=self.buy_amount_canonical * factor,
            sell_amount_canonical=None if sell is None else sell * factor,
        )


def new_transaction(
    *,
    date,
    item_name: str,
    category: str,
    buy_amount: float,
    sell_amount: Optional[float],
    currency: str,
    table: CurrencyTable,
    quantity: int = 1,
    notes: str = "",
    tx_id: Optional[str] = None,
) -> Transaction:
    """
    Build a Transaction from amounts the user typed in `currency`.

    Amounts are converted to canonical before they are stored.
    """
    if buy_amount is None:
        raise InvalidTransactionError("Buy amount is required")
    return Transaction(
        id=tx_id or new_id(),
        date=parse_date(date),
        item_name=(item_name or "").strip(),
        category=(category or "").strip(),
        quantity=quantity,
        buy_amount_canonical=to_canonical(float(buy_amount), currency, table),
        sell_amount_canonical=(
            None if sell_amount is None else to_canonical(float(sell_amount), currency, table)
        ),
        notes=(notes or "").strip(),
    )


# ---- Derived values ----

def unit_buy_price(tx: Transaction) -> float:
    return tx.buy_amount_canonical / tx.quantity


def unit_sell_price(tx: Transaction) -> Optional[float]:
    if tx.sell_amount_canonical is None:
        return None
    return tx.sell_amount_canonical / tx.quantity


def profit_canonical(tx: Transaction) -> float:
    """Net result of the trade; an unsold item counts as a full loss of its cost."""
    return (tx.sell_amount_canonical or 0.0) - tx.buy_amount_canonical


def profit_percent(tx: Transaction) -> Optional[float]:
    """Profit relative to cost, only for sold items."""
    if tx.sell_amount_canonical is None:
        return None
    if tx.buy_amount_canonical <= 0:
        return 0.0
    return profit_canonical(tx) / tx.buy_amount_canonical * 100


# ---- Ledger ----

class Ledger:
    """Immutable list of transactions in insertion order."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Transaction] = ()):
        self._items: Tuple[Transaction, ...] = tuple(items)
        ids = [t.id for t in self._items]
        if len(ids) != len(set(ids)):
            raise InvalidTransactionError("Duplicate transaction id in ledger")

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other) -> bool:
        return isinstance(other, Ledger) and self._items == other._items

    def __repr__(self) -> str:
        return f"Ledger({len(self._items)} transactions)"

    def ordered(self) -> list[Transaction]:
        """Reporting order: by date, insertion order on ties (sorted() is stable)."""
        return sorted(self._items, key=lambda t: t.date)

    def get(self, tx_id: str) -> Transaction:
        for t in self._items:
            if t.id == tx_id:
                return t
        raise TransactionNotFoundError(tx_id)

    def contains(self, tx_id: str) -> bool:
        return any(t.id == tx_id for t in self._items)

    def add(self, tx: Transaction) -> "Ledger":
        return Ledger(self._items + (tx,))

    def replace(self, tx: Transaction) -> "Ledger":
        """Explicit edit: swap the record with the same id, keeping its position."""
        self.get(tx.id)
        return Ledger(tx if t.id == tx.id else t for t in self._items)

    def upsert(self, tx: Transaction) -> "Ledger":
        return self.replace(tx) if self.contains(tx.id) else self.add(tx)

    def remove(self, tx_id: str) -> "Ledger":
        self.get(tx_id)
        return Ledger(t for t in self._items if t.id != tx_id)

    def map(self, fn) -> "Ledger":
        return Ledger(fn(t) for t in self._items)

    def search(self, query: Optional[str]) -> list[Transaction]:
        """Case-insensitive match on item name, notes or category, in reporting order."""
        rows = self.ordered()
        q = (query or "").strip().lower()
        if not q:
            return rows
        return [
            t for t in rows
            if any(q in (v or "").lower() for v in (t.item_name, t.notes, t.category))
        ]


# ---- Session state ----

@dataclass(frozen=True)
class LedgerState:
    """Everything one user owns: their ledger and their currency table."""

    ledger: Ledger = field(default_factory=Ledger)
    currency_table: Optional[CurrencyTable] = None

    def with_ledger(self, ledger: Ledger) -> "LedgerState":
        return replace(self, ledger=ledger)

    def with_table(self, table: CurrencyTable) -> "LedgerState":
        return replace(self, currency_table=table)
