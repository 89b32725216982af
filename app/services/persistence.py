# app/services/persistence.py
#
# Persistence Gateway
# Loads and saves a user's LedgerState through SQLAlchemy. A save writes a
# full snapshot (settings row + every transaction row) in one DB transaction.

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from models import CurrencySettings, Transaction as TransactionRow
from app.services.currency import CurrencyTable
from app.services.ledger import Ledger, LedgerState, Transaction

logger = logging.getLogger(__name__)


# ---- Row conversion ----

def row_from_transaction(user_key: str, position: int, tx: Transaction) -> TransactionRow:
    return TransactionRow(
        id=tx.id,
        user_key=user_key,
        position=position,
        date=tx.date,
        item_name=tx.item_name,
        category=tx.category,
        quantity=tx.quantity,
        buy_amount_canonical=tx.buy_amount_canonical,
        sell_amount_canonical=tx.sell_amount_canonical,
        notes=tx.notes,
    )


def transaction_from_row(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        date=row.date,
        item_name=row.item_name or "",
        category=row.category or "",
        quantity=int(row.quantity or 1),
        buy_amount_canonical=float(row.buy_amount_canonical),
        sell_amount_canonical=(
            None if row.sell_amount_canonical is None else float(row.sell_amount_canonical)
        ),
        notes=row.notes or "",
    )


# ---- Gateway ----

class SqlLedgerGateway:
    """
    load(user_key) -> LedgerState | None
    save(user_key, state)
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def load(self, user_key: str) -> Optional[LedgerState]:
        db = self.session_factory()
        try:
            settings = db.get(CurrencySettings, user_key)
            if settings is None:
                return None

            rows = (
                db.query(TransactionRow)
                .filter(TransactionRow.user_key == user_key)
                .order_by(TransactionRow.position.asc())
                .all()
            )
            table = CurrencyTable(
                canonical_currency=settings.canonical_currency,
                display_currency=settings.display_currency,
                rates=settings.rates or {},
            )
            return LedgerState(
                ledger=Ledger(transaction_from_row(r) for r in rows),
                currency_table=table,
            )
        finally:
            db.close()

    def save(self, user_key: str, state: LedgerState) -> None:
        table = state.currency_table
        db = self.session_factory()
        try:
            db.query(TransactionRow).filter(TransactionRow.user_key == user_key).delete(
                synchronize_session=False
            )
            db.merge(
                CurrencySettings(
                    user_key=user_key,
                    canonical_currency=table.canonical_currency,
                    display_currency=table.display_currency,
                    rates=dict(table.rates),
                )
            )
            db.add_all(
                row_from_transaction(user_key, i, tx) for i, tx in enumerate(state.ledger)
            )
            db.commit()
            logger.debug("[persist] saved %d transactions for %r", len(state.ledger), user_key)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
