"""
This script migrates ledgers from the legacy JSON user store (users.json,
keyed by Steam ID) into the SQL database used by the ledger service.

Each legacy user entry holds baseCurrency, displayCurrency, rates and a
transactions array with buyPriceBase / sellPriceBase amounts. Those are
already canonical-currency values, so they are imported through the normal
restore path without conversion. Bad records are skipped and reported.

Purpose:
- Move existing users off the single JSON file onto the database
- Serve as a one-time / repeatable migration step (a user's rows are
  replaced on every run)
"""


from __future__ import annotations

import json
import sys
from pathlib import Path

# run as `python data-migration/script.py` from the project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from db import SessionLocal, engine, Base
from app.services.currency import default_table
from app.services.errors import InvalidImportFileError
from app.services.import_helpers import import_records
from app.services.ledger import Ledger, LedgerState
from app.services.persistence import SqlLedgerGateway


LEGACY_USERS_FILE = Path("data-migration/users.json")


def _legacy_document(user: dict) -> dict:
    """Legacy user entry -> export-document shape understood by import_records."""
    base = user.get("baseCurrency") or "USD"
    return {
        "currencyTable": {
            "canonicalCurrency": base,
            "displayCurrency": user.get("displayCurrency") or base,
            "rates": user.get("rates") or {},
        },
        "transactions": user.get("transactions") or [],
    }


def migrate_legacy_users(path: Path = LEGACY_USERS_FILE) -> dict:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Legacy user store not found: {path.resolve()}")

    users = json.loads(path.read_text(encoding="utf-8") or "{}")
    if not isinstance(users, dict):
        raise ValueError(f"{path.name}: expected an object keyed by user id")

    Base.metadata.create_all(bind=engine)
    gateway = SqlLedgerGateway(SessionLocal)

    summary = {}
    for user_key, user in users.items():
        empty = LedgerState(ledger=Ledger(), currency_table=default_table())
        try:
            state, result = import_records(empty, _legacy_document(user), replace=True)
        except InvalidImportFileError as e:
            print(f"❌ {user_key}: skipped ({e})")
            summary[user_key] = None
            continue

        gateway.save(str(user_key), state)
        summary[user_key] = result
        print(
            f"✅ {user_key}: {result.accepted} imported, {result.rejected} rejected "
            f"({state.currency_table.canonical_currency})"
        )
        for err in result.errors:
            print(f"    {err}")

    migrated = sum(1 for r in summary.values() if r is not None)
    print(f"\nDONE. Users migrated: {migrated}/{len(summary)}")
    return summary


if __name__ == "__main__":
    migrate_legacy_users(sys.argv[1] if len(sys.argv) > 1 else LEGACY_USERS_FILE)
