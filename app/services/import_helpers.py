# app/services/import_helpers.py
#
# Import / Export Helpers
# Converts ledger records to and from their JSON backup shape, and merges
# imported batches into a LedgerState. Bad records are skipped and counted,
# never allowed to abort the rest of the batch.

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

from app.services.conversion import from_canonical
from app.services.currency import CurrencyTable, table_from_dict
from app.services.errors import (
    InvalidImportFileError,
    InvalidImportRecordError,
    InvalidRateError,
    InvalidTransactionError,
)
from app.services.ledger import Ledger, LedgerState, Transaction, new_id, parse_date

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1

# Field name -> accepted keys, newest first (legacy exports used the later ones)
FIELD_KEYS = {
    "item_name": ("itemName", "item_name"),
    "category": ("category", "type"),
    "buy": ("buyAmountCanonical", "buy_amount_canonical", "buyPriceBase"),
    "sell": ("sellAmountCanonical", "sell_amount_canonical", "sellPriceBase"),
}


@dataclass
class ImportResult:
    accepted: int = 0
    rejected: int = 0
    errors: List[str] = field(default_factory=list)

    def reject(self, index: int, reason: str) -> None:
        self.rejected += 1
        self.errors.append(f"record {index}: {reason}")

    def to_dict(self) -> dict:
        return {"accepted": self.accepted, "rejected": self.rejected, "errors": list(self.errors)}


# ---- Record conversion ----

def record_from_transaction(tx: Transaction) -> dict:
    return {
        "id": tx.id,
        "date": tx.date.isoformat(),
        "itemName": tx.item_name,
        "category": tx.category,
        "quantity": tx.quantity,
        "buyAmountCanonical": tx.buy_amount_canonical,
        "sellAmountCanonical": tx.sell_amount_canonical,
        "notes": tx.notes,
    }


def _pick(record: dict, name: str):
    for key in FIELD_KEYS[name]:
        if key in record:
            return record[key]
    return None


def parse_amount(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise InvalidImportRecordError(f"{label} is not a number: {value!r}")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidImportRecordError(f"{label} is not a number: {value!r}")
    if math.isnan(amount) or math.isinf(amount):
        raise InvalidImportRecordError(f"{label} is not a finite number")
    return amount


def parse_quantity(value: Any) -> int:
    if value is None or value == "":
        return 1
    qty = parse_amount(value, "quantity")
    if qty != int(qty) or qty < 1:
        raise InvalidImportRecordError(f"quantity must be a positive integer, got {value!r}")
    return int(qty)


def build_transaction_from_dict(
    record: dict,
    convert: Optional[Callable[[float], float]] = None,
) -> Transaction:
    """
    Convert one imported record into a Transaction.

    `convert` maps amounts from the record's canonical currency into the
    ledger's (identity when both are the same).
    """
    if not isinstance(record, dict):
        raise InvalidImportRecordError(f"expected an object, got {type(record).__name__}")

    raw_buy = _pick(record, "buy")
    if raw_buy is None or raw_buy == "":
        raise InvalidImportRecordError("missing buy amount")
    if not record.get("date"):
        raise InvalidImportRecordError("missing date")

    buy = parse_amount(raw_buy, "buy amount")
    raw_sell = _pick(record, "sell")
    sell = None if raw_sell is None or raw_sell == "" else parse_amount(raw_sell, "sell amount")

    if convert is not None:
        buy = convert(buy)
        sell = None if sell is None else convert(sell)

    try:
        return Transaction(
            id=str(record.get("id") or new_id()),
            date=parse_date(record.get("date")),
            item_name=str(_pick(record, "item_name") or ""),
            category=str(_pick(record, "category") or ""),
            quantity=parse_quantity(record.get("quantity")),
            buy_amount_canonical=buy,
            sell_amount_canonical=sell,
            notes=str(record.get("notes") or ""),
        )
    except InvalidTransactionError as e:
        raise InvalidImportRecordError(str(e)) from e


# ---- Export ----

def export_document(state: LedgerState) -> dict:
    """Full backup: currency table plus every transaction in insertion order."""
    return {
        "version": EXPORT_VERSION,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "currencyTable": state.currency_table.to_dict(),
        "transactions": [record_from_transaction(t) for t in state.ledger],
    }


def dump_document(state: LedgerState) -> str:
    return json.dumps(export_document(state), indent=2, ensure_ascii=False)


# ---- Import ----

def _split_payload(payload: Any) -> Tuple[list, Optional[CurrencyTable]]:
    """(records, document table or None). Accepts an export document or a bare array."""
    if isinstance(payload, list):
        return payload, None
    if not isinstance(payload, dict) or not isinstance(payload.get("transactions"), list):
        raise InvalidImportFileError("Expected an export document or an array of transactions")

    table_data = payload.get("currencyTable")
    if table_data is None and (payload.get("canonicalCurrency") or payload.get("baseCurrency")):
        # legacy exports kept the table at top level
        table_data = payload
    if table_data is None:
        return payload["transactions"], None
    try:
        return payload["transactions"], table_from_dict(table_data)
    except InvalidRateError as e:
        raise InvalidImportFileError(f"Invalid currency table: {e}") from e


def merge_records(
    records: list,
    base: Ledger,
    convert: Optional[Callable[[float], float]] = None,
) -> Tuple[Ledger, ImportResult]:
    result = ImportResult()
    ledger = base
    seen = set()

    for index, record in enumerate(records, start=1):
        try:
            tx = build_transaction_from_dict(record, convert)
        except InvalidImportRecordError as e:
            result.reject(index, str(e))
            continue
        if tx.id in seen:
            result.reject(index, f"duplicate id {tx.id!r} in batch")
            continue
        seen.add(tx.id)
        ledger = ledger.upsert(tx)
        result.accepted += 1

    return ledger, result


def import_records(state: LedgerState, payload: Any, replace: bool = True) -> Tuple[LedgerState, ImportResult]:
    """
    Import a batch into `state`.

    replace=True  restore: the ledger becomes the imported records, and a
                  document's currency table replaces the current one.
    replace=False append: records are upserted by id; amounts from a document
                  with another canonical currency are converted with that
                  document's own rates.

    A bare array is read as amounts in the current canonical currency.
    """
    records, doc_table = _split_payload(payload)
    current = state.currency_table

    if replace:
        ledger, result = merge_records(records, Ledger())
        if records and result.accepted == 0:
            logger.warning("[import] restore rejected all %d records; ledger left unchanged", len(records))
            return state, result
        table = doc_table or current
        new_state = LedgerState(ledger=ledger, currency_table=table)
    else:
        convert = None
        if doc_table is not None and doc_table.canonical_currency != current.canonical_currency:
            target = current.canonical_currency

            def convert(amount: float) -> float:
                return from_canonical(amount, target, doc_table)

        ledger, result = merge_records(records, state.ledger, convert)
        new_state = state.with_ledger(ledger)

    logger.info(
        "[import] %s: %d accepted, %d rejected",
        "restore" if replace else "append",
        result.accepted,
        result.rejected,
    )
    return new_state, result
