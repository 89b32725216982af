# app/services/spreadsheet.py
#
# Spreadsheet Export / Import
# Tabular view of the ledger in display currency, and the reverse: reading a
# CSV table back into ledger records. Two header layouts are understood, with
# and without a Quantity column.

from __future__ import annotations

import io
import logging
import re
from datetime import datetime
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from app.services.analytics import display_row
from app.services.conversion import to_canonical
from app.services.errors import InvalidImportFileError
from app.services.import_helpers import ImportResult, merge_records
from app.services.ledger import LedgerState

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "Date",
    "Item Name",
    "Type",
    "Quantity",
    "Buy Price",
    "Sell Price",
    "Profit/Loss",
    "Profit %",
    "Notes",
]

REQUIRED_COLUMNS = {"Date", "Item Name", "Type", "Buy Price", "Sell Price", "Notes"}

MONEY_COLUMNS = ["Buy Price", "Sell Price", "Profit/Loss", "Profit %"]

_NUMBER_JUNK_RE = re.compile(r"[^0-9.,\-]")


# ---- Export ----

def export_table(state: LedgerState, display_currency: Optional[str] = None) -> pd.DataFrame:
    """One row per transaction, reporting order, amounts in display currency."""
    table = state.currency_table
    currency = display_currency or table.effective_display
    rows = [display_row(t, table, currency) for t in state.ledger.ordered()]

    if not rows:
        return pd.DataFrame(columns=EXPORT_COLUMNS)

    df = pd.DataFrame(rows).rename(
        columns={
            "date": "Date",
            "itemName": "Item Name",
            "category": "Type",
            "quantity": "Quantity",
            "buy": "Buy Price",
            "sell": "Sell Price",
            "profit": "Profit/Loss",
            "profitPercent": "Profit %",
            "notes": "Notes",
        }
    )

    # Unsold rows keep blank sell / profit cells (None -> NaN -> empty in CSV)
    for col in MONEY_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").round(2)

    return df[EXPORT_COLUMNS]


def to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


# ---- Import ----

def parse_sheet_date(value) -> Optional[str]:
    """
    Normalize a sheet date to 'YYYY-MM-DD'.
    Accepts ISO dates and the 'DD-Mon-YYYY' style used by the web table.
    """
    s = str(value or "").strip()
    if not s:
        return None
    for fmt in ("%Y-%m-%d", "%d-%b-%Y", "%d.%m.%Y"):
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    # Unparseable dates are passed through and rejected by record validation
    return s


def parse_sheet_number(value) -> Optional[str]:
    """
    Strip currency symbols and thousand separators; '' stays empty.

    Handles both '1,234.56' and European '1.234,56' / '−50,00': the last
    separator is the decimal one, and a lone comma is decimal too.
    """
    raw = str(value or "").strip()
    if not raw:
        return None

    # Replace Unicode minus with normal minus
    s = _NUMBER_JUNK_RE.sub("", raw.replace("−", "-"))
    if not s:
        return raw

    last_dot, last_comma = s.rfind("."), s.rfind(",")
    if last_comma > last_dot and (last_dot >= 0 or s.count(",") == 1):
        # '1.234,56' / '3,5'
        s = s.replace(".", "").replace(",", ".")
    elif last_comma < 0 and s.count(".") > 1:
        # '1.234.567'
        s = s.replace(".", "")
    else:
        # '1,234.56' / '1,234,567'
        s = s.replace(",", "")
    return s


def detect_layout(columns) -> bool:
    """True when the sheet carries a Quantity column."""
    cols = {str(c).strip() for c in columns}
    missing = REQUIRED_COLUMNS - cols
    if missing:
        raise InvalidImportFileError(f"Unrecognized sheet layout, missing columns: {sorted(missing)}")
    return "Quantity" in cols


def read_table(source) -> pd.DataFrame:
    """Read CSV text, bytes, a path or a file object into a string-typed DataFrame."""
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    elif isinstance(source, str) and "\n" in source:
        source = io.StringIO(source)
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise InvalidImportFileError(f"Cannot read sheet: {e}") from e

    df.columns = df.columns.str.strip()
    return df


def sheet_records(df: pd.DataFrame) -> list:
    """Rows of a sheet as import records (amounts still in sheet currency)."""
    has_quantity = detect_layout(df.columns)

    if df.empty:
        return []

    # drop fully empty rows
    blank = np.all(df.apply(lambda s: s.str.strip() == "").to_numpy(), axis=1)
    df = df[~blank].copy()
    if not has_quantity:
        df["Quantity"] = "1"

    records = []
    for row in df.to_dict(orient="records"):
        records.append(
            {
                "date": parse_sheet_date(row.get("Date")),
                "itemName": str(row.get("Item Name", "")).strip(),
                "category": str(row.get("Type", "")).strip(),
                "quantity": str(row.get("Quantity", "")).strip() or None,
                "buyAmountCanonical": parse_sheet_number(row.get("Buy Price")),
                "sellAmountCanonical": parse_sheet_number(row.get("Sell Price")),
                "notes": str(row.get("Notes", "")).strip(),
            }
        )
    return records


def import_table(state: LedgerState, source, currency: Optional[str] = None) -> Tuple[LedgerState, ImportResult]:
    """
    Append the rows of a CSV sheet to the ledger.

    Prices are read as `currency` (default: the display currency, which is
    what export_table writes) and converted to canonical before storage.
    """
    table = state.currency_table
    currency = currency or table.effective_display

    records = sheet_records(read_table(source))

    def convert(amount: float) -> float:
        return to_canonical(amount, currency, table)

    ledger, result = merge_records(records, state.ledger, convert)
    logger.info("[import] sheet (%s): %d accepted, %d rejected", currency, result.accepted, result.rejected)
    return state.with_ledger(ledger), result
