# routes_upload.py
"""
Routes for backup / restore and spreadsheet exchange:

- JSON export of the full ledger and currency table
- JSON import (restore or append)
- CSV export in display currency
- CSV upload with per-row validation
"""

import json
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response

from app.deps import get_store, get_user_key
from app.services.errors import InvalidImportFileError
from app.services.import_helpers import dump_document, import_records
from app.services.session_store import SessionStore
from app.services.spreadsheet import export_table, import_table, to_csv_bytes

router = APIRouter(prefix="/data")


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


# -------------------------------------------------------------------
# JSON backup
# -------------------------------------------------------------------

@router.get("/export")
async def export_json(
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    state = await store.get(user_key)
    return Response(
        content=dump_document(state),
        media_type="application/json",
        headers=_attachment(f"ledger-{user_key}-{date.today().isoformat()}.json"),
    )


@router.post("/import")
async def import_json(
    payload: Any = Body(...),
    mode: str = Query("replace", pattern="^(replace|append)$"),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """
    Accepts an export document or a bare array of transactions.

    Invalid records are skipped; the response says how many made it in.
    """
    result = await store.apply(
        user_key,
        lambda state: import_records(state, payload, replace=(mode == "replace")),
    )
    response = result.to_dict()
    response["synced"] = store.is_synced(user_key)
    return response


@router.post("/import-file")
async def import_json_file(
    file: UploadFile = File(...),
    mode: str = Form("replace"),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """Same as /data/import, for a JSON file chosen in a file picker."""
    raw = await file.read()
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidImportFileError(f"{file.filename}: not a JSON document ({e})") from e

    result = await store.apply(
        user_key,
        lambda state: import_records(state, payload, replace=(mode != "append")),
    )
    response = result.to_dict()
    response["synced"] = store.is_synced(user_key)
    return response


# -------------------------------------------------------------------
# Spreadsheet (CSV)
# -------------------------------------------------------------------

@router.get("/export.csv")
async def export_csv(
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    state = await store.get(user_key)
    display = (currency or state.currency_table.effective_display).upper()
    df = export_table(state, display)
    return Response(
        content=to_csv_bytes(df),
        media_type="text/csv",
        headers=_attachment(f"ledger-{user_key}-{display}.csv"),
    )


@router.post("/import-csv")
async def import_csv(
    file: UploadFile = File(...),
    currency: Optional[str] = Form(None),
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """
    Append the rows of an uploaded sheet. Prices are read in `currency`
    (default: the current display currency).
    """
    raw = await file.read()
    result = await store.apply(
        user_key,
        lambda state: import_table(state, raw, currency.upper() if currency else None),
    )
    response = result.to_dict()
    response["synced"] = store.is_synced(user_key)
    return response
