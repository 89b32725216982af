# app/deps.py
# Role: Shared request dependencies.
#       Provides the per-app SessionStore and the ledger owner key taken from
#       the X-User-Key header (authentication happens in front of this service).

"""
Shared dependencies for the trade ledger API.
"""

from typing import Optional

from fastapi import Header, Request

import config
from app.services.session_store import SessionStore


# -------------------------------------------------------------------
# Session store
# -------------------------------------------------------------------

def get_store(request: Request) -> SessionStore:
    """
    FastAPI dependency returning the SessionStore attached to the app
    (see main.create_app).
    """
    return request.app.state.store


# -------------------------------------------------------------------
# Ledger owner
# -------------------------------------------------------------------

def get_user_key(x_user_key: Optional[str] = Header(None)) -> str:
    """
    Each key owns an isolated ledger and currency table.

    Typical usage in routes:
        user_key: str = Depends(get_user_key)
    """
    key = (x_user_key or "").strip()
    return key or config.DEFAULT_USER_KEY
