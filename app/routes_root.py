# routes_root.py
"""
Service status: health of the app and of the caller's stored copy.
"""

from fastapi import APIRouter, Depends

from app.deps import get_store, get_user_key
from app.services.session_store import SessionStore

router = APIRouter()


@router.get("/")
def read_root(
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """
    Health check. `synced` is False while the caller's last write to the
    database has not gone through.
    """
    return {"message": "Trade ledger is running", "synced": store.is_synced(user_key)}


@router.post("/sync")
async def sync(
    user_key: str = Depends(get_user_key),
    store: SessionStore = Depends(get_store),
):
    """Retry a pending database write for the caller's ledger."""
    return {"synced": await store.flush(user_key)}
