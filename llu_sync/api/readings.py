"""API endpoints for reading back synced glucose records."""

import asyncio
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query

from llu_sync.auth.credentials import CredentialStore, get_credential_store
from llu_sync.data.health_store import HealthStore, get_health_store

router = APIRouter(prefix="/readings", tags=["glucose"])


def current_user_id(credentials: CredentialStore = Depends(get_credential_store)) -> str:
    """Id of the logged-in account; 401 when nobody is logged in."""
    _, user = credentials.load()
    if user is None:
        raise HTTPException(status_code=401, detail="Not logged in")
    return user.id


@router.get("/latest")
async def get_latest_reading(
    user_id: str = Depends(current_user_id),
    store: HealthStore = Depends(get_health_store),
) -> Dict[str, Any]:
    """
    Newest record written for the logged-in account.

    Returns:
        Dict[str, Any]: The record; 404 when nothing has been synced yet
    """
    record = await asyncio.to_thread(store.latest, user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="No readings found")
    return {"status": "success", "data": record.model_dump(mode="json")}


@router.get("")
async def get_recent_readings(
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(current_user_id),
    store: HealthStore = Depends(get_health_store),
) -> Dict[str, Any]:
    records = await asyncio.to_thread(store.recent, user_id, limit)
    return {
        "status": "success",
        "data": [record.model_dump(mode="json") for record in records],
        "count": len(records),
    }
