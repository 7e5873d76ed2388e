"""
Admin routes for the Fal.ai catalog sync

Syncs run in a worker thread so the event loop stays responsive. Only one
sync or parameter refresh runs per process at a time; a second request while
one is running gets 409.
"""

import asyncio
import logging
import threading
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from catalog_sync.config.supabase_config import get_initialization_status
from catalog_sync.db.catalog_db import CatalogStore, get_catalog_counts
from catalog_sync.security.deps import get_admin_key
from catalog_sync.services.fal_sync import refresh_fal_parameters, sync_fal_models
from catalog_sync.utils.exceptions import CatalogSyncError, UpstreamUnavailable

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/fal-sync",
    tags=["Admin - Fal Sync"],
    dependencies=[Depends(get_admin_key)],
)

_run_lock = threading.Lock()
_last_result: dict[str, Any] | None = None


class SyncResponse(BaseModel):
    """Response from sync operation"""

    success: bool = Field(..., description="Whether the pass completed")
    message: str = Field(..., description="Human-readable summary message")
    details: dict = Field(..., description="Detailed sync results")


class SyncStatusResponse(BaseModel):
    running: bool
    last_result: dict | None = None
    database: dict


def _run_exclusive(func, *args):
    if not _run_lock.acquire(blocking=False):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A catalog sync is already running",
        )
    try:
        return func(*args)
    except UpstreamUnavailable as e:
        logger.error(f"[SYNC-ERROR] Fal.ai unavailable: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    except CatalogSyncError as e:
        logger.error(f"[SYNC-ERROR] Sync failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    except (RuntimeError, ValueError) as e:
        # Missing credentials or an unreachable database
        logger.error(f"[SYNC-ERROR] Sync could not start: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    finally:
        _run_lock.release()


@router.post("/run", response_model=SyncResponse)
async def run_sync():
    """
    Run one full sync pass: fetch models, pricing and schemas from fal.ai and
    reconcile them into the catalog.
    """
    global _last_result

    logger.info("🎯 [SYNC-START] Fal.ai catalog sync initiated")
    result = await asyncio.to_thread(_run_exclusive, sync_fal_models)
    _last_result = result.model_dump()

    return SyncResponse(
        success=True,
        message=(
            f"Synced {result.models_added + result.models_updated} models "
            f"({result.models_added} added, {result.models_updated} updated) "
            f"with {len(result.errors)} errors"
        ),
        details=_last_result,
    )


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status():
    """Whether a sync is running, the last completed result and the database client state"""
    return SyncStatusResponse(
        running=_run_lock.locked(),
        last_result=_last_result,
        database=get_initialization_status(),
    )


@router.post("/parameters/refresh", response_model=SyncResponse)
async def refresh_parameters():
    """Re-derive parameters of every catalog model from its published schema"""
    result = await asyncio.to_thread(_run_exclusive, refresh_fal_parameters)
    return SyncResponse(
        success=True,
        message=(
            f"Updated parameters for {result.updated} of {result.total} models "
            f"({result.skipped} skipped, {result.failed} failed)"
        ),
        details=result.model_dump(),
    )


@router.get("/counts")
async def get_counts():
    """Row counts of the catalog tables"""
    try:
        return await asyncio.to_thread(lambda: get_catalog_counts(CatalogStore()))
    except (CatalogSyncError, RuntimeError) as e:
        logger.error(f"Failed to count catalog rows: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
