"""API endpoints for service health and recent activity."""

import logging

from fastapi import APIRouter, Depends

from furlong import __version__
from furlong.activity_log import activity_log
from furlong.api.deps import get_store
from furlong.store import REGISTRY_KEY, KeyValueStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(store: KeyValueStore = Depends(get_store)):
    """Report whether the store answers a read."""
    try:
        current = await store.get(REGISTRY_KEY)
    except Exception as e:
        logger.error(f"Health check store read failed: {e}")
        return {"status": "degraded", "store": "unreachable", "version": __version__}
    return {
        "status": "healthy",
        "store": "ok",
        "registry_version": current.version,
        "version": __version__,
    }


@router.get("/activity")
async def recent_activity(limit: int = 50):
    """Most recent ingestion and registry activity, newest first."""
    return activity_log.get_entries(limit)
