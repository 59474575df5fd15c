"""Cross-device continuity API (devices, handoff snapshots, sync queue, polling)."""
from fastapi import APIRouter

from app.api.continuity import routes_devices, routes_poll, routes_snapshots, routes_sync

router = APIRouter()

router.include_router(routes_devices.router, prefix="/devices", tags=["continuity-devices"])
router.include_router(routes_snapshots.router, prefix="/snapshots", tags=["continuity-snapshots"])
router.include_router(routes_sync.router, prefix="/sync", tags=["continuity-sync"])
router.include_router(routes_poll.router, tags=["continuity-poll"])
