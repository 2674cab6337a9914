from typing import Any

from fastapi import APIRouter, Body, Depends

from api.errors import BadRequest
from api.services import Services, get_services
from utils.logger import log_info

router = APIRouter(prefix="/api/schedule", tags=["Schedule"])


@router.get("", summary="Stored schedule entries")
def get_schedule(services: Services = Depends(get_services)):
    raw = services.schedule_store.load_raw()
    items = raw.get("items")
    if isinstance(items, list):
        return {"ok": True, "items": items, "legacy": False}
    return {"ok": True, "items": [], "legacy": True}


@router.put("", summary="Replace schedule entries (timers change only after reload)")
def put_schedule(payload: Any = Body(None), services: Services = Depends(get_services)):
    items = payload
    if isinstance(payload, dict):
        items = payload.get("items")
    if not isinstance(items, list):
        raise BadRequest("Send { items: [...] }")

    count = services.schedule_store.save_items(items)
    log_info(f"Schedule saved: {count} item(s)")
    return {"ok": True, "count": count}


@router.post("/reload", summary="Rebuild every timer from the stored schedule")
async def reload_schedule(services: Services = Depends(get_services)):
    created = await services.engine.reload_async()
    return {"ok": True, "tasksCreated": created}
