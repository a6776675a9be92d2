"""Sync management endpoints"""
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

router = APIRouter(prefix="/api/sync", tags=["sync"])


class MirrorTargetResponse(BaseModel):
    name: str
    mirror_path: str
    destination_project_id: Optional[int] = None
    destination_path: Optional[str] = None


def _scheduler(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not running")
    return scheduler


@router.post("/trigger", status_code=202)
def trigger_sync(request: Request):
    """Start a sync cycle now instead of waiting for the interval"""
    scheduler = _scheduler(request)
    if not scheduler.trigger_now():
        raise HTTPException(status_code=503, detail="Scheduler not running")
    return {"status": "scheduled"}


@router.get("/status")
def sync_status(request: Request):
    """Summary of the last finished cycle"""
    service = _scheduler(request).sync_service
    if service.last_cycle is None:
        return {"status": "pending", "running": service.is_running}
    return {**service.last_cycle, "running": service.is_running}


@router.get("/targets", response_model=List[MirrorTargetResponse])
def list_targets(request: Request):
    """Repositories seen so far and their resolved GitLab projects"""
    service = _scheduler(request).sync_service
    return [target.to_dict() for target in service.targets.values()]
