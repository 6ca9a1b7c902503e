from __future__ import annotations
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional

from frameart.api.deps import Services, get_services
from frameart.api.errors import translate_errors

router = APIRouter()


class PushPayload(BaseModel):
    files: Optional[List[str]] = None
    message: Optional[str] = None


@router.get("/status")
def sync_status(fetch: bool = True, svc: Services = Depends(get_services)):
    with translate_errors():
        return svc.sync.semantic_status(fetch=fetch)


@router.post("/check")
def check_and_pull(svc: Services = Depends(get_services)):
    """Page-load hook: guarded pull, a cheap no-op when already clean."""
    with translate_errors():
        return svc.sync.guarded_pull().model_dump(mode="json")


@router.get("/verify")
def verify(svc: Services = Depends(get_services)):
    with translate_errors():
        return svc.sync.verify().model_dump(mode="json")


@router.post("/push")
def push(payload: Optional[PushPayload] = None, svc: Services = Depends(get_services)):
    payload = payload or PushPayload()
    with translate_errors():
        return svc.sync.commit_and_push(files=payload.files, message=payload.message).model_dump(mode="json")


@router.get("/logs")
def get_logs(svc: Services = Depends(get_services)):
    return [e.model_dump(mode="json") for e in svc.sync.log.list()]


@router.delete("/logs")
def clear_logs(svc: Services = Depends(get_services)):
    svc.sync.log.clear()
    return {"cleared": True}


@router.get("/conflicts")
def conflicts(svc: Services = Depends(get_services)):
    with translate_errors():
        return svc.sync.check_conflicts()


@router.post("/abort-merge")
def abort_merge(svc: Services = Depends(get_services)):
    with translate_errors():
        return svc.sync.abort_merge().model_dump(mode="json")
