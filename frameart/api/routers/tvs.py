from __future__ import annotations
from fastapi import APIRouter, Depends
from fastapi import status as http
from pydantic import BaseModel
from typing import List, Optional

from frameart.api.deps import Services, auto_sync, get_services
from frameart.api.errors import translate_errors
from frameart.models.image import dedupe_tags

router = APIRouter()


class TVCreatePayload(BaseModel):
    name: str
    ip: str
    home: Optional[str] = None
    mac: Optional[str] = None
    tags: List[str] = []


class TVUpdatePayload(BaseModel):
    name: Optional[str] = None
    ip: Optional[str] = None
    home: Optional[str] = None
    mac: Optional[str] = None


class TVTagsPayload(BaseModel):
    tags: List[str]


def _dump(tv) -> dict:
    return tv.model_dump(mode="json", exclude_unset=True)


@router.get("")
def list_tvs(svc: Services = Depends(get_services)):
    with translate_errors():
        return [_dump(tv) for tv in svc.tvs.list()]


@router.get("/shortcuts")
def tv_shortcuts(tags: Optional[str] = None, svc: Services = Depends(get_services)):
    with translate_errors():
        return svc.tvs.shortcuts(dedupe_tags(tags))


@router.post("", status_code=http.HTTP_201_CREATED)
def add_tv(payload: TVCreatePayload, svc: Services = Depends(get_services)):
    with translate_errors():
        tv = svc.tvs.add(payload.name, payload.ip, home=payload.home, mac=payload.mac, tags=payload.tags)
    return {"tv": _dump(tv), "sync": auto_sync(svc, ["metadata.json"])}


@router.get("/{tv_id}")
def get_tv(tv_id: str, svc: Services = Depends(get_services)):
    with translate_errors():
        return _dump(svc.tvs.get(tv_id))


@router.put("/{tv_id}")
def update_tv(tv_id: str, payload: TVUpdatePayload, svc: Services = Depends(get_services)):
    with translate_errors():
        tv = svc.tvs.update(tv_id, name=payload.name, ip=payload.ip, home=payload.home, mac=payload.mac)
    return {"tv": _dump(tv), "sync": auto_sync(svc, ["metadata.json"])}


@router.put("/{tv_id}/tags")
def update_tv_tags(tv_id: str, payload: TVTagsPayload, svc: Services = Depends(get_services)):
    with translate_errors():
        tv = svc.tvs.update_tags(tv_id, payload.tags)
    return {"tv": _dump(tv), "sync": auto_sync(svc, ["metadata.json"])}


@router.get("/{tv_id}/images")
def tv_images(tv_id: str, svc: Services = Depends(get_services)):
    with translate_errors():
        images = svc.tvs.images_for(tv_id)
    return {"images": [i.to_dict() for i in images], "count": len(images)}


@router.delete("/{tv_id}")
def delete_tv(tv_id: str, svc: Services = Depends(get_services)):
    with translate_errors():
        svc.tvs.delete(tv_id)
    return {"deleted": tv_id, "sync": auto_sync(svc, ["metadata.json"])}
