from __future__ import annotations
from fastapi import APIRouter, Depends
from fastapi import status as http
from pydantic import BaseModel

from frameart.api.deps import Services, auto_sync, get_services
from frameart.api.errors import translate_errors

router = APIRouter()


class TagPayload(BaseModel):
    name: str


@router.get("")
def list_tags(svc: Services = Depends(get_services)):
    with translate_errors():
        return svc.tags.list()


@router.post("", status_code=http.HTTP_201_CREATED)
def add_tag(payload: TagPayload, svc: Services = Depends(get_services)):
    with translate_errors():
        tags = svc.tags.add(payload.name)
    return {"tags": tags, "sync": auto_sync(svc, ["metadata.json"])}


@router.delete("/{tag}")
def delete_tag(tag: str, svc: Services = Depends(get_services)):
    with translate_errors():
        result = svc.tags.delete(tag)
    return {**result, "sync": auto_sync(svc, ["metadata.json"])}
