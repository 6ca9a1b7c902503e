from __future__ import annotations
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi import status as http
from pydantic import BaseModel, Field
from typing import List, Optional

from frameart.api.deps import Services, auto_sync, get_services
from frameart.api.errors import translate_errors
from frameart.models.image import dedupe_tags
from frameart.models.options import FILTER_TYPES, MATTE_COLORS, MATTE_STYLES, MATTE_TYPES

router = APIRouter()


class UpdateImagePayload(BaseModel):
    # added/dimensions are immutable; anything else in the body is ignored
    matte: Optional[str] = None
    filter: Optional[str] = None
    tags: Optional[List[str]] = None


class RenamePayload(BaseModel):
    new_base_name: str = Field(min_length=1)


class BulkTagPayload(BaseModel):
    filenames: List[str]
    tags: List[str]


@router.get("")
def list_images(search: Optional[str] = None, tags: Optional[str] = None, svc: Services = Depends(get_services)):
    with translate_errors():
        images = svc.images.list(search=search, tags=dedupe_tags(tags))
    return {"images": [i.to_dict() for i in images], "count": len(images)}


@router.get("/options")
def get_options():
    return {
        "matte_types": MATTE_TYPES,
        "matte_styles": MATTE_STYLES,
        "matte_colors": MATTE_COLORS,
        "filter_types": FILTER_TYPES,
    }


@router.get("/verify")
def verify_library(svc: Services = Depends(get_services)):
    with translate_errors():
        return svc.images.verify_library()


@router.post("/upload", status_code=http.HTTP_201_CREATED)
def upload_image(
    file: UploadFile = File(...),
    base_name: Optional[str] = Form(None),
    matte: Optional[str] = Form(None),
    filter: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    svc: Services = Depends(get_services),
):
    data = file.file.read()
    with translate_errors():
        result = svc.images.upload(
            data,
            original_filename=file.filename,
            base_name=base_name,
            matte=matte,
            filter=filter,
            tags=dedupe_tags(tags),
            content_type=file.content_type,
        )
    return {"image": result.image.to_dict(), "sync": auto_sync(svc, result.touched)}


@router.post("/bulk/tag")
def bulk_tag(payload: BulkTagPayload, svc: Services = Depends(get_services)):
    with translate_errors():
        result = svc.images.bulk_tag(payload.filenames, payload.tags)
    return {**result.model_dump(exclude={"touched"}), "partial": result.partial,
            "sync": auto_sync(svc, result.touched)}


@router.post("/bulk/untag")
def bulk_untag(payload: BulkTagPayload, svc: Services = Depends(get_services)):
    with translate_errors():
        result = svc.images.bulk_untag(payload.filenames, payload.tags)
    return {**result.model_dump(exclude={"touched"}), "partial": result.partial,
            "sync": auto_sync(svc, result.touched)}


@router.get("/{filename}")
def get_image(filename: str, svc: Services = Depends(get_services)):
    with translate_errors():
        return svc.images.get(filename).to_dict()


@router.put("/{filename}")
def update_image(filename: str, payload: UpdateImagePayload, svc: Services = Depends(get_services)):
    with translate_errors():
        view = svc.images.update(filename, matte=payload.matte, filter=payload.filter, tags=payload.tags)
    return {"image": view.to_dict(), "sync": auto_sync(svc, ["metadata.json"])}


@router.post("/{filename}/rename")
def rename_image(filename: str, payload: RenamePayload, svc: Services = Depends(get_services)):
    with translate_errors():
        result = svc.images.rename(filename, payload.new_base_name)
    return {
        "old_filename": result.old_filename,
        "new_filename": result.new_filename,
        "image": result.image.to_dict(),
        "thumbnail_moved": result.thumbnail_moved,
        "sync": auto_sync(svc, result.touched),
    }


@router.post("/{filename}/thumbnail")
def regenerate_thumbnail(filename: str, svc: Services = Depends(get_services)):
    with translate_errors():
        path = svc.images.regenerate_thumbnail(filename)
    return {"thumbnail": path, "sync": auto_sync(svc, [path])}


@router.delete("/{filename}")
def delete_image(filename: str, svc: Services = Depends(get_services)):
    with translate_errors():
        result = svc.images.delete(filename)
    return {**result.model_dump(exclude={"touched"}), "sync": auto_sync(svc, result.touched)}
