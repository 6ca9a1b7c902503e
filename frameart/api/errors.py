from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, Iterator, Type

from fastapi import HTTPException
from fastapi import status as http

from frameart.core.errors import (
    ConfigurationError,
    ConflictError,
    CorruptStoreError,
    FrameArtError,
    InvalidRequestError,
    LockTimeoutError,
    MalformedFilenameError,
    NotFoundError,
    SyncTimeoutError,
    UploadError,
)

STATUS_FOR: Dict[Type[FrameArtError], int] = {
    NotFoundError: http.HTTP_404_NOT_FOUND,
    MalformedFilenameError: http.HTTP_400_BAD_REQUEST,
    InvalidRequestError: http.HTTP_400_BAD_REQUEST,
    UploadError: http.HTTP_400_BAD_REQUEST,
    ConflictError: http.HTTP_409_CONFLICT,
    ConfigurationError: http.HTTP_503_SERVICE_UNAVAILABLE,
    SyncTimeoutError: http.HTTP_504_GATEWAY_TIMEOUT,
    LockTimeoutError: http.HTTP_504_GATEWAY_TIMEOUT,
    CorruptStoreError: http.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http(e: FrameArtError) -> HTTPException:
    code = http.HTTP_500_INTERNAL_SERVER_ERROR
    for cls in type(e).__mro__:
        if cls in STATUS_FOR:
            code = STATUS_FOR[cls]
            break
    detail = e.to_dict()
    if isinstance(e, ConfigurationError) and e.errors:
        detail["errors"] = e.errors
    return HTTPException(code, detail=detail)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise domain errors as HTTPException with `{"error", "message"}` detail."""
    try:
        yield
    except FrameArtError as e:
        raise to_http(e) from e
