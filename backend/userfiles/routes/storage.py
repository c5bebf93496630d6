"""Serves objects from the local development store (FILE_STORAGE_TYPE=local)."""
import mimetypes

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from userfiles.dependencies import get_object_store
from userfiles.services.object_store import LocalObjectStore, ObjectStore, StorageError

router = APIRouter(prefix="/storage/local", tags=["storage"])


def _local_store(store: ObjectStore = Depends(get_object_store)) -> LocalObjectStore:
    if not isinstance(store, LocalObjectStore):
        raise HTTPException(status_code=404, detail="Not found")
    return store


@router.get("/signed/{token}")
async def read_signed_object(token: str, store: LocalObjectStore = Depends(_local_store)):
    """Serve the object a signed URL points to, while the token is valid."""
    try:
        bucket, path = store.verify_signed_token(token)
    except StorageError as e:
        raise HTTPException(status_code=e.status_code or 403, detail=e.message)
    return await _read(store, bucket, path)


@router.get("/public/{bucket}/{path:path}")
async def read_public_object(bucket: str, path: str, store: LocalObjectStore = Depends(_local_store)):
    try:
        public = store.is_public(bucket)
    except StorageError as e:
        raise HTTPException(status_code=404, detail=e.message)
    if not public:
        raise HTTPException(status_code=404, detail="Not found")
    return await _read(store, bucket, path)


async def _read(store: LocalObjectStore, bucket: str, path: str) -> Response:
    try:
        data = await store.download(bucket, path)
    except StorageError as e:
        raise HTTPException(status_code=e.status_code or 404, detail=e.message)
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)
