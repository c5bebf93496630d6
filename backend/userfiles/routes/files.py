"""Files API routes."""
import logging
from typing import Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response

from userfiles.dependencies import AuthClaims, get_file_service, optional_auth
from userfiles.models.file_record import FileCategory, FileRecord
from userfiles.schemas.file import (
    FileListResponse,
    FileMessageResponse,
    FileResponse,
    FileUpdate,
    InitBucketRequest,
    MessageResponse,
    SignedUrlResponse,
    StorageStatsResponse,
    split_tags,
)
from userfiles.services.file_service import (
    DEFAULT_SIGNED_URL_TTL,
    FileListResult,
    FileQuery,
    FileService,
    UploadFileOptions,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/admin/stats", response_model=StorageStatsResponse)
async def get_storage_stats(files: FileService = Depends(get_file_service)):
    """File count, total bytes and count per category."""
    stats = await files.get_storage_stats()
    return {
        "total_files": stats.total_files,
        "total_size": stats.total_size,
        "by_category": stats.by_category,
    }


@router.post("/admin/init-bucket", response_model=MessageResponse, status_code=201)
async def init_bucket(
    body: Optional[InitBucketRequest] = None,
    files: FileService = Depends(get_file_service),
):
    """Create the storage bucket if missing. Best effort: errors are only logged."""
    await files.ensure_bucket(body.bucket_name if body else None)
    return {"message": "Bucket initialization completed"}


@router.post("/upload", response_model=FileMessageResponse, status_code=201)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    category: Optional[FileCategory] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="Comma-separated tags"),
    folder: Optional[str] = Form(None),
    uploaded_by: Optional[str] = Form(None, alias="uploadedBy"),
    claims: Optional[AuthClaims] = Depends(optional_auth),
    files: FileService = Depends(get_file_service),
):
    """Upload a file to object storage and record its metadata."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    contents = await file.read()
    result = await files.upload_file(UploadFileOptions(
        filename=file.filename or "unnamed",
        data=contents,
        mime_type=file.content_type or "application/octet-stream",
        size=len(contents),
        category=category,
        description=description,
        tags=split_tags(tags),
        folder=folder or None,
        uploaded_by=uploaded_by or (claims.sub if claims else None),
    ))
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)

    return {"message": "File uploaded successfully", "file": _to_response(result.file)}


@router.get("", response_model=FileListResponse)
async def list_files(
    category: Optional[FileCategory] = Query(None),
    folder: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search in filename, original name, or description"),
    uploaded_by: Optional[str] = Query(None, alias="uploadedBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    files: FileService = Depends(get_file_service),
):
    """List files, newest first, with filters and pagination."""
    result = await files.list_files(FileQuery(
        category=category,
        folder=folder,
        search=search,
        uploaded_by=uploaded_by,
        page=page,
        limit=limit,
    ))
    return _list_response(result)


@router.get("/category/{category}", response_model=FileListResponse)
async def list_files_by_category(
    category: FileCategory,
    folder: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    files: FileService = Depends(get_file_service),
):
    result = await files.list_files(FileQuery(
        category=category, folder=folder, search=search, page=page, limit=limit,
    ))
    return _list_response(result)


@router.get("/folder/{folder:path}", response_model=FileListResponse)
async def list_files_by_folder(
    folder: str,
    category: Optional[FileCategory] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    files: FileService = Depends(get_file_service),
):
    result = await files.list_files(FileQuery(
        category=category, folder=folder, search=search, page=page, limit=limit,
    ))
    return _list_response(result)


@router.get("/{file_id}", response_model=FileResponse)
async def get_file_metadata(
    file_id: UUID,
    files: FileService = Depends(get_file_service),
):
    """Get file metadata by ID."""
    record = await files.get_file(file_id)
    if not record:
        raise HTTPException(status_code=404, detail="File not found")
    return _to_response(record)


@router.get("/{file_id}/download")
async def download_file(
    file_id: UUID,
    files: FileService = Depends(get_file_service),
):
    """Download a file's bytes as an attachment."""
    result = await files.download_file(file_id)
    if not result:
        raise HTTPException(status_code=404, detail="File not found")

    data, record = result
    return Response(
        content=data,
        media_type=record.mime_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(record.original_name)},
    )


@router.get("/{file_id}/signed-url", response_model=SignedUrlResponse)
async def get_signed_url(
    file_id: UUID,
    expires_in: int = Query(DEFAULT_SIGNED_URL_TTL, alias="expiresIn", ge=1),
    files: FileService = Depends(get_file_service),
):
    """Temporary URL for reading a private file."""
    signed_url = await files.get_signed_url(file_id, expires_in)
    if not signed_url:
        raise HTTPException(status_code=404, detail="File not found or unable to generate signed URL")
    return {"signed_url": signed_url}


@router.put("/{file_id}", response_model=FileMessageResponse)
async def update_file(
    file_id: UUID,
    body: FileUpdate,
    files: FileService = Depends(get_file_service),
):
    """Update file metadata. Only provided fields are updated."""
    record = await files.update_metadata(file_id, body.model_dump(exclude_unset=True))
    if not record:
        raise HTTPException(status_code=404, detail="File not found")
    return {"message": "File updated successfully", "file": _to_response(record)}


@router.delete("/{file_id}", response_model=MessageResponse)
async def delete_file(
    file_id: UUID,
    files: FileService = Depends(get_file_service),
):
    """Delete a file from storage, then its metadata."""
    result = await files.delete_file(file_id)
    if not result.success:
        if result.error == "File not found":
            raise HTTPException(status_code=404, detail=result.error)
        raise HTTPException(status_code=400, detail=result.error)
    return {"message": "File deleted successfully"}


def content_disposition(filename: str) -> str:
    """Attachment header value; non-ASCII or quoted names use RFC 5987 `filename*`."""
    encoded = quote(filename)
    if encoded != filename:
        return f"attachment; filename*=utf-8''{encoded}"
    return f'attachment; filename="{filename}"'


def _to_response(record: FileRecord) -> FileResponse:
    return FileResponse.model_validate(record)


def _list_response(result: FileListResult) -> dict:
    return {
        "files": [_to_response(f) for f in result.files],
        "total": result.total,
        "page": result.page,
        "limit": result.limit,
        "total_pages": result.total_pages,
    }
