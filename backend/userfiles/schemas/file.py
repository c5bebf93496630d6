"""File request/response schemas."""
import uuid
from typing import Optional
from datetime import datetime
from pydantic import field_validator
from userfiles.models.file_record import FileCategory
from userfiles.schemas.base import CamelModel, CamelORMModel


def split_tags(value: Optional[str]) -> Optional[list[str]]:
    """Comma-separated form value -> list of trimmed, non-empty tags."""
    if value is None:
        return None
    return [t.strip() for t in value.split(",") if t.strip()]


class FileUpdate(CamelModel):
    filename: Optional[str] = None
    description: Optional[str] = None
    category: Optional[FileCategory] = None
    tags: Optional[list[str]] = None
    folder: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def comma_separated_tags(cls, v):
        if isinstance(v, str):
            return split_tags(v)
        return v


class InitBucketRequest(CamelModel):
    bucket_name: Optional[str] = None


class FileResponse(CamelORMModel):
    id: uuid.UUID
    filename: str
    original_name: str
    size: int
    mime_type: str
    category: FileCategory
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    folder: Optional[str] = None
    bucket_name: str
    path: str
    public_url: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: datetime
    updated_at: datetime


class FileMessageResponse(CamelModel):
    message: str
    file: FileResponse


class FileListResponse(CamelModel):
    files: list[FileResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SignedUrlResponse(CamelModel):
    signed_url: str


class StorageStatsResponse(CamelModel):
    total_files: int
    total_size: int
    by_category: dict[str, int]


class MessageResponse(CamelModel):
    message: str
