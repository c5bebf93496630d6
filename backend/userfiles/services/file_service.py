"""File metadata manager.

Validates uploads, writes bytes to the object store and keeps the `files`
table in step with it. Metadata rows never hold file bytes; `bucket_name` +
`path` are the only pointer to them.

Every public method catches unexpected errors at this boundary and turns them
into a failure value (result object, None or an empty page) after logging.
"""
import logging
import math
import uuid
from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath
from typing import Any, Mapping

from userfiles.models.file_record import FileCategory, FileRecord
from userfiles.services.file_repository import FileFilters, FileRepository
from userfiles.services.object_store import ObjectStore, StorageError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("filename", "description", "category", "tags", "folder")
# NOT NULL columns; a None for these is ignored rather than cleared
REQUIRED_FIELDS = ("filename", "category")
DEFAULT_SIGNED_URL_TTL = 3600
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


@dataclass
class StorageConfig:
    bucket_name: str
    max_file_size: int
    allowed_mime_types: list[str] | None = None
    public_access: bool = False


@dataclass
class UploadFileOptions:
    filename: str
    data: bytes
    mime_type: str
    size: int
    category: FileCategory | None = None
    description: str | None = None
    tags: list[str] | None = None
    folder: str | None = None
    uploaded_by: str | None = None


@dataclass
class FileQuery:
    category: FileCategory | None = None
    folder: str | None = None
    search: str | None = None
    uploaded_by: str | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT


@dataclass
class FileUploadResult:
    success: bool
    file: FileRecord | None = None
    error: str | None = None


@dataclass
class FileDeleteResult:
    success: bool
    error: str | None = None


@dataclass
class FileListResult:
    files: list[FileRecord]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass
class StorageStats:
    total_files: int = 0
    total_size: int = 0
    by_category: dict[str, int] = field(default_factory=dict)


def infer_category(mime_type: str) -> FileCategory:
    """Guess a category from a MIME type when the uploader did not give one."""
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("image/"):
        return FileCategory.IMAGE
    if mime_type.startswith("video/"):
        return FileCategory.VIDEO
    if mime_type.startswith("audio/"):
        return FileCategory.AUDIO
    if "pdf" in mime_type or "document" in mime_type or "text" in mime_type:
        return FileCategory.DOCUMENT
    if "zip" in mime_type or "rar" in mime_type or "tar" in mime_type:
        return FileCategory.ARCHIVE
    return FileCategory.OTHER


def build_storage_path(original_name: str, folder: str | None = None) -> tuple[str, str]:
    """Return (unique filename, bucket-relative path) for an upload.

    The filename is `{base}_{uuid4}{ext}`, so two uploads of the same name never
    collide.
    """
    name = PurePosixPath(original_name.replace("\\", "/")).name or "unnamed"
    ext = PurePosixPath(name).suffix
    base = name[: -len(ext)] if ext else name
    unique_filename = f"{base}_{uuid.uuid4()}{ext}"

    folder = (folder or "").strip("/")
    path = f"{folder}/{unique_filename}" if folder else unique_filename
    return unique_filename, path


class FileService:
    def __init__(self, repository: FileRepository, store: ObjectStore, config: StorageConfig):
        self.repository = repository
        self.store = store
        self.config = config

    def _effective_config(self, config: StorageConfig | None) -> StorageConfig:
        if config is None:
            return self.config
        return replace(
            config,
            bucket_name=config.bucket_name or self.config.bucket_name,
            max_file_size=config.max_file_size or self.config.max_file_size,
        )

    async def ensure_bucket(self, bucket_name: str | None = None) -> None:
        """Create the bucket if it does not exist yet. Errors are logged, not raised."""
        bucket_name = bucket_name or self.config.bucket_name
        try:
            buckets = await self.store.list_buckets()
        except StorageError as e:
            logger.error("Error listing buckets: %s", e.message)
            return
        except Exception:
            logger.exception("Error initializing bucket '%s'", bucket_name)
            return

        if any(b.name == bucket_name for b in buckets):
            logger.info("Bucket '%s' already exists", bucket_name)
            return

        try:
            await self.store.create_bucket(
                bucket_name,
                public=False,
                allowed_mime_types=None,
                file_size_limit=self.config.max_file_size,
            )
        except StorageError as e:
            logger.error("Error creating bucket '%s': %s", bucket_name, e.message)
            return
        except Exception:
            logger.exception("Error initializing bucket '%s'", bucket_name)
            return
        logger.info("Bucket '%s' created successfully", bucket_name)

    async def upload_file(self, options: UploadFileOptions, config: StorageConfig | None = None) -> FileUploadResult:
        try:
            config = self._effective_config(config)

            if options.size > config.max_file_size:
                return FileUploadResult(
                    success=False,
                    error=f"File size exceeds maximum allowed size of {config.max_file_size} bytes",
                )

            if config.allowed_mime_types and options.mime_type not in config.allowed_mime_types:
                return FileUploadResult(
                    success=False,
                    error=f"File type {options.mime_type} is not allowed",
                )

            unique_filename, path = build_storage_path(options.filename, options.folder)

            try:
                await self.store.upload(config.bucket_name, path, options.data, options.mime_type)
            except StorageError as e:
                logger.error("Error uploading '%s' to bucket '%s': %s", path, config.bucket_name, e.message)
                return FileUploadResult(success=False, error=f"Upload failed: {e.message}")

            public_url = None
            if config.public_access:
                public_url = self.store.get_public_url(config.bucket_name, path)

            # No compensating delete if this write fails; the bytes stay orphaned.
            record = await self.repository.create(
                filename=unique_filename,
                original_name=options.filename,
                size=options.size,
                mime_type=options.mime_type,
                category=options.category or infer_category(options.mime_type),
                description=options.description,
                tags=options.tags,
                folder=options.folder,
                bucket_name=config.bucket_name,
                path=path,
                public_url=public_url,
                uploaded_by=options.uploaded_by,
            )
            logger.info("Uploaded file %s to %s/%s (%d bytes)", record.id, config.bucket_name, path, options.size)
            return FileUploadResult(success=True, file=record)
        except Exception as e:
            logger.exception("Error in upload_file")
            return FileUploadResult(success=False, error=f"Upload failed: {e}")

    async def get_file(self, file_id: uuid.UUID) -> FileRecord | None:
        try:
            return await self.repository.get(file_id)
        except Exception:
            logger.exception("Error getting file %s", file_id)
            return None

    async def download_file(self, file_id: uuid.UUID) -> tuple[bytes, FileRecord] | None:
        record = await self.get_file(file_id)
        if not record:
            return None
        try:
            data = await self.store.download(record.bucket_name, record.path)
        except StorageError as e:
            logger.error("Error downloading %s/%s: %s", record.bucket_name, record.path, e.message)
            return None
        except Exception:
            logger.exception("Error in download_file")
            return None
        return data, record

    async def list_files(self, query: FileQuery | None = None) -> FileListResult:
        query = query or FileQuery()
        page = query.page if query.page and query.page > 0 else DEFAULT_PAGE
        limit = query.limit if query.limit and query.limit > 0 else DEFAULT_LIMIT
        try:
            files, total = await self.repository.find_page(
                FileFilters(
                    category=query.category,
                    folder=query.folder,
                    uploaded_by=query.uploaded_by,
                    search=query.search,
                ),
                offset=(page - 1) * limit,
                limit=limit,
            )
        except Exception:
            logger.exception("Error listing files")
            return FileListResult(files=[], total=0, page=page, limit=limit, total_pages=0)

        return FileListResult(
            files=files,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        )

    async def update_metadata(self, file_id: uuid.UUID, updates: Mapping[str, Any]) -> FileRecord | None:
        """Apply the allow-listed keys present in `updates`; None clears a nullable field."""
        try:
            record = await self.repository.get(file_id)
            if not record:
                return None

            values = {
                key: updates[key]
                for key in UPDATABLE_FIELDS
                if key in updates and (updates[key] is not None or key not in REQUIRED_FIELDS)
            }
            if "category" in values:
                values["category"] = FileCategory(values["category"])
            return await self.repository.update(record, values)
        except Exception:
            logger.exception("Error updating file metadata for %s", file_id)
            return None

    async def delete_file(self, file_id: uuid.UUID) -> FileDeleteResult:
        """Remove the bytes first, then the row. A storage failure keeps the row."""
        try:
            record = await self.repository.get(file_id)
            if not record:
                return FileDeleteResult(success=False, error="File not found")

            try:
                await self.store.remove(record.bucket_name, [record.path])
            except StorageError as e:
                logger.error("Error deleting %s/%s from storage: %s", record.bucket_name, record.path, e.message)
                return FileDeleteResult(success=False, error=f"Storage deletion failed: {e.message}")

            try:
                await self.repository.delete(file_id)
            except Exception as e:
                # Bytes are already gone at this point
                logger.error("Metadata row %s lost its object %s/%s: %s", file_id, record.bucket_name, record.path, e)
                raise

            logger.info("Deleted file %s (%s/%s)", file_id, record.bucket_name, record.path)
            return FileDeleteResult(success=True)
        except Exception as e:
            logger.exception("Error deleting file %s", file_id)
            return FileDeleteResult(success=False, error=f"Deletion failed: {e}")

    async def get_signed_url(self, file_id: uuid.UUID, expires_in: int = DEFAULT_SIGNED_URL_TTL) -> str | None:
        record = await self.get_file(file_id)
        if not record:
            return None
        try:
            return await self.store.create_signed_url(record.bucket_name, record.path, expires_in)
        except StorageError as e:
            logger.error("Error creating signed URL for %s: %s", file_id, e.message)
            return None
        except Exception:
            logger.exception("Error in get_signed_url")
            return None

    async def get_storage_stats(self) -> StorageStats:
        try:
            total_files, total_size, by_category = await self.repository.stats()
        except Exception:
            logger.exception("Error getting storage stats")
            return StorageStats()
        return StorageStats(total_files=total_files, total_size=total_size, by_category=by_category)
