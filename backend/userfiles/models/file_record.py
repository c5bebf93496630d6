"""FileRecord model - file metadata (actual bytes live in the object store)."""
import enum
import uuid
from datetime import datetime
from sqlalchemy import String, BigInteger, DateTime, Enum, JSON, Index, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from userfiles.models.base import Base


class FileCategory(str, enum.Enum):
    DOCUMENT = "document"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    ARCHIVE = "archive"
    OTHER = "other"


class FileRecord(Base):
    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[FileCategory] = mapped_column(
        Enum(FileCategory, name="files_category_enum", values_callable=lambda e: [m.value for m in e]),
        default=FileCategory.OTHER,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    folder: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    bucket_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Bucket-relative key; together with bucket_name the only locator of the bytes
    path: Mapped[str] = mapped_column(String(1000), nullable=False)
    public_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_files_category", "category"),
        Index("idx_files_folder", "folder"),
        Index("idx_files_uploaded_by", "uploaded_by"),
        Index("idx_files_uploaded_at", "uploaded_at"),
        Index("idx_files_bucket_name", "bucket_name"),
    )
