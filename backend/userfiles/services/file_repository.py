"""Database access for file metadata rows."""
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from userfiles.models.file_record import FileCategory, FileRecord


@dataclass
class FileFilters:
    category: FileCategory | None = None
    folder: str | None = None
    uploaded_by: str | None = None
    search: str | None = None


class FileRepository:
    """Thin wrapper over an AsyncSession for the `files` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **values: Any) -> FileRecord:
        record = FileRecord(**values)
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def get(self, file_id: uuid.UUID) -> FileRecord | None:
        result = await self.db.execute(select(FileRecord).where(FileRecord.id == file_id))
        return result.scalar_one_or_none()

    async def find_page(self, filters: FileFilters, offset: int, limit: int) -> tuple[list[FileRecord], int]:
        """Return one page of matching rows (newest first) and the total match count."""
        conditions = []
        if filters.category:
            conditions.append(FileRecord.category == filters.category)
        if filters.folder:
            conditions.append(FileRecord.folder == filters.folder)
        if filters.uploaded_by:
            conditions.append(FileRecord.uploaded_by == filters.uploaded_by)
        if filters.search:
            pattern = f"%{filters.search}%"
            conditions.append(or_(
                FileRecord.filename.ilike(pattern),
                FileRecord.original_name.ilike(pattern),
                FileRecord.description.ilike(pattern),
            ))

        total = await self.db.scalar(
            select(func.count()).select_from(FileRecord).where(*conditions)
        )
        result = await self.db.execute(
            select(FileRecord)
            .where(*conditions)
            .order_by(FileRecord.uploaded_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), int(total or 0)

    async def update(self, record: FileRecord, values: dict[str, Any]) -> FileRecord:
        for key, value in values.items():
            setattr(record, key, value)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def delete(self, file_id: uuid.UUID) -> None:
        await self.db.execute(delete(FileRecord).where(FileRecord.id == file_id))
        await self.db.commit()

    async def stats(self) -> tuple[int, int, dict[str, int]]:
        """Return (total files, total bytes, count per category)."""
        totals = await self.db.execute(
            select(func.count(FileRecord.id), func.coalesce(func.sum(FileRecord.size), 0))
        )
        total_files, total_size = totals.one()

        grouped = await self.db.execute(
            select(FileRecord.category, func.count(FileRecord.id)).group_by(FileRecord.category)
        )
        by_category = {
            (c.value if isinstance(c, FileCategory) else str(c)): int(n)
            for c, n in grouped.all()
        }
        return int(total_files or 0), int(total_size or 0), by_category
