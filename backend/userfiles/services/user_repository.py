"""Read access to the identity provider's auth.users table."""
import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userfiles.models.user import UserRecord

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_all(self) -> list[UserRecord]:
        result = await self.db.execute(text("SELECT * FROM auth.users"))
        return [UserRecord.from_row(row) for row in result.mappings().all()]

    async def find_one(self, user_id: str) -> UserRecord | None:
        try:
            result = await self.db.execute(
                text("SELECT * FROM auth.users WHERE id = :id"), {"id": user_id}
            )
        except SQLAlchemyError as e:
            # e.g. an id that is not a valid uuid
            logger.warning("User lookup failed for %r: %s", user_id, e)
            await self.db.rollback()
            return None
        row = result.mappings().first()
        return UserRecord.from_row(row) if row else None
