"""Import all models so SQLAlchemy metadata knows about them."""
from userfiles.models.base import Base
from userfiles.models.file_record import FileRecord, FileCategory
from userfiles.models.user import UserRecord, AudienceLevel, SECRET_FIELDS

__all__ = [
    "Base",
    "FileRecord", "FileCategory",
    "UserRecord", "AudienceLevel", "SECRET_FIELDS",
]
