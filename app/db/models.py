"""SQLAlchemy models for the application."""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class File(Base):
    """Metadata for one stored object.

    ``name`` is the object key in the storage backend; it is also the
    external identifier used by the raw file route.
    """
    __tablename__ = "files"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    original_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    mimetype: Mapped[str] = mapped_column(String, nullable=False, default="application/octet-stream")
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # argon2 hash; null means the file is public
    password: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # For SQLite, use CURRENT_TIMESTAMP instead of func.now()
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False
    )
