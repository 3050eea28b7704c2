"""
School Directory Backend: School SQLAlchemy Model
==================================================

What:  ORM model representing the `schools` table.
Who:   Used by SchoolService for CRUD and by Alembic for schema management.

Table Design:
    - Integer autoincrement primary key, assigned by the database
    - email_id UNIQUE: the storage-level backstop for the duplicate-email
      check in SchoolService (the check and the insert are not atomic)
    - image: a URL or upload storage key, nullable
    - created_at / updated_at: UTC, set by the application so that an
      update always moves updated_at forward
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class School(Base):
    """
    A single educational institution in the directory.

    Query Patterns:
        - List all:        ORDER BY created_at DESC  → idx_schools_created_at
        - By city / state: WHERE city = :city ORDER BY name → idx_schools_city / _state
        - Email lookup:    WHERE email_id = :email   → uq_schools_email_id
    """

    __tablename__ = "schools"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    contact: Mapped[str] = mapped_column(String(10), nullable=False)

    # Always stored lower-cased, which makes the plain unique constraint
    # case-insensitive in effect
    email_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Contact email, lower-cased, unique across schools",
    )

    image: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        default=None,
        comment="Image URL or upload storage key",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("email_id", name="uq_schools_email_id"),
        Index("idx_schools_city", "city"),
        Index("idx_schools_state", "state"),
        Index("idx_schools_created_at", created_at.desc()),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Plain column values, in table order."""
        return {column.name: getattr(self, column.key) for column in self.__table__.columns}

    def __repr__(self) -> str:
        return f"<School(id={self.id}, name='{self.name}', email_id='{self.email_id}')>"
