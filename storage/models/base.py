"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Provides the declarative base, portable column types and
common mixins used by all integration ORM models.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- UTCDateTime: timezone-aware datetimes on every backend
- JsonColumn: JSONB on PostgreSQL, JSON elsewhere
- AuditMixin: created/updated by/at columns

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def utc_now() -> datetime:
    """Python-side default for timestamp columns."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column.

    SQLite drops tzinfo on round trip; values are normalised to UTC on
    the way in and re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    All integration models inherit from this base.
    """

    type_annotation_map = {
        datetime: UTCDateTime(),
    }


class AuditMixin:
    """
    Mixin providing created/updated audit columns.

    Timestamps are set Python-side so they are readable right after
    flush without a refresh round trip.

    Usage:
        class MyModel(Base, AuditMixin):
            __tablename__ = "my_table"
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=utc_now,
        comment="Record creation timestamp (UTC)"
    )

    created_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="system",
        comment="Actor that created the record"
    )

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="Last update timestamp (UTC)"
    )

    updated_by: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Actor that last updated the record"
    )
