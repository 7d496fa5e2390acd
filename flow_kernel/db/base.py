"""
flow_kernel.db.base -- Declarative base and column conventions.

Every table has a uuid4 primary key stored as ``String(36)`` so the same
models run on SQLite and PostgreSQL.  ``datetime`` annotations map to
timezone-aware columns and ``dict`` / ``list`` annotations to JSON.

Imported by every model module; imports nothing from the kernel.
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        dict[str, Any]: JSON,
        list[Any]: JSON,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base for rows edited over their lifetime (flows, approvals).

    ``created_at`` / ``updated_at`` come from the database clock and are
    bookkeeping only; domain timestamps (``submitted_at``, version
    ``created_at``) are written from the service clock.  ``created_by`` is
    an opaque actor id.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)


UUID = PyUUID
