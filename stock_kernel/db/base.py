"""
Module: stock_kernel.db.base
Responsibility: Declarative base for every stock table.  Fixes the column
    types used for identifiers, quantities and timestamps, and the audit
    columns shared by all mutable records.
Architecture position: Kernel > DB.  Imported by every ORM module in the
    kernel and in stock_modules; imports nothing from the project.

Invariants enforced:
    - Every row has a uuid4 primary key stored as String(36).
    - A Decimal attribute is always Numeric(38, 9); quantities are never floats.
    - Timestamps are timezone-aware.
    - TrackedBase rows record who created them (NOT NULL) and who touched
      them last.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID kept as its 36-character text form, so PostgreSQL and SQLite
    store identical values.

    Binding accepts a UUID or any string that parses as one; tenant and
    user ids handed in by collaborators are often plain strings.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value if isinstance(value, UUID) else UUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Root of the ORM: uuid primary key plus the annotation type map."""

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Audit columns for mutable records.

    ``created_at`` and ``updated_at`` come from the database clock.  The
    update columns are bookkeeping about the row, not stock data, so the
    terminal-transaction guard lets them change.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(),
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString())
