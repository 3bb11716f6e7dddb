"""
Module: stock_kernel.models.sequence
Responsibility: Counter rows backing date-based document numbers
    (``GR-20240101-0001``, ``IQC-20240101-0001``, ``ADJ-20240101-0001``).

One row per (tenant, prefix, day).  The counter is only ever advanced under
``SELECT ... FOR UPDATE``; the max-plus-one query over document numbers is
never used.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import BigInteger, Date, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base


class DocumentSequenceModel(Base):
    """Per tenant-day counter for a document-number prefix."""

    __tablename__ = "document_sequences"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "prefix", "sequence_date",
            name="uq_document_sequence_tenant_prefix_day",
        ),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    prefix: Mapped[str] = mapped_column(String(20), nullable=False)
    sequence_date: Mapped[date] = mapped_column(Date, nullable=False)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<DocumentSequence {self.prefix} {self.sequence_date} "
            f"tenant={self.tenant_id} value={self.current_value}>"
        )
