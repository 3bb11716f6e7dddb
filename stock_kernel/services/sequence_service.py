"""
SequenceService -- date-based document numbers via locked counter rows.

Responsibility:
    Allocates ``<PREFIX>-YYYYMMDD-NNNN`` numbers for receipts, inspections
    and generated transaction numbers.  Each (tenant, prefix, day) has its
    own counter row, advanced under ``SELECT ... FOR UPDATE``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Numbers are strictly increasing per tenant-day and never reused while
      the allocating transaction commits.  Counting existing documents
      (max-plus-one) is never used.
    - The increment is transactional: a rollback returns the value.

Failure modes:
    - IntegrityError: concurrent first use of a counter row.  Handled with
      a savepoint rollback and a locked re-read.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.logging_config import get_logger
from stock_kernel.models.sequence import DocumentSequenceModel

logger = get_logger("services.sequence")


def format_document_number(prefix: str, day: date, value: int) -> str:
    """``GR``, 2024-01-01, 1 -> ``GR-20240101-0001``."""
    return f"{prefix}-{day:%Y%m%d}-{value:04d}"


class SequenceService:
    """
    Allocates document numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        seq = SequenceService(session, clock)
        receipt_no = seq.next_document_number(tenant_id, "GR")
    """

    RECEIPT = "GR"
    INSPECTION = "IQC"

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _lock_counter(
        self, tenant_id: UUID, prefix: str, day: date,
    ) -> DocumentSequenceModel | None:
        return self._session.execute(
            select(DocumentSequenceModel)
            .where(
                DocumentSequenceModel.tenant_id == tenant_id,
                DocumentSequenceModel.prefix == prefix,
                DocumentSequenceModel.sequence_date == day,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, tenant_id: UUID, prefix: str, day: date | None = None) -> int:
        """
        Lock (or create) the counter row for the tenant-day and advance it.

        Returns:
            The next value, always > 0.
        """
        day = day or self._clock.today()

        counter = self._lock_counter(tenant_id, prefix, day)

        if counter is None:
            # First number of the day; another worker may be creating it too
            savepoint = self._session.begin_nested()
            try:
                counter = DocumentSequenceModel(
                    tenant_id=tenant_id,
                    prefix=prefix,
                    sequence_date=day,
                    current_value=1,
                )
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "document_sequence_allocated",
                    extra={"prefix": prefix, "day": day, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "document_sequence_race_retry",
                    extra={"prefix": prefix, "day": day},
                )
                savepoint.rollback()
                counter = self._lock_counter(tenant_id, prefix, day)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "document_sequence_allocated",
            extra={"prefix": prefix, "day": day, "value": counter.current_value},
        )
        return counter.current_value

    def next_document_number(
        self, tenant_id: UUID, prefix: str, day: date | None = None,
    ) -> str:
        """Next ``<PREFIX>-YYYYMMDD-NNNN`` for the tenant and day."""
        day = day or self._clock.today()
        return format_document_number(prefix, day, self.next_value(tenant_id, prefix, day))

    def current_value(self, tenant_id: UUID, prefix: str, day: date) -> int | None:
        """Current counter value without advancing it."""
        return self._session.execute(
            select(DocumentSequenceModel.current_value).where(
                DocumentSequenceModel.tenant_id == tenant_id,
                DocumentSequenceModel.prefix == prefix,
                DocumentSequenceModel.sequence_date == day,
            )
        ).scalar_one_or_none()
