"""
TransactionProcessor -- append-only stock transaction log behind an approval gate.

Responsibility:
    Persists inventory transactions and drives the PENDING -> APPROVED /
    REJECTED state machine.  Approval is the only path by which a
    transaction's effect reaches the ledger and the lot quantity.

Architecture position:
    Kernel > Services.  Composes InventoryLedger, LotService and
    SequenceService.  Does NOT commit -- the caller owns the transaction.

Two creation paths:
    ``create``          Immediate path for receive/issue/move.  The row is
                        inserted PENDING, the effect is applied, and the row
                        is marked APPROVED, all inside one savepoint.
    ``create_pending``  Gated path for adjustments.  The row stays PENDING
                        with no ledger effect until ``approve``.

Invariants enforced:
    - (tenant, transaction_no) unique; a collision raises
      DuplicateTransactionNumberError and performs no ledger mutation.
    - Only PENDING transactions can be approved or rejected.
    - Lot current_quantity follows applied IN (+) and OUT (-) transactions.
      MOVE, ADJUST, RESERVE and RELEASE leave it unchanged.
    - A failed effect (e.g. InsufficientInventoryError) rolls back the
      savepoint: for ``create`` the transaction row itself is discarded,
      for ``approve`` the row stays PENDING.

Failure modes:
    - ValidationError, DuplicateTransactionNumberError,
      TransactionNotFoundError, InvalidStateTransitionError,
      InsufficientInventoryError, InsufficientReservedError.
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import TransactionRecord
from stock_kernel.domain.stock import TransactionType
from stock_kernel.domain.transaction import (
    ApprovalStatus,
    TransactionRequest,
    can_transition,
    rejection_remarks,
)
from stock_kernel.exceptions import (
    DuplicateTransactionNumberError,
    InvalidStateTransitionError,
    TransactionNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.transaction import InventoryTransactionModel
from stock_kernel.services.inventory_ledger import InventoryLedger
from stock_kernel.services.lot_service import LotService
from stock_kernel.services.sequence_service import SequenceService

logger = get_logger("services.transaction_processor")


class TransactionProcessor:
    """
    Transaction log and approval gate for one session.

    Usage:
        processor = TransactionProcessor(session, clock)
        record = processor.create(tenant_id, TransactionRequest(...), operator_id)
        pending = processor.create_pending(tenant_id, adjust_request, operator_id)
        processor.approve(tenant_id, pending.id, approver_id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: InventoryLedger | None = None,
        lots: LotService | None = None,
        sequences: SequenceService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = ledger or InventoryLedger(session, self._clock)
        self._lots = lots or LotService(session)
        self._sequences = sequences or SequenceService(session, self._clock)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create(
        self, tenant_id: UUID, request: TransactionRequest, operator_id: UUID,
    ) -> TransactionRecord:
        """Persist and immediately apply a transaction (recorded as APPROVED)."""
        request.validate()

        with self._session.begin_nested():
            tx = self._insert(tenant_id, request, operator_id)
            with LogContext.bind(transaction_no=tx.transaction_no):
                self._apply(tx, operator_id)
                self._mark(tx, ApprovalStatus.APPROVED, operator_id)

        logger.info(
            "transaction_created",
            extra={
                "transaction_no": tx.transaction_no,
                "transaction_type": tx.transaction_type,
                "quantity": tx.quantity,
                "approval_status": tx.approval_status,
            },
        )
        return tx.to_dto()

    def create_pending(
        self, tenant_id: UUID, request: TransactionRequest, operator_id: UUID,
    ) -> TransactionRecord:
        """Persist a transaction as PENDING with no ledger effect."""
        request.validate()

        with self._session.begin_nested():
            tx = self._insert(tenant_id, request, operator_id)

        logger.info(
            "transaction_created_pending",
            extra={
                "transaction_no": tx.transaction_no,
                "transaction_type": tx.transaction_type,
                "quantity": tx.quantity,
            },
        )
        return tx.to_dto()

    def _insert(
        self, tenant_id: UUID, request: TransactionRequest, operator_id: UUID,
    ) -> InventoryTransactionModel:
        tx_type = TransactionType(request.transaction_type)
        transaction_no = (request.transaction_no or "").strip()
        if not transaction_no:
            transaction_no = self._sequences.next_document_number(
                tenant_id, tx_type.document_prefix,
            )
        elif self._exists(tenant_id, transaction_no):
            raise DuplicateTransactionNumberError(str(tenant_id), transaction_no)

        tx = InventoryTransactionModel(
            tenant_id=tenant_id,
            transaction_no=transaction_no,
            transaction_type=tx_type.value,
            transaction_date=request.transaction_date or self._clock.now(),
            warehouse_id=request.source_warehouse_id,
            from_warehouse_id=request.from_warehouse_id,
            to_warehouse_id=request.to_warehouse_id,
            product_id=request.product_id,
            lot_id=request.lot_id,
            quantity=request.quantity,
            approval_status=ApprovalStatus.PENDING.value,
            reference_no=request.reference_no,
            remarks=request.remarks,
            created_by_id=operator_id,
        )

        savepoint = self._session.begin_nested()
        try:
            self._session.add(tx)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same number
            savepoint.rollback()
            raise DuplicateTransactionNumberError(str(tenant_id), transaction_no)
        return tx

    def _exists(self, tenant_id: UUID, transaction_no: str) -> bool:
        return self._session.execute(
            select(InventoryTransactionModel.id).where(
                InventoryTransactionModel.tenant_id == tenant_id,
                InventoryTransactionModel.transaction_no == transaction_no,
            )
        ).first() is not None

    # -------------------------------------------------------------------------
    # Approval gate
    # -------------------------------------------------------------------------

    def approve(
        self, tenant_id: UUID, transaction_id: UUID, approver_id: UUID,
    ) -> TransactionRecord:
        """Apply a PENDING transaction's effect and mark it APPROVED."""
        with self._session.begin_nested():
            tx = self._lock(tenant_id, transaction_id)
            self._require_transition(tx, ApprovalStatus.APPROVED, "approve")
            with LogContext.bind(transaction_no=tx.transaction_no):
                self._apply(tx, approver_id)
                self._mark(tx, ApprovalStatus.APPROVED, approver_id)

        logger.info(
            "transaction_approved",
            extra={
                "transaction_no": tx.transaction_no,
                "transaction_type": tx.transaction_type,
                "approved_by_id": str(approver_id),
            },
        )
        return tx.to_dto()

    def reject(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        approver_id: UUID,
        reason: str,
    ) -> TransactionRecord:
        """Mark a PENDING transaction REJECTED with no ledger effect."""
        if not reason or not reason.strip():
            raise ValidationError("reason", "is required")

        with self._session.begin_nested():
            tx = self._lock(tenant_id, transaction_id)
            self._require_transition(tx, ApprovalStatus.REJECTED, "reject")
            tx.remarks = rejection_remarks(tx.remarks, reason)
            self._mark(tx, ApprovalStatus.REJECTED, approver_id)

        logger.info(
            "transaction_rejected",
            extra={
                "transaction_no": tx.transaction_no,
                "rejected_by_id": str(approver_id),
                "reason": reason,
            },
        )
        return tx.to_dto()

    def _lock(self, tenant_id: UUID, transaction_id: UUID) -> InventoryTransactionModel:
        tx = self._session.execute(
            select(InventoryTransactionModel)
            .where(
                InventoryTransactionModel.id == transaction_id,
                InventoryTransactionModel.tenant_id == tenant_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if tx is None:
            raise TransactionNotFoundError(str(transaction_id))
        return tx

    @staticmethod
    def _require_transition(
        tx: InventoryTransactionModel, target: ApprovalStatus, action: str,
    ) -> None:
        if not can_transition(tx.approval_status, target):
            logger.warning(
                "transaction_invalid_transition",
                extra={
                    "transaction_no": tx.transaction_no,
                    "current_status": tx.approval_status,
                    "action": action,
                },
            )
            raise InvalidStateTransitionError(
                entity_type="transaction",
                entity_id=str(tx.id),
                current_status=tx.approval_status,
                action=action,
            )

    def _mark(
        self, tx: InventoryTransactionModel, status: ApprovalStatus, approver_id: UUID,
    ) -> None:
        tx.approval_status = status.value
        tx.approved_by_id = approver_id
        tx.approved_at = self._clock.now()
        tx.updated_by_id = approver_id
        self._session.flush()

    def _apply(self, tx: InventoryTransactionModel, actor_id: UUID) -> None:
        """Ledger effect plus the matching lot quantity delta."""
        tx_type = TransactionType(tx.transaction_type)

        if tx_type is TransactionType.MOVE:
            self._ledger.apply_move(
                tx.tenant_id,
                tx.from_warehouse_id,
                tx.to_warehouse_id,
                tx.product_id,
                tx.lot_id,
                tx.quantity,
                actor_id,
                tx.transaction_date,
            )
        else:
            self._ledger.apply_effect(
                tx.tenant_id,
                tx_type,
                tx.warehouse_id,
                tx.product_id,
                tx.lot_id,
                tx.quantity,
                actor_id,
                tx.transaction_date,
            )

        if tx.lot_id is not None and tx_type.lot_delta_sign:
            self._lots.adjust_current(
                tx.tenant_id, tx.lot_id, tx_type.lot_delta_sign * tx.quantity, actor_id,
            )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, tenant_id: UUID, transaction_id: UUID) -> TransactionRecord:
        tx = self._session.get(InventoryTransactionModel, transaction_id)
        if tx is None or tx.tenant_id != tenant_id:
            raise TransactionNotFoundError(str(transaction_id))
        return tx.to_dto()

    def find_by_status(
        self, tenant_id: UUID, status: ApprovalStatus | str,
    ) -> list[TransactionRecord]:
        return self._query(
            InventoryTransactionModel.tenant_id == tenant_id,
            InventoryTransactionModel.approval_status == ApprovalStatus(status).value,
        )

    def find_by_date_range(
        self, tenant_id: UUID, start: datetime, end: datetime,
    ) -> list[TransactionRecord]:
        """Transactions dated within [start, end]."""
        return self._query(
            InventoryTransactionModel.tenant_id == tenant_id,
            InventoryTransactionModel.transaction_date >= start,
            InventoryTransactionModel.transaction_date <= end,
        )

    def find_by_reference(self, tenant_id: UUID, reference_no: str) -> list[TransactionRecord]:
        return self._query(
            InventoryTransactionModel.tenant_id == tenant_id,
            InventoryTransactionModel.reference_no == reference_no,
        )

    def _query(self, *criteria) -> list[TransactionRecord]:
        rows: Sequence[InventoryTransactionModel] = self._session.execute(
            select(InventoryTransactionModel)
            .where(*criteria)
            .order_by(
                InventoryTransactionModel.transaction_date,
                InventoryTransactionModel.transaction_no,
            )
        ).scalars().all()
        return [r.to_dto() for r in rows]
