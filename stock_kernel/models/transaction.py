"""
Module: stock_kernel.models.transaction
Responsibility: ORM persistence for the append-only inventory transaction log.

Invariants enforced:
    - (tenant_id, transaction_no) is unique at the storage boundary.
    - approval_status is one of PENDING, APPROVED, REJECTED (check constraint).
    - Terminal rows (APPROVED, REJECTED) are immutable: ORM listeners raise
      ImmutabilityViolationError on any UPDATE or DELETE.  The one UPDATE
      allowed is the PENDING -> terminal transition itself.
    - Transactions are never deleted.

Failure modes:
    - IntegrityError on duplicate transaction number (translated by the
      processor to DuplicateTransactionNumberError).
    - ImmutabilityViolationError on mutation of a terminal row.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.orm.attributes import get_history

from stock_kernel.db.base import TrackedBase
from stock_kernel.domain.dtos import TransactionRecord
from stock_kernel.domain.stock import TransactionType
from stock_kernel.domain.transaction import (
    TERMINAL_APPROVAL_STATUSES,
    ApprovalStatus,
)
from stock_kernel.exceptions import ImmutabilityViolationError

_TERMINAL_VALUES = frozenset(s.value for s in TERMINAL_APPROVAL_STATUSES)

# Audit metadata that may still change on a terminal row
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


class InventoryTransactionModel(TrackedBase):
    """
    One stock movement.  created_by_id is the operator who submitted it.

    For MOVE, from_warehouse_id/to_warehouse_id are set and warehouse_id
    holds the source warehouse.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "transaction_no",
            name="uq_inventory_transactions_tenant_no",
        ),
        CheckConstraint(
            "approval_status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_inventory_transactions_valid_status",
        ),
        CheckConstraint(
            "transaction_type IN ('IN_RECEIVE', 'OUT_ISSUE', 'OUT_SHIPPING', "
            "'MOVE', 'ADJUST', 'RESERVE', 'RELEASE')",
            name="ck_inventory_transactions_valid_type",
        ),
        Index("idx_inventory_transactions_status", "tenant_id", "approval_status"),
        Index("idx_inventory_transactions_date", "tenant_id", "transaction_date"),
        Index("idx_inventory_transactions_reference", "tenant_id", "reference_no"),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    transaction_no: Mapped[str] = mapped_column(String(60), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_date: Mapped[datetime] = mapped_column(nullable=False)

    warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)
    from_warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)
    to_warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)
    product_id: Mapped[UUID] = mapped_column(nullable=False)
    lot_id: Mapped[UUID | None] = mapped_column(nullable=True)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING.value,
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    reference_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def type(self) -> TransactionType:
        return TransactionType(self.transaction_type)

    @property
    def status(self) -> ApprovalStatus:
        return ApprovalStatus(self.approval_status)

    def to_dto(self) -> TransactionRecord:
        return TransactionRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            transaction_no=self.transaction_no,
            transaction_type=TransactionType(self.transaction_type),
            transaction_date=self.transaction_date,
            product_id=self.product_id,
            quantity=self.quantity,
            approval_status=ApprovalStatus(self.approval_status),
            warehouse_id=self.warehouse_id,
            from_warehouse_id=self.from_warehouse_id,
            to_warehouse_id=self.to_warehouse_id,
            lot_id=self.lot_id,
            operator_id=self.created_by_id,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            reference_no=self.reference_no,
            remarks=self.remarks,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction {self.transaction_no} {self.transaction_type} "
            f"qty={self.quantity} status={self.approval_status}>"
        )


# =============================================================================
# ORM-level immutability for terminal transactions
# =============================================================================


def _was_terminal_before(target: InventoryTransactionModel) -> bool:
    """
    True if the row was already APPROVED/REJECTED before this flush.

    A status change PENDING -> APPROVED is the approval itself and is allowed;
    any change made after that is not.
    """
    history = get_history(target, "approval_status")
    if history.deleted:
        old = history.deleted[0]
        return str(getattr(old, "value", old)) in _TERMINAL_VALUES
    if history.added:
        return False
    current = target.approval_status
    return str(getattr(current, "value", current)) in _TERMINAL_VALUES


@event.listens_for(InventoryTransactionModel, "before_update")
def prevent_terminal_transaction_update(mapper, connection, target):
    """Block modification of approved or rejected transactions."""
    if not _was_terminal_before(target):
        return

    changed = [
        attr.key
        for attr in mapper.column_attrs
        if attr.key not in _AUDIT_FIELDS and get_history(target, attr.key).has_changes()
    ]
    if not changed:
        return

    raise ImmutabilityViolationError(
        entity_type="InventoryTransaction",
        entity_id=str(target.id),
        reason=(
            f"Transaction {target.transaction_no} is terminal; "
            f"cannot modify {', '.join(sorted(changed))}"
        ),
    )


@event.listens_for(InventoryTransactionModel, "before_delete")
def prevent_transaction_delete(mapper, connection, target):
    """Transactions are append-only and never deleted."""
    raise ImmutabilityViolationError(
        entity_type="InventoryTransaction",
        entity_id=str(target.id),
        reason="Inventory transactions are append-only -- cannot delete",
    )
