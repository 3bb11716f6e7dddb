"""
Transaction approval domain types (``stock_kernel.domain.transaction``).

Responsibility
--------------
The approval-gate state machine for stock-affecting transactions and the
input structure callers use to submit a transaction.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` defines the only valid status transitions.
  Terminal states have no outgoing edges.
* A transaction in a terminal state is never modified again (enforced for
  persisted rows by ``stock_kernel.models.transaction``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.domain.stock import TransactionType, require_positive
from stock_kernel.exceptions import ValidationError


class ApprovalStatus(str, Enum):
    """Transaction approval lifecycle states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}

TERMINAL_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
})


def can_transition(current: ApprovalStatus, target: ApprovalStatus) -> bool:
    return target in APPROVAL_TRANSITIONS.get(ApprovalStatus(current), frozenset())


def rejection_remarks(existing: str | None, reason: str) -> str:
    """Append the rejection reason to any remarks already on the transaction."""
    if existing:
        return f"{existing} | Rejected: {reason}"
    return f"Rejected: {reason}"


@dataclass(frozen=True)
class TransactionRequest:
    """
    A stock transaction submitted by a caller.

    Field defaults:
        lot_id: None -- stock is tracked without a lot.
        warehouse_id: required for every type except MOVE.
        from_warehouse_id / to_warehouse_id: required for MOVE only.
        transaction_no: "" -- a number ``<PREFIX>-YYYYMMDD-NNNN`` is generated.
        transaction_date: None -- the injected clock's ``now()`` is used.
        reference_no: None -- optional link to a source document (receipt,
            order) used by ``find_by_reference``.
        remarks: None.
    """

    transaction_type: TransactionType
    product_id: UUID
    quantity: Decimal
    warehouse_id: UUID | None = None
    from_warehouse_id: UUID | None = None
    to_warehouse_id: UUID | None = None
    lot_id: UUID | None = None
    transaction_no: str = ""
    transaction_date: datetime | None = None
    reference_no: str | None = None
    remarks: str | None = None

    def validate(self) -> None:
        """Raise ValidationError if a required field is missing."""
        tx_type = TransactionType(self.transaction_type)
        if self.product_id is None:
            raise ValidationError("product_id", "is required")
        if tx_type is TransactionType.ADJUST:
            if self.quantity is None or Decimal(self.quantity) < 0:
                raise ValidationError("quantity", "adjustment target must be >= 0")
        else:
            require_positive("quantity", self.quantity)
        if tx_type is TransactionType.MOVE:
            if self.from_warehouse_id is None:
                raise ValidationError("from_warehouse_id", "is required for MOVE")
            if self.to_warehouse_id is None:
                raise ValidationError("to_warehouse_id", "is required for MOVE")
            if self.from_warehouse_id == self.to_warehouse_id:
                raise ValidationError("to_warehouse_id", "must differ from from_warehouse_id")
        elif self.warehouse_id is None:
            raise ValidationError("warehouse_id", "is required")

    @property
    def source_warehouse_id(self) -> UUID | None:
        """Warehouse debited (MOVE) or touched (all other types)."""
        if TransactionType(self.transaction_type) is TransactionType.MOVE:
            return self.from_warehouse_id
        return self.warehouse_id
