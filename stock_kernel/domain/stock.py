"""
Stock arithmetic (``stock_kernel.domain.stock``).

Responsibility
--------------
Pure value types for physical-stock bookkeeping: the transaction type
catalogue and the ``StockBalance`` value object whose transitions are the
only way the ledger changes an inventory row's quantities.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  The ledger loads a row under lock,
converts it to a ``StockBalance``, applies one transition, and writes the
result back.  A transition that would break a non-negativity rule raises
before anything is written.

Invariants enforced
-------------------
* ``available >= 0`` and ``reserved >= 0`` for every balance.
* ``reserve(q)`` followed by ``release(q)`` restores the original balance.
* ``reserve``/``release`` conserve ``total``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from stock_kernel.exceptions import (
    InsufficientInventoryError,
    InsufficientReservedError,
    ValidationError,
)

ZERO = Decimal("0")


class TransactionType(str, Enum):
    """Kinds of stock movement recorded in the transaction log."""

    IN_RECEIVE = "IN_RECEIVE"
    OUT_ISSUE = "OUT_ISSUE"
    OUT_SHIPPING = "OUT_SHIPPING"
    MOVE = "MOVE"
    ADJUST = "ADJUST"
    RESERVE = "RESERVE"
    RELEASE = "RELEASE"

    @property
    def is_inbound(self) -> bool:
        return self is TransactionType.IN_RECEIVE

    @property
    def is_outbound(self) -> bool:
        return self in (TransactionType.OUT_ISSUE, TransactionType.OUT_SHIPPING)

    @property
    def document_prefix(self) -> str:
        """Prefix used when a transaction number is generated."""
        return _DOCUMENT_PREFIXES[self]

    @property
    def lot_delta_sign(self) -> int:
        """
        Direction in which an applied transaction moves Lot.current_quantity.

        IN adds, OUT subtracts.  MOVE relocates stock without changing the
        system-wide lot total; ADJUST, RESERVE and RELEASE leave it alone.
        """
        if self.is_inbound:
            return 1
        if self.is_outbound:
            return -1
        return 0


_DOCUMENT_PREFIXES: dict[TransactionType, str] = {
    TransactionType.IN_RECEIVE: "IN",
    TransactionType.OUT_ISSUE: "OUT",
    TransactionType.OUT_SHIPPING: "SHP",
    TransactionType.MOVE: "MV",
    TransactionType.ADJUST: "ADJ",
    TransactionType.RESERVE: "RSV",
    TransactionType.RELEASE: "RLS",
}


def require_positive(field: str, qty: Decimal) -> Decimal:
    """Reject zero and negative quantities for movement operations."""
    if qty is None:
        raise ValidationError(field, "is required")
    qty = Decimal(qty)
    if qty <= ZERO:
        raise ValidationError(field, f"must be positive, got {qty}")
    return qty


@dataclass(frozen=True)
class StockBalance:
    """
    Quantities held by one inventory row.

    Every transition returns a new balance; the original is never mutated.
    """

    available: Decimal = ZERO
    reserved: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.available < ZERO:
            raise ValidationError("available", f"cannot be negative, got {self.available}")
        if self.reserved < ZERO:
            raise ValidationError("reserved", f"cannot be negative, got {self.reserved}")

    @property
    def total(self) -> Decimal:
        return self.available + self.reserved

    def receive(self, qty: Decimal) -> StockBalance:
        qty = require_positive("quantity", qty)
        return StockBalance(self.available + qty, self.reserved)

    def issue(self, qty: Decimal) -> StockBalance:
        qty = require_positive("quantity", qty)
        if self.available < qty:
            raise InsufficientInventoryError(self.available, qty)
        return StockBalance(self.available - qty, self.reserved)

    def adjust_to(self, qty: Decimal) -> StockBalance:
        """Set available to an absolute quantity (not a delta)."""
        if qty is None:
            raise ValidationError("quantity", "is required")
        qty = Decimal(qty)
        if qty < ZERO:
            raise ValidationError("quantity", f"adjustment target cannot be negative, got {qty}")
        return StockBalance(qty, self.reserved)

    def reserve(self, qty: Decimal) -> StockBalance:
        qty = require_positive("quantity", qty)
        if self.available < qty:
            raise InsufficientInventoryError(self.available, qty)
        return StockBalance(self.available - qty, self.reserved + qty)

    def release(self, qty: Decimal) -> StockBalance:
        qty = require_positive("quantity", qty)
        if self.reserved < qty:
            raise InsufficientReservedError(self.reserved, qty)
        return StockBalance(self.available + qty, self.reserved - qty)
