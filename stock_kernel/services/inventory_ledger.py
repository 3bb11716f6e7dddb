"""
InventoryLedger -- per-location stock rows and reservation accounting.

Responsibility:
    The only writer of ``inventories``.  Creates rows lazily, moves stock
    between available and reserved, and applies the effect of approved
    transactions (receive, issue, adjust, move).

Architecture position:
    Kernel > Services.  Depends on nothing else in the core.  Does NOT
    commit -- callers (TransactionProcessor, InventoryEngine) own the
    transaction boundary.

Invariants enforced:
    - available_quantity >= 0 and reserved_quantity >= 0 for every row.
    - Every mutation locks the rows it touches (``SELECT ... FOR UPDATE``)
      and runs inside a savepoint: a failed precondition leaves every row
      involved unchanged.
    - MOVE locks source and destination in a fixed order (by warehouse id)
      so two opposite moves cannot deadlock, and checks the source before
      either row is written.
    - Concurrent first-touch of a location is resolved by the unique
      constraint plus a locked re-read, never by a read-then-write.

Failure modes:
    - InsufficientInventoryError(available, requested) on reserve/issue/move.
    - InsufficientReservedError(reserved, requested) on release.
    - InventoryNotFoundError on release of a location with no row.
"""

from datetime import datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import InventoryRow
from stock_kernel.domain.stock import ZERO, StockBalance, TransactionType, require_positive
from stock_kernel.exceptions import (
    InsufficientInventoryError,
    InventoryNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import InventoryModel

logger = get_logger("services.inventory_ledger")


def _location_filter(
    tenant_id: UUID, warehouse_id: UUID, product_id: UUID, lot_id: UUID | None,
) -> tuple:
    lot_clause = (
        InventoryModel.lot_id.is_(None) if lot_id is None
        else InventoryModel.lot_id == lot_id
    )
    return (
        InventoryModel.tenant_id == tenant_id,
        InventoryModel.warehouse_id == warehouse_id,
        InventoryModel.product_id == product_id,
        lot_clause,
    )


class InventoryLedger:
    """
    Stock ledger operations bound to one session.

    Usage:
        ledger = InventoryLedger(session, clock)
        row = ledger.reserve(tenant_id, warehouse_id, product_id, None,
                             Decimal("10"), actor_id)
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Row access
    # -------------------------------------------------------------------------

    def _lock_row(
        self, tenant_id: UUID, warehouse_id: UUID, product_id: UUID, lot_id: UUID | None,
    ) -> InventoryModel | None:
        return self._session.execute(
            select(InventoryModel)
            .where(*_location_filter(tenant_id, warehouse_id, product_id, lot_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def find_or_create(
        self,
        tenant_id: UUID,
        warehouse_id: UUID,
        product_id: UUID,
        lot_id: UUID | None,
        actor_id: UUID,
    ) -> InventoryModel:
        """
        Locked row for the location, created with zero quantities if absent.

        A concurrent creator wins via the unique constraint; the loser rolls
        back its savepoint and locks the winner's row.
        """
        row = self._lock_row(tenant_id, warehouse_id, product_id, lot_id)
        if row is not None:
            return row

        savepoint = self._session.begin_nested()
        try:
            row = InventoryModel(
                tenant_id=tenant_id,
                warehouse_id=warehouse_id,
                product_id=product_id,
                lot_id=lot_id,
                available_quantity=ZERO,
                reserved_quantity=ZERO,
                created_by_id=actor_id,
            )
            self._session.add(row)
            self._session.flush()
            savepoint.commit()
            logger.debug(
                "inventory_row_created",
                extra={
                    "warehouse_id": str(warehouse_id),
                    "product_id": str(product_id),
                    "lot_id": str(lot_id) if lot_id else None,
                },
            )
            return row
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "inventory_row_create_race_retry",
                extra={"warehouse_id": str(warehouse_id), "product_id": str(product_id)},
            )
            row = self._lock_row(tenant_id, warehouse_id, product_id, lot_id)
            if row is None:
                raise
            return row

    def _write(
        self,
        row: InventoryModel,
        balance: StockBalance,
        transaction_type: TransactionType,
        actor_id: UUID,
        when: datetime | None = None,
    ) -> None:
        row.apply_balance(balance, transaction_type, when or self._clock.now())
        row.updated_by_id = actor_id
        self._session.flush()

    # -------------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------------

    def reserve(
        self,
        tenant_id: UUID,
        warehouse_id: UUID,
        product_id: UUID,
        lot_id: UUID | None,
        quantity: Decimal,
        actor_id: UUID,
    ) -> InventoryRow:
        """
        Move ``quantity`` from available to reserved.

        With a lot, the exact row is used.  Without one, every row of the
        (warehouse, product) pair is locked in (lot_id NULL first, lot_id,
        row id) order and the first row that can cover the whole quantity
        is chosen.

        Raises:
            InsufficientInventoryError: No row can cover the quantity.  For a
                lot-less request ``available`` is the largest single-row
                availability found.
        """
        quantity = require_positive("quantity", quantity)

        with self._session.begin_nested():
            if lot_id is not None:
                row = self._lock_row(tenant_id, warehouse_id, product_id, lot_id)
                if row is None:
                    raise InsufficientInventoryError(ZERO, quantity)
            else:
                rows = self._session.execute(
                    select(InventoryModel)
                    .where(
                        InventoryModel.tenant_id == tenant_id,
                        InventoryModel.warehouse_id == warehouse_id,
                        InventoryModel.product_id == product_id,
                    )
                    .order_by(
                        InventoryModel.lot_id.is_(None).desc(),
                        InventoryModel.lot_id,
                        InventoryModel.id,
                    )
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalars().all()
                row = next((r for r in rows if r.available_quantity >= quantity), None)
                if row is None:
                    best = max((r.available_quantity for r in rows), default=ZERO)
                    raise InsufficientInventoryError(best, quantity)

            self._write(row, row.balance.reserve(quantity), TransactionType.RESERVE, actor_id)

        logger.info(
            "inventory_reserved",
            extra={
                "inventory_id": str(row.id),
                "quantity": quantity,
                "available": row.available_quantity,
                "reserved": row.reserved_quantity,
            },
        )
        return row.to_dto()

    def release(
        self,
        tenant_id: UUID,
        warehouse_id: UUID,
        product_id: UUID,
        lot_id: UUID | None,
        quantity: Decimal,
        actor_id: UUID,
    ) -> InventoryRow:
        """
        Move ``quantity`` from reserved back to available.

        Raises:
            InventoryNotFoundError: No row exists for the location.
            InsufficientReservedError: reserved < quantity.
        """
        quantity = require_positive("quantity", quantity)

        with self._session.begin_nested():
            row = self._lock_row(tenant_id, warehouse_id, product_id, lot_id)
            if row is None:
                raise InventoryNotFoundError(
                    str(warehouse_id), str(product_id), str(lot_id) if lot_id else None,
                )
            self._write(row, row.balance.release(quantity), TransactionType.RELEASE, actor_id)

        logger.info(
            "inventory_released",
            extra={
                "inventory_id": str(row.id),
                "quantity": quantity,
                "available": row.available_quantity,
                "reserved": row.reserved_quantity,
            },
        )
        return row.to_dto()

    # -------------------------------------------------------------------------
    # Transaction effects (called by TransactionProcessor only)
    # -------------------------------------------------------------------------

    def apply_effect(
        self,
        tenant_id: UUID,
        transaction_type: TransactionType,
        warehouse_id: UUID,
        product_id: UUID,
        lot_id: UUID | None,
        quantity: Decimal,
        actor_id: UUID,
        when: datetime | None = None,
    ) -> InventoryRow:
        """
        Apply a single-location transaction effect.

        IN adds to available; OUT removes from available; ADJUST sets
        available to exactly ``quantity``; RESERVE/RELEASE delegate to the
        reservation operations.  MOVE must go through ``apply_move``.
        """
        tx_type = TransactionType(transaction_type)

        if tx_type is TransactionType.MOVE:
            raise ValidationError("transaction_type", "MOVE requires apply_move")
        if tx_type is TransactionType.RESERVE:
            return self.reserve(tenant_id, warehouse_id, product_id, lot_id, quantity, actor_id)
        if tx_type is TransactionType.RELEASE:
            return self.release(tenant_id, warehouse_id, product_id, lot_id, quantity, actor_id)

        with self._session.begin_nested():
            if tx_type.is_outbound:
                row = self._lock_row(tenant_id, warehouse_id, product_id, lot_id)
                if row is None:
                    raise InsufficientInventoryError(ZERO, Decimal(quantity))
                balance = row.balance.issue(quantity)
            else:
                row = self.find_or_create(tenant_id, warehouse_id, product_id, lot_id, actor_id)
                if tx_type is TransactionType.ADJUST:
                    balance = row.balance.adjust_to(quantity)
                else:
                    balance = row.balance.receive(quantity)
            before = row.available_quantity
            self._write(row, balance, tx_type, actor_id, when)

        logger.info(
            "inventory_effect_applied",
            extra={
                "inventory_id": str(row.id),
                "transaction_type": tx_type.value,
                "quantity": quantity,
                "available_before": before,
                "available_after": row.available_quantity,
            },
        )
        return row.to_dto()

    def apply_move(
        self,
        tenant_id: UUID,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        product_id: UUID,
        lot_id: UUID | None,
        quantity: Decimal,
        actor_id: UUID,
        when: datetime | None = None,
    ) -> tuple[InventoryModel, InventoryModel]:
        """
        Move available stock between warehouses as one atomic unit.

        Returns:
            (source_row, destination_row)

        Raises:
            InsufficientInventoryError: Source cannot cover the quantity;
                neither row is changed.
        """
        quantity = require_positive("quantity", quantity)
        if from_warehouse_id == to_warehouse_id:
            raise ValidationError("to_warehouse_id", "must differ from from_warehouse_id")

        with self._session.begin_nested():
            rows: dict[UUID, InventoryModel | None] = {}
            for wh in sorted((from_warehouse_id, to_warehouse_id), key=str):
                if wh == from_warehouse_id:
                    rows[wh] = self._lock_row(tenant_id, wh, product_id, lot_id)
                else:
                    rows[wh] = self.find_or_create(tenant_id, wh, product_id, lot_id, actor_id)

            source = rows[from_warehouse_id]
            destination = rows[to_warehouse_id]
            if source is None:
                raise InsufficientInventoryError(ZERO, quantity)

            # Both balances are computed before either row is written
            source_balance = source.balance.issue(quantity)
            destination_balance = destination.balance.receive(quantity)

            stamp = when or self._clock.now()
            self._write(source, source_balance, TransactionType.MOVE, actor_id, stamp)
            self._write(destination, destination_balance, TransactionType.MOVE, actor_id, stamp)

        logger.info(
            "inventory_moved",
            extra={
                "from_warehouse_id": str(from_warehouse_id),
                "to_warehouse_id": str(to_warehouse_id),
                "product_id": str(product_id),
                "quantity": quantity,
            },
        )
        return source, destination

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @staticmethod
    def total_quantity(row: InventoryRow | InventoryModel) -> Decimal:
        """available + reserved for one row."""
        return row.available_quantity + row.reserved_quantity

    def product_total(
        self, tenant_id: UUID, product_id: UUID, warehouse_id: UUID | None = None,
    ) -> Decimal:
        """Sum of available + reserved over a product's rows."""
        stmt = select(
            func.coalesce(
                func.sum(InventoryModel.available_quantity + InventoryModel.reserved_quantity),
                0,
            )
        ).where(
            InventoryModel.tenant_id == tenant_id,
            InventoryModel.product_id == product_id,
        )
        if warehouse_id is not None:
            stmt = stmt.where(InventoryModel.warehouse_id == warehouse_id)
        return Decimal(str(self._session.execute(stmt).scalar_one()))

    def find_inventory(
        self,
        tenant_id: UUID,
        warehouse_id: UUID,
        product_id: UUID,
        lot_id: UUID | None = None,
    ) -> InventoryRow | None:
        row = self._session.execute(
            select(InventoryModel).where(
                *_location_filter(tenant_id, warehouse_id, product_id, lot_id)
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def find_by_warehouse(self, tenant_id: UUID, warehouse_id: UUID) -> list[InventoryRow]:
        rows = self._session.execute(
            select(InventoryModel)
            .where(
                InventoryModel.tenant_id == tenant_id,
                InventoryModel.warehouse_id == warehouse_id,
            )
            .order_by(InventoryModel.product_id, InventoryModel.lot_id, InventoryModel.id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def find_by_product(self, tenant_id: UUID, product_id: UUID) -> list[InventoryRow]:
        rows = self._session.execute(
            select(InventoryModel)
            .where(
                InventoryModel.tenant_id == tenant_id,
                InventoryModel.product_id == product_id,
            )
            .order_by(InventoryModel.warehouse_id, InventoryModel.lot_id, InventoryModel.id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def low_stock(self, tenant_id: UUID, threshold: Decimal) -> Sequence[InventoryRow]:
        """Rows whose available + reserved is below ``threshold``."""
        threshold = Decimal(threshold)
        rows = self._session.execute(
            select(InventoryModel)
            .where(
                InventoryModel.tenant_id == tenant_id,
                (InventoryModel.available_quantity + InventoryModel.reserved_quantity)
                < threshold,
            )
            .order_by(InventoryModel.warehouse_id, InventoryModel.product_id, InventoryModel.id)
        ).scalars().all()
        return [r.to_dto() for r in rows]
