"""
LotService -- lot lookup, creation and quality bookkeeping.

Responsibility:
    Owns writes to ``lots``.  Goods-receipt intake calls ``find_or_create``
    on first receipt of a lot number; the transaction processor moves
    ``current_quantity`` when a transaction is applied; receipt completion
    and cancellation set quality status and deactivate lots.

Architecture position:
    Kernel > Services.  Does NOT commit -- callers own the transaction.

Invariants enforced:
    - One lot per (tenant, lot_no); find_or_create resolves concurrent
      first receipts through the unique constraint, not a read-then-write.
    - current_quantity is bookkeeping: it follows applied IN/OUT
      transactions and never blocks one.
"""

from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.stock import ZERO, require_positive
from stock_kernel.exceptions import (
    LotNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.lot import LotModel, LotQualityStatus

logger = get_logger("services.lot")


class LotService:
    """Lot persistence operations for one session."""

    def __init__(self, session: Session):
        self._session = session

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, tenant_id: UUID, lot_id: UUID) -> LotModel:
        lot = self._session.get(LotModel, lot_id)
        if lot is None or lot.tenant_id != tenant_id:
            raise LotNotFoundError(str(lot_id))
        return lot

    def lock(self, tenant_id: UUID, lot_id: UUID) -> LotModel:
        """Load a lot with a row lock held until the transaction ends."""
        lot = self._session.execute(
            select(LotModel)
            .where(LotModel.id == lot_id, LotModel.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if lot is None:
            raise LotNotFoundError(str(lot_id))
        return lot

    def find_by_lot_no(self, tenant_id: UUID, lot_no: str) -> LotModel | None:
        return self._session.execute(
            select(LotModel).where(
                LotModel.tenant_id == tenant_id,
                LotModel.lot_no == lot_no,
            )
        ).scalar_one_or_none()

    def find_by_quality_status(
        self, tenant_id: UUID, quality_status: LotQualityStatus | str,
    ) -> Sequence[LotModel]:
        status = LotQualityStatus(quality_status).value
        return self._session.execute(
            select(LotModel)
            .where(LotModel.tenant_id == tenant_id, LotModel.quality_status == status)
            .order_by(LotModel.lot_no)
        ).scalars().all()

    def find_by_product(self, tenant_id: UUID, product_id: UUID) -> Sequence[LotModel]:
        return self._session.execute(
            select(LotModel)
            .where(LotModel.tenant_id == tenant_id, LotModel.product_id == product_id)
            .order_by(LotModel.lot_no)
        ).scalars().all()

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def find_or_create(
        self,
        tenant_id: UUID,
        lot_no: str,
        product_id: UUID,
        actor_id: UUID,
        initial_quantity: Decimal = ZERO,
        expiry_date: date | None = None,
    ) -> LotModel:
        """
        Return the tenant's lot with this number, creating it if absent.

        New lots start PENDING with ``current_quantity = 0``; stock arrives
        through applied IN transactions.
        """
        if not lot_no:
            raise ValidationError("lot_no", "is required")

        lot = self.find_by_lot_no(tenant_id, lot_no)
        if lot is not None:
            if lot.product_id != product_id:
                raise ValidationError(
                    "lot_no", f"lot {lot_no} belongs to another product",
                )
            return lot

        savepoint = self._session.begin_nested()
        try:
            lot = LotModel(
                tenant_id=tenant_id,
                lot_no=lot_no,
                product_id=product_id,
                initial_quantity=Decimal(initial_quantity),
                current_quantity=ZERO,
                quality_status=LotQualityStatus.PENDING.value,
                expiry_date=expiry_date,
                is_active=True,
                created_by_id=actor_id,
            )
            self._session.add(lot)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("lot_create_race_retry", extra={"lot_no": lot_no})
            lot = self.find_by_lot_no(tenant_id, lot_no)
            if lot is None:
                raise
            return lot

        logger.info(
            "lot_created",
            extra={"lot_id": str(lot.id), "lot_no": lot_no, "product_id": str(product_id)},
        )
        return lot

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def set_quality_status(
        self,
        tenant_id: UUID,
        lot_id: UUID,
        quality_status: LotQualityStatus | str,
        actor_id: UUID,
    ) -> LotModel:
        lot = self.lock(tenant_id, lot_id)
        new_status = LotQualityStatus(quality_status).value
        old_status = lot.quality_status
        lot.quality_status = new_status
        lot.updated_by_id = actor_id
        self._session.flush()
        logger.info(
            "lot_quality_status_changed",
            extra={"lot_no": lot.lot_no, "from_status": old_status, "to_status": new_status},
        )
        return lot

    def deactivate(
        self, tenant_id: UUID, lot_id: UUID, actor_id: UUID, remarks: str | None = None,
    ) -> LotModel:
        lot = self.lock(tenant_id, lot_id)
        lot.is_active = False
        if remarks:
            lot.remarks = f"{lot.remarks} | {remarks}" if lot.remarks else remarks
        lot.updated_by_id = actor_id
        self._session.flush()
        logger.info("lot_deactivated", extra={"lot_no": lot.lot_no})
        return lot

    def adjust_current(
        self, tenant_id: UUID, lot_id: UUID, delta: Decimal, actor_id: UUID,
    ) -> LotModel:
        """
        Move current_quantity by a signed delta under a row lock.

        No floor is applied: ADJUST and split_lot move stock without touching
        this figure, so it can trail the ledger.  Only inventory rows refuse
        an issue.
        """
        lot = self.lock(tenant_id, lot_id)
        lot.current_quantity = lot.current_quantity + Decimal(delta)
        lot.updated_by_id = actor_id
        self._session.flush()
        return lot

    def split_lot(
        self,
        tenant_id: UUID,
        lot_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        remarks: str | None = None,
    ) -> LotModel:
        """
        Carve ``quantity`` out of a lot into a new child lot.

        The child is numbered ``<lotNo>-S01``, ``-S02`` ... skipping numbers
        already taken, and inherits product, expiry and quality status.
        The split must leave something behind: 0 < quantity < current.
        """
        quantity = require_positive("quantity", quantity)
        parent = self.lock(tenant_id, lot_id)
        if quantity >= parent.current_quantity:
            raise ValidationError(
                "quantity",
                f"split quantity {quantity} must be less than current "
                f"quantity {parent.current_quantity}",
            )

        index = 1
        child_no = f"{parent.lot_no}-S{index:02d}"
        while self.find_by_lot_no(tenant_id, child_no) is not None:
            index += 1
            child_no = f"{parent.lot_no}-S{index:02d}"

        parent.current_quantity = parent.current_quantity - quantity
        parent.updated_by_id = actor_id

        child = LotModel(
            tenant_id=tenant_id,
            lot_no=child_no,
            product_id=parent.product_id,
            initial_quantity=quantity,
            current_quantity=quantity,
            quality_status=parent.quality_status,
            expiry_date=parent.expiry_date,
            is_active=True,
            parent_lot_id=parent.id,
            remarks=remarks if remarks is not None else f"Split from {parent.lot_no}",
            created_by_id=actor_id,
        )
        self._session.add(child)
        self._session.flush()

        logger.info(
            "lot_split",
            extra={
                "parent_lot_no": parent.lot_no,
                "child_lot_no": child_no,
                "quantity": quantity,
                "parent_remaining": parent.current_quantity,
            },
        )
        return child
