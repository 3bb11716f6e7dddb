"""
Goods Receipt Service (``stock_modules.receiving.service``).

Responsibility
--------------
Orchestrates goods-receipt intake: lot lookup-or-creation, immediate stock
credit for lines that need no inspection, inspection requests for lines
that do, and disposition on completion (passed stock to the receiving
warehouse, failed stock to quarantine).  Cancellation reverses every
credit the receipt made and deactivates its lots.

Architecture
------------
Layer: **Modules**.  Composes the kernel ``TransactionProcessor`` (the
only path by which receipt stock reaches the ledger), ``LotService`` and
``SequenceService``, plus ``QualityInspectionService`` from the quality
module.  Master data and quality standards are read through the
``MasterDataProvider`` / ``QualityStandardProvider`` protocols.

Every mutating method runs inside one savepoint: a failure anywhere in the
receipt (duplicate number, insufficient stock on reversal) leaves the
receipt, its lots and the ledger as they were.

Invariants
----------
- ``(tenant, receipt_no)`` is unique; blank numbers are generated as
  ``GR-YYYYMMDD-NNNN`` for the tenant-day.
- Line transactions are numbered ``IN-<receiptNo>-NNN`` (credit to the
  receiving warehouse), ``QI-<receiptNo>-NNN`` (credit to quarantine) and
  ``CX-<receiptNo>-NNN`` (reversal on cancel).
- A line is credited at most once and reversed at most once.
- Header totals equal the sums over the lines after every mutation.
- Header transitions follow ``RECEIPT_WORKFLOW``.

Failure Modes
-------------
- ``DuplicateReceiptNumberError`` for an explicit number that exists.
- ``WarehouseNotFoundError`` for an unknown receiving warehouse.
- ``GoodsReceiptNotFoundError`` for an unknown id or another tenant's id.
- ``InvalidStateTransitionError`` for complete/update/grade out of order.
- ``AlreadyCancelledError`` for a second cancellation.
- ``ValidationError`` under the ``reject`` missing-standard policy.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.master_data import (
    MasterDataProvider,
    QualityStandardProvider,
    Warehouse,
)
from stock_kernel.domain.stock import TransactionType
from stock_kernel.domain.transaction import TransactionRequest
from stock_kernel.exceptions import (
    AlreadyCancelledError,
    DuplicateReceiptNumberError,
    GoodsReceiptNotFoundError,
    InvalidStateTransitionError,
    ValidationError,
    WarehouseNotFoundError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.lot import LotQualityStatus
from stock_kernel.services.lot_service import LotService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.transaction_processor import TransactionProcessor
from stock_modules.quality.models import QualityInspection
from stock_modules.quality.service import QualityInspectionService
from stock_modules.receiving.config import ReceivingConfig
from stock_modules.receiving.models import (
    GoodsReceipt,
    GoodsReceiptItem,
    GoodsReceiptItemRequest,
    GoodsReceiptRequest,
    GoodsReceiptUpdate,
    ItemInspectionStatus,
    ReceiptStatus,
)
from stock_modules.receiving.orm import GoodsReceiptItemModel, GoodsReceiptModel
from stock_modules.receiving.workflows import RECEIPT_WORKFLOW

logger = get_logger("modules.receiving.service")

RECEIVE_PREFIX = "IN"
QUARANTINE_PREFIX = "QI"
REVERSAL_PREFIX = "CX"


def line_transaction_no(prefix: str, receipt_no: str, line_no: int) -> str:
    """``<PREFIX>-<receiptNo>-NNN`` for one receipt line."""
    return f"{prefix}-{receipt_no}-{line_no:03d}"


class GoodsReceiptService:
    """
    Goods receipt intake for one session.

    Usage::

        service = GoodsReceiptService(session, clock, master_data, standards)
        receipt = service.create(tenant_id, GoodsReceiptRequest(
            warehouse_id=wh.id,
            items=[GoodsReceiptItemRequest(
                product_id=p.id, received_quantity=Decimal("1000"),
                lot_no="LOT-A", inspection_status=ItemInspectionStatus.PENDING,
            )],
        ), actor_id=user_id)
        service.grade_item(tenant_id, receipt.id, receipt.items[0].id,
                           Decimal("100"), inspector_id)
        service.complete(tenant_id, receipt.id, user_id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None,
        master_data: MasterDataProvider,
        standards: QualityStandardProvider,
        config: ReceivingConfig | None = None,
        processor: TransactionProcessor | None = None,
        quality: QualityInspectionService | None = None,
        lots: LotService | None = None,
        sequences: SequenceService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._master_data = master_data
        self._standards = standards
        self._config = config or ReceivingConfig.with_defaults()
        self._sequences = sequences or SequenceService(session, self._clock)
        self._lots = lots or LotService(session)
        self._processor = processor or TransactionProcessor(
            session, self._clock, lots=self._lots, sequences=self._sequences,
        )
        self._quality = quality or QualityInspectionService(
            session, self._clock, self._sequences,
        )

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def create(
        self, tenant_id: UUID, request: GoodsReceiptRequest, actor_id: UUID,
    ) -> GoodsReceipt:
        """
        Record a goods receipt.

        NOT_REQUIRED lines are credited to the receiving warehouse at once;
        PENDING lines get an inspection request when a standard exists.  The
        header ends PENDING, or INSPECTING if any request was opened.
        """
        warehouse = self._require_warehouse(tenant_id, request.warehouse_id)
        receipt_date = request.receipt_date or self._clock.now()

        with self._session.begin_nested():
            header = self._insert_header(tenant_id, request, receipt_date, actor_id)
            with LogContext.bind(receipt_no=header.receipt_no):
                for line_no, item_request in enumerate(request.items, start=1):
                    self._intake_line(tenant_id, header, warehouse, line_no, item_request, actor_id)
                header.recompute_totals()
                self._session.flush()

        logger.info(
            "goods_receipt_created",
            extra={
                "receipt_no": header.receipt_no,
                "status": header.status,
                "item_count": len(header.items),
                "total_quantity": header.total_quantity,
                "total_amount": header.total_amount,
            },
        )
        return header.to_dto()

    def _insert_header(
        self,
        tenant_id: UUID,
        request: GoodsReceiptRequest,
        receipt_date: datetime,
        actor_id: UUID,
    ) -> GoodsReceiptModel:
        receipt_no = (request.receipt_no or "").strip()
        if not receipt_no:
            receipt_no = self._sequences.next_document_number(
                tenant_id, self._config.receipt_number_prefix, receipt_date.date(),
            )
        elif self._exists(tenant_id, receipt_no):
            raise DuplicateReceiptNumberError(str(tenant_id), receipt_no)

        header = GoodsReceiptModel(
            tenant_id=tenant_id,
            receipt_no=receipt_no,
            receipt_date=receipt_date,
            warehouse_id=request.warehouse_id,
            status=RECEIPT_WORKFLOW.initial_state,
            supplier_id=request.supplier_id,
            purchase_order_id=request.purchase_order_id,
            receiver_id=request.receiver_id,
            total_quantity=Decimal("0"),
            total_amount=Decimal("0"),
            remarks=request.remarks,
            is_active=request.is_active,
            created_by_id=actor_id,
        )

        savepoint = self._session.begin_nested()
        try:
            self._session.add(header)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateReceiptNumberError(str(tenant_id), receipt_no)
        return header

    def _intake_line(
        self,
        tenant_id: UUID,
        header: GoodsReceiptModel,
        warehouse: Warehouse,
        line_no: int,
        request: GoodsReceiptItemRequest,
        actor_id: UUID,
    ) -> None:
        lot_id = None
        if request.lot_no:
            lot = self._lots.find_or_create(
                tenant_id,
                request.lot_no,
                request.product_id,
                actor_id,
                initial_quantity=request.received_quantity,
                expiry_date=request.expiry_date,
            )
            lot_id = lot.id

        item = GoodsReceiptItemModel(
            line_no=line_no,
            product_id=request.product_id,
            ordered_quantity=request.ordered_quantity,
            received_quantity=Decimal(request.received_quantity),
            unit_price=Decimal(request.unit_price),
            line_amount=request.line_amount,
            lot_no=request.lot_no,
            lot_id=lot_id,
            expiry_date=request.expiry_date,
            inspection_status=ItemInspectionStatus(request.inspection_status).value,
            remarks=request.remarks,
            created_by_id=actor_id,
        )
        header.items.append(item)
        self._session.flush()

        if item.inspection_status == ItemInspectionStatus.PENDING.value:
            self._request_inspection(tenant_id, header, item, actor_id)

        if item.inspection_status == ItemInspectionStatus.NOT_REQUIRED.value:
            self._credit(tenant_id, header, item, warehouse.id, RECEIVE_PREFIX, actor_id)

    def _request_inspection(
        self,
        tenant_id: UUID,
        header: GoodsReceiptModel,
        item: GoodsReceiptItemModel,
        actor_id: UUID,
    ) -> None:
        standard = self._standards.find_active_standard(
            tenant_id, item.product_id, self._config.inspection_type,
        )
        if standard is None:
            self._apply_missing_standard_policy(header, item)
            return

        inspection = self._quality.request_inspection(
            tenant_id,
            standard,
            product_id=item.product_id,
            inspected_quantity=item.received_quantity,
            actor_id=actor_id,
            lot_id=item.lot_id,
            inspection_type=self._config.inspection_type,
            goods_receipt_id=header.id,
            goods_receipt_item_id=item.id,
            remarks=f"Goods receipt {header.receipt_no} line {item.line_no}",
            number_prefix=self._config.inspection_number_prefix,
        )
        item.inspection_id = inspection.id
        if header.status != ReceiptStatus.INSPECTING.value:
            self._transition(header, "begin_inspection")

    def _apply_missing_standard_policy(
        self, header: GoodsReceiptModel, item: GoodsReceiptItemModel,
    ) -> None:
        policy = self._config.missing_standard_policy
        logger.warning(
            "inspection_standard_missing",
            extra={
                "receipt_no": header.receipt_no,
                "line_no": item.line_no,
                "product_id": str(item.product_id),
                "policy": policy,
            },
        )
        if policy == "reject":
            raise ValidationError(
                "inspection_status",
                f"no active quality standard for product {item.product_id}",
            )
        if policy == "pass":
            item.inspection_status = ItemInspectionStatus.NOT_REQUIRED.value

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def grade_item(
        self,
        tenant_id: UUID,
        receipt_id: UUID,
        item_id: UUID,
        measured_value: Decimal,
        inspector_id: UUID,
    ) -> GoodsReceiptItem:
        """Grade the line's inspection and stamp PASS or FAIL on the line."""
        with self._session.begin_nested():
            header = self._lock(tenant_id, receipt_id)
            self._transition(header, "grade_item")
            item = self._find_item(header, item_id)
            if item.inspection_id is None:
                raise ValidationError(
                    "item_id", f"line {item.line_no} has no inspection request",
                )
            inspection = self._quality.grade_inspection(
                tenant_id, item.inspection_id, measured_value, inspector_id,
            )
            self._stamp_result(item, inspection, inspector_id)
            self._session.flush()

        return item.to_dto()

    @staticmethod
    def _stamp_result(
        item: GoodsReceiptItemModel, inspection: QualityInspection, actor_id: UUID,
    ) -> None:
        item.inspection_result = inspection.result.value
        item.inspection_status = (
            ItemInspectionStatus.PASS.value
            if inspection.result.is_acceptable
            else ItemInspectionStatus.FAIL.value
        )
        item.updated_by_id = actor_id

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    def complete(
        self, tenant_id: UUID, receipt_id: UUID, completed_by_id: UUID,
    ) -> GoodsReceipt:
        """
        Dispose of graded stock and close the receipt.

        Passed lines are credited to the receiving warehouse and their lots
        marked PASSED.  Failed lines mark their lots FAILED and are credited
        to the first quarantine warehouse; with none configured they stay
        uncredited.  Lines still awaiting a grade are left as they are.
        """
        with self._session.begin_nested():
            header = self._lock(tenant_id, receipt_id)
            with LogContext.bind(receipt_no=header.receipt_no):
                self._transition(header, "complete")
                quarantine: Warehouse | None = None
                quarantine_looked_up = False

                for item in header.items:
                    self._sync_inspection(tenant_id, item, completed_by_id)
                    status = ItemInspectionStatus(item.inspection_status)

                    if status is ItemInspectionStatus.PASS:
                        self._set_lot_status(tenant_id, item, LotQualityStatus.PASSED, completed_by_id)
                        if item.transaction_id is None:
                            self._credit(
                                tenant_id, header, item, header.warehouse_id,
                                RECEIVE_PREFIX, completed_by_id,
                            )

                    elif status is ItemInspectionStatus.FAIL:
                        self._set_lot_status(tenant_id, item, LotQualityStatus.FAILED, completed_by_id)
                        if not quarantine_looked_up:
                            quarantine = self._find_quarantine(tenant_id)
                            quarantine_looked_up = True
                        if quarantine is None:
                            logger.warning(
                                "quarantine_warehouse_missing",
                                extra={"receipt_no": header.receipt_no, "line_no": item.line_no},
                            )
                        elif item.transaction_id is None:
                            self._credit(
                                tenant_id, header, item, quarantine.id,
                                QUARANTINE_PREFIX, completed_by_id,
                            )

                    elif status is ItemInspectionStatus.NOT_REQUIRED:
                        self._set_lot_status(tenant_id, item, LotQualityStatus.PASSED, completed_by_id)

                    else:
                        logger.warning(
                            "goods_receipt_item_ungraded",
                            extra={"receipt_no": header.receipt_no, "line_no": item.line_no},
                        )

                header.completed_by_id = completed_by_id
                header.completed_at = self._clock.now()
                header.updated_by_id = completed_by_id
                self._session.flush()

        logger.info(
            "goods_receipt_completed",
            extra={
                "receipt_no": header.receipt_no,
                "completed_by_id": str(completed_by_id),
                "total_quantity": header.total_quantity,
            },
        )
        return header.to_dto()

    def _sync_inspection(
        self, tenant_id: UUID, item: GoodsReceiptItemModel, actor_id: UUID,
    ) -> None:
        """Pick up a grade recorded directly on the inspection."""
        if item.inspection_status != ItemInspectionStatus.PENDING.value:
            return
        if item.inspection_id is None:
            return
        inspection = self._quality.get(tenant_id, item.inspection_id)
        if inspection.is_graded:
            self._stamp_result(item, inspection, actor_id)

    def _find_quarantine(self, tenant_id: UUID) -> Warehouse | None:
        warehouses = self._master_data.find_warehouses_by_type(
            tenant_id, self._config.quarantine_warehouse_type,
        )
        return warehouses[0] if warehouses else None

    def _set_lot_status(
        self,
        tenant_id: UUID,
        item: GoodsReceiptItemModel,
        status: LotQualityStatus,
        actor_id: UUID,
    ) -> None:
        if item.lot_id is not None:
            self._lots.set_quality_status(tenant_id, item.lot_id, status, actor_id)

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def cancel(
        self, tenant_id: UUID, receipt_id: UUID, reason: str, actor_id: UUID,
    ) -> GoodsReceipt:
        """
        Cancel a receipt, reversing every credit it made.

        Each credited line gets an OUT_ISSUE from the warehouse it was
        credited to.  If that stock has since been issued the reversal fails
        with InsufficientInventoryError and nothing is cancelled.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason", "is required")

        with self._session.begin_nested():
            header = self._lock(tenant_id, receipt_id)
            if header.status == ReceiptStatus.CANCELLED.value:
                raise AlreadyCancelledError(str(receipt_id))

            with LogContext.bind(receipt_no=header.receipt_no):
                self._transition(header, "cancel")
                reversed_count = 0
                for item in header.items:
                    if item.transaction_id is not None and item.reversal_transaction_id is None:
                        self._reverse(tenant_id, header, item, reason, actor_id)
                        reversed_count += 1

                lot_ids = []
                for item in header.items:
                    if item.lot_id is not None and item.lot_id not in lot_ids:
                        lot_ids.append(item.lot_id)
                for lot_id in lot_ids:
                    self._lots.deactivate(tenant_id, lot_id, actor_id, remarks=f"Cancelled: {reason}")

                header.cancel_reason = reason
                header.cancelled_at = self._clock.now()
                header.is_active = False
                header.updated_by_id = actor_id
                self._session.flush()

        logger.info(
            "goods_receipt_cancelled",
            extra={
                "receipt_no": header.receipt_no,
                "reason": reason,
                "reversed_lines": reversed_count,
            },
        )
        return header.to_dto()

    def _reverse(
        self,
        tenant_id: UUID,
        header: GoodsReceiptModel,
        item: GoodsReceiptItemModel,
        reason: str,
        actor_id: UUID,
    ) -> None:
        record = self._processor.create(
            tenant_id,
            TransactionRequest(
                transaction_type=TransactionType.OUT_ISSUE,
                product_id=item.product_id,
                quantity=item.received_quantity,
                warehouse_id=item.credited_warehouse_id,
                lot_id=item.lot_id,
                transaction_no=line_transaction_no(REVERSAL_PREFIX, header.receipt_no, item.line_no),
                reference_no=header.receipt_no,
                remarks=f"Cancelled: {reason}",
            ),
            actor_id,
        )
        item.reversal_transaction_id = record.id

    # -------------------------------------------------------------------------
    # Amendment
    # -------------------------------------------------------------------------

    def update(
        self,
        tenant_id: UUID,
        receipt_id: UUID,
        changes: GoodsReceiptUpdate,
        actor_id: UUID,
    ) -> GoodsReceipt:
        """Amend header fields and unit prices of a PENDING receipt."""
        with self._session.begin_nested():
            header = self._lock(tenant_id, receipt_id)
            self._transition(header, "update")

            if changes.receipt_date is not None:
                header.receipt_date = changes.receipt_date
            if changes.supplier_id is not None:
                header.supplier_id = changes.supplier_id
            if changes.purchase_order_id is not None:
                header.purchase_order_id = changes.purchase_order_id
            if changes.receiver_id is not None:
                header.receiver_id = changes.receiver_id
            if changes.remarks is not None:
                header.remarks = changes.remarks

            for item_id, unit_price in changes.unit_prices.items():
                if unit_price is None or Decimal(unit_price) < 0:
                    raise ValidationError("unit_price", "cannot be negative")
                item = self._find_item(header, item_id)
                item.unit_price = Decimal(unit_price)
                item.line_amount = item.received_quantity * item.unit_price
                item.updated_by_id = actor_id

            header.recompute_totals()
            header.updated_by_id = actor_id
            self._session.flush()

        logger.info(
            "goods_receipt_updated",
            extra={"receipt_no": header.receipt_no, "total_amount": header.total_amount},
        )
        return header.to_dto()

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    def _credit(
        self,
        tenant_id: UUID,
        header: GoodsReceiptModel,
        item: GoodsReceiptItemModel,
        warehouse_id: UUID,
        prefix: str,
        actor_id: UUID,
    ) -> None:
        record = self._processor.create(
            tenant_id,
            TransactionRequest(
                transaction_type=TransactionType.IN_RECEIVE,
                product_id=item.product_id,
                quantity=item.received_quantity,
                warehouse_id=warehouse_id,
                lot_id=item.lot_id,
                transaction_no=line_transaction_no(prefix, header.receipt_no, item.line_no),
                reference_no=header.receipt_no,
            ),
            actor_id,
        )
        item.credited_warehouse_id = warehouse_id
        item.transaction_id = record.id

    def _transition(self, header: GoodsReceiptModel, action: str) -> None:
        transition = RECEIPT_WORKFLOW.find_transition(header.status, action)
        if transition is None:
            logger.warning(
                "goods_receipt_invalid_transition",
                extra={
                    "receipt_no": header.receipt_no,
                    "current_status": header.status,
                    "action": action,
                },
            )
            raise InvalidStateTransitionError(
                entity_type="goods receipt",
                entity_id=str(header.id),
                current_status=header.status,
                action=action.replace("_", " "),
            )
        header.status = transition.to_state

    def _require_warehouse(self, tenant_id: UUID, warehouse_id: UUID) -> Warehouse:
        warehouse = self._master_data.get_warehouse(tenant_id, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    @staticmethod
    def _find_item(header: GoodsReceiptModel, item_id: UUID) -> GoodsReceiptItemModel:
        for item in header.items:
            if item.id == item_id:
                return item
        raise ValidationError("item_id", f"{item_id} is not a line of {header.receipt_no}")

    def _lock(self, tenant_id: UUID, receipt_id: UUID) -> GoodsReceiptModel:
        header = self._session.execute(
            select(GoodsReceiptModel)
            .where(
                GoodsReceiptModel.id == receipt_id,
                GoodsReceiptModel.tenant_id == tenant_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if header is None:
            raise GoodsReceiptNotFoundError(str(receipt_id))
        return header

    def _exists(self, tenant_id: UUID, receipt_no: str) -> bool:
        return self._session.execute(
            select(GoodsReceiptModel.id).where(
                GoodsReceiptModel.tenant_id == tenant_id,
                GoodsReceiptModel.receipt_no == receipt_no,
            )
        ).first() is not None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, tenant_id: UUID, receipt_id: UUID) -> GoodsReceipt:
        header = self._session.get(GoodsReceiptModel, receipt_id)
        if header is None or header.tenant_id != tenant_id:
            raise GoodsReceiptNotFoundError(str(receipt_id))
        return header.to_dto()

    def find_by_status(
        self, tenant_id: UUID, status: ReceiptStatus | str,
    ) -> list[GoodsReceipt]:
        return self._query(
            GoodsReceiptModel.tenant_id == tenant_id,
            GoodsReceiptModel.status == ReceiptStatus(status).value,
        )

    def find_by_warehouse(self, tenant_id: UUID, warehouse_id: UUID) -> list[GoodsReceipt]:
        return self._query(
            GoodsReceiptModel.tenant_id == tenant_id,
            GoodsReceiptModel.warehouse_id == warehouse_id,
        )

    def find_by_purchase_order(
        self, tenant_id: UUID, purchase_order_id: UUID,
    ) -> list[GoodsReceipt]:
        return self._query(
            GoodsReceiptModel.tenant_id == tenant_id,
            GoodsReceiptModel.purchase_order_id == purchase_order_id,
        )

    def find_by_date_range(
        self, tenant_id: UUID, start: datetime, end: datetime,
    ) -> list[GoodsReceipt]:
        """Receipts dated within [start, end]."""
        return self._query(
            GoodsReceiptModel.tenant_id == tenant_id,
            GoodsReceiptModel.receipt_date >= start,
            GoodsReceiptModel.receipt_date <= end,
        )

    def _query(self, *criteria) -> list[GoodsReceipt]:
        rows = self._session.execute(
            select(GoodsReceiptModel)
            .where(*criteria)
            .order_by(GoodsReceiptModel.receipt_date, GoodsReceiptModel.receipt_no)
        ).scalars().all()
        return [r.to_dto() for r in rows]
