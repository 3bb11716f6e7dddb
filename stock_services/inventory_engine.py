"""
stock_services.inventory_engine -- Unit-of-work facade over the stock engine.

Responsibility:
    Exposes every operation offered to collaborators (controllers, other
    services).  Each call opens its own session, wires the kernel and
    module services for that session exactly once, runs as one unit of
    work, commits on success and rolls back on any error.

Architecture position:
    Services -- the top layer.  Imports kernel, modules and config; nothing
    imports it back.

Invariants enforced:
    - Tenant and actor are explicit arguments on every call; the facade
      binds them into ``LogContext`` for the duration of the call only.
    - One session per call: a failed call never leaves partial effects
      and never poisons the next call.
    - No automatic retry of any stock mutation.

Failure modes:
    - Every typed ``StockKernelError`` propagates unchanged after rollback.
    - ``RuntimeError`` if no session factory is given and the engine has
      not been initialized.

Usage:
    engine = InventoryEngine(
        master_data=warehouses_and_products,
        standards=quality_standards,
        clock=SystemClock(),
    )
    record = engine.create_transaction(tenant_id, TransactionRequest(...), user_id)
    row = engine.reserve_inventory(tenant_id, wh_id, product_id, Decimal("10"), user_id)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from stock_config.schema import EngineConfig
from stock_kernel.db.engine import get_session_factory, init_engine_from_url, session_scope
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import InventoryRow, TransactionRecord
from stock_kernel.domain.master_data import MasterDataProvider, QualityStandardProvider
from stock_kernel.domain.transaction import TransactionRequest
from stock_kernel.logging_config import LogContext, configure_logging, get_logger
from stock_kernel.services.inventory_ledger import InventoryLedger
from stock_kernel.services.lot_service import LotService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.transaction_processor import TransactionProcessor
from stock_modules._orm_registry import create_all_tables
from stock_modules.quality.models import QualityInspection
from stock_modules.quality.service import QualityInspectionService
from stock_modules.receiving.config import ReceivingConfig
from stock_modules.receiving.models import (
    GoodsReceipt,
    GoodsReceiptItem,
    GoodsReceiptRequest,
    GoodsReceiptUpdate,
)
from stock_modules.receiving.service import GoodsReceiptService

logger = get_logger("services.inventory_engine")

DEFAULT_LOW_STOCK_THRESHOLD = Decimal("100")


class StockServices:
    """Kernel and module services for one session, each created once."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        master_data: MasterDataProvider,
        standards: QualityStandardProvider,
        receiving_config: ReceivingConfig,
    ) -> None:
        self.session = session
        self.sequences = SequenceService(session, clock)
        self.lots = LotService(session)
        self.ledger = InventoryLedger(session, clock)
        self.processor = TransactionProcessor(
            session, clock, ledger=self.ledger, lots=self.lots, sequences=self.sequences,
        )
        self.quality = QualityInspectionService(session, clock, self.sequences)
        self.receiving = GoodsReceiptService(
            session,
            clock,
            master_data,
            standards,
            config=receiving_config,
            processor=self.processor,
            quality=self.quality,
            lots=self.lots,
            sequences=self.sequences,
        )


class InventoryEngine:
    """Inventory ledger and transaction engine, one unit of work per call.

    Contract:
        Receives a session factory (or uses the kernel's), the master-data
        and quality-standard collaborators, and an optional Clock.

    Non-goals:
        - Does NOT retry failed calls.
        - Does NOT read tenant or user from ambient state.
    """

    def __init__(
        self,
        master_data: MasterDataProvider,
        standards: QualityStandardProvider,
        clock: Clock | None = None,
        session_factory: sessionmaker[Session] | None = None,
        receiving_config: ReceivingConfig | None = None,
        low_stock_threshold: Decimal = DEFAULT_LOW_STOCK_THRESHOLD,
    ) -> None:
        self._master_data = master_data
        self._standards = standards
        self._clock = clock or SystemClock()
        self._session_factory = session_factory
        self._receiving_config = receiving_config or ReceivingConfig.with_defaults()
        self._low_stock_threshold = Decimal(low_stock_threshold)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        master_data: MasterDataProvider,
        standards: QualityStandardProvider,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> InventoryEngine:
        """Initialize logging and the database engine from ``EngineConfig``."""
        configure_logging(level=config.logging.level)
        init_engine_from_url(
            config.database.url,
            echo=config.database.echo,
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
            pool_timeout=config.database.pool_timeout,
        )
        if create_schema:
            create_all_tables()
        return cls(
            master_data,
            standards,
            clock=clock,
            session_factory=get_session_factory(),
            receiving_config=ReceivingConfig.from_dict(config.receiving),
            low_stock_threshold=config.default_low_stock_threshold,
        )

    @contextmanager
    def _unit_of_work(
        self, operation: str, tenant_id: UUID, actor_id: UUID | None = None,
    ) -> Iterator[StockServices]:
        with LogContext.bind(
            correlation_id=str(uuid4()), tenant_id=tenant_id, actor_id=actor_id,
        ):
            logger.debug("engine_operation_started", extra={"operation": operation})
            with session_scope(self._session_factory) as session:
                yield StockServices(
                    session,
                    self._clock,
                    self._master_data,
                    self._standards,
                    self._receiving_config,
                )
            logger.debug("engine_operation_completed", extra={"operation": operation})

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def create_transaction(
        self, tenant_id: UUID, request: TransactionRequest, operator_id: UUID,
    ) -> TransactionRecord:
        """Create and immediately apply a transaction."""
        with self._unit_of_work("create_transaction", tenant_id, operator_id) as svc:
            return svc.processor.create(tenant_id, request, operator_id)

    def create_transaction_pending(
        self, tenant_id: UUID, request: TransactionRequest, operator_id: UUID,
    ) -> TransactionRecord:
        """Create a transaction awaiting approval."""
        with self._unit_of_work("create_transaction_pending", tenant_id, operator_id) as svc:
            return svc.processor.create_pending(tenant_id, request, operator_id)

    def approve_transaction(
        self, tenant_id: UUID, transaction_id: UUID, approver_id: UUID,
    ) -> TransactionRecord:
        with self._unit_of_work("approve_transaction", tenant_id, approver_id) as svc:
            return svc.processor.approve(tenant_id, transaction_id, approver_id)

    def reject_transaction(
        self, tenant_id: UUID, transaction_id: UUID, approver_id: UUID, reason: str,
    ) -> TransactionRecord:
        with self._unit_of_work("reject_transaction", tenant_id, approver_id) as svc:
            return svc.processor.reject(tenant_id, transaction_id, approver_id, reason)

    def get_transaction(self, tenant_id: UUID, transaction_id: UUID) -> TransactionRecord:
        with self._unit_of_work("get_transaction", tenant_id) as svc:
            return svc.processor.get(tenant_id, transaction_id)

    def find_transactions_by_date_range(
        self, tenant_id: UUID, start: datetime, end: datetime,
    ) -> list[TransactionRecord]:
        with self._unit_of_work("find_transactions_by_date_range", tenant_id) as svc:
            return svc.processor.find_by_date_range(tenant_id, start, end)

    # -------------------------------------------------------------------------
    # Inventory
    # -------------------------------------------------------------------------

    def reserve_inventory(
        self,
        tenant_id: UUID,
        warehouse_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        lot_id: UUID | None = None,
    ) -> InventoryRow:
        """Hold ``quantity`` of available stock; any qualifying row when no lot is given."""
        with self._unit_of_work("reserve_inventory", tenant_id, actor_id) as svc:
            return svc.ledger.reserve(
                tenant_id, warehouse_id, product_id, lot_id, quantity, actor_id,
            )

    def release_reserved_inventory(
        self,
        tenant_id: UUID,
        warehouse_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        lot_id: UUID | None = None,
    ) -> InventoryRow:
        with self._unit_of_work("release_reserved_inventory", tenant_id, actor_id) as svc:
            return svc.ledger.release(
                tenant_id, warehouse_id, product_id, lot_id, quantity, actor_id,
            )

    def find_inventory(
        self,
        tenant_id: UUID,
        warehouse_id: UUID,
        product_id: UUID,
        lot_id: UUID | None = None,
    ) -> InventoryRow | None:
        with self._unit_of_work("find_inventory", tenant_id) as svc:
            return svc.ledger.find_inventory(tenant_id, warehouse_id, product_id, lot_id)

    def low_stock(
        self, tenant_id: UUID, threshold: Decimal | None = None,
    ) -> Sequence[InventoryRow]:
        """Rows whose total is below ``threshold`` (configured default when None)."""
        if threshold is None:
            threshold = self._low_stock_threshold
        with self._unit_of_work("low_stock", tenant_id) as svc:
            return svc.ledger.low_stock(tenant_id, threshold)

    # -------------------------------------------------------------------------
    # Goods receipts
    # -------------------------------------------------------------------------

    def create_goods_receipt(
        self, tenant_id: UUID, request: GoodsReceiptRequest, actor_id: UUID,
    ) -> GoodsReceipt:
        with self._unit_of_work("create_goods_receipt", tenant_id, actor_id) as svc:
            return svc.receiving.create(tenant_id, request, actor_id)

    def complete_goods_receipt(
        self, tenant_id: UUID, receipt_id: UUID, completed_by_id: UUID,
    ) -> GoodsReceipt:
        with self._unit_of_work("complete_goods_receipt", tenant_id, completed_by_id) as svc:
            return svc.receiving.complete(tenant_id, receipt_id, completed_by_id)

    def cancel_goods_receipt(
        self, tenant_id: UUID, receipt_id: UUID, reason: str, actor_id: UUID,
    ) -> GoodsReceipt:
        with self._unit_of_work("cancel_goods_receipt", tenant_id, actor_id) as svc:
            return svc.receiving.cancel(tenant_id, receipt_id, reason, actor_id)

    def update_goods_receipt(
        self,
        tenant_id: UUID,
        receipt_id: UUID,
        changes: GoodsReceiptUpdate,
        actor_id: UUID,
    ) -> GoodsReceipt:
        with self._unit_of_work("update_goods_receipt", tenant_id, actor_id) as svc:
            return svc.receiving.update(tenant_id, receipt_id, changes, actor_id)

    def grade_goods_receipt_item(
        self,
        tenant_id: UUID,
        receipt_id: UUID,
        item_id: UUID,
        measured_value: Decimal,
        inspector_id: UUID,
    ) -> GoodsReceiptItem:
        with self._unit_of_work("grade_goods_receipt_item", tenant_id, inspector_id) as svc:
            return svc.receiving.grade_item(
                tenant_id, receipt_id, item_id, measured_value, inspector_id,
            )

    def get_goods_receipt(self, tenant_id: UUID, receipt_id: UUID) -> GoodsReceipt:
        with self._unit_of_work("get_goods_receipt", tenant_id) as svc:
            return svc.receiving.get(tenant_id, receipt_id)

    # -------------------------------------------------------------------------
    # Quality
    # -------------------------------------------------------------------------

    def grade_inspection(
        self,
        tenant_id: UUID,
        inspection_id: UUID,
        measured_value: Decimal,
        inspector_id: UUID,
        inspected_quantity: Decimal | None = None,
    ) -> QualityInspection:
        with self._unit_of_work("grade_inspection", tenant_id, inspector_id) as svc:
            return svc.quality.grade_inspection(
                tenant_id, inspection_id, measured_value, inspector_id,
                inspected_quantity=inspected_quantity,
            )

    def pass_rate(self, tenant_id: UUID) -> float:
        with self._unit_of_work("pass_rate", tenant_id) as svc:
            return svc.quality.pass_rate(tenant_id)
