"""
Pure domain layer.

Value objects and rules with NO dependencies on the ORM, the database,
or I/O (the SystemClock aside).  All domain objects are immutable.
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import InventoryRow, LotRecord, TransactionRecord
from stock_kernel.domain.master_data import (
    MasterDataProvider,
    Product,
    QualityStandard,
    QualityStandardProvider,
    Warehouse,
    WarehouseType,
)
from stock_kernel.domain.stock import StockBalance, TransactionType
from stock_kernel.domain.transaction import (
    APPROVAL_TRANSITIONS,
    TERMINAL_APPROVAL_STATUSES,
    ApprovalStatus,
    TransactionRequest,
)

__all__ = [
    "APPROVAL_TRANSITIONS",
    "ApprovalStatus",
    "Clock",
    "DeterministicClock",
    "InventoryRow",
    "LotRecord",
    "MasterDataProvider",
    "Product",
    "QualityStandard",
    "QualityStandardProvider",
    "StockBalance",
    "SystemClock",
    "TERMINAL_APPROVAL_STATUSES",
    "TransactionRecord",
    "TransactionRequest",
    "TransactionType",
    "Warehouse",
    "WarehouseType",
]
