"""
Master-data collaborator interfaces (``stock_kernel.domain.master_data``).

Warehouses, products and quality standards are owned by other parts of the
ERP.  The kernel never maps them; it holds their ids and resolves anything
else through the lookup protocols below.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol, Sequence
from uuid import UUID


class WarehouseType(str, Enum):
    RAW_MATERIAL = "RAW_MATERIAL"
    FINISHED_GOODS = "FINISHED_GOODS"
    WORK_IN_PROGRESS = "WORK_IN_PROGRESS"
    QUARANTINE = "QUARANTINE"
    GENERAL = "GENERAL"


@dataclass(frozen=True)
class Warehouse:
    id: UUID
    tenant_id: UUID
    code: str
    name: str
    warehouse_type: WarehouseType = WarehouseType.GENERAL
    is_active: bool = True


@dataclass(frozen=True)
class Product:
    id: UUID
    tenant_id: UUID
    code: str
    name: str
    unit: str = "EA"


@dataclass(frozen=True)
class QualityStandard:
    """
    Acceptance band for a product measurement.

    All bounds are optional.  A standard with neither ``min_value`` nor
    ``max_value`` places no constraint on the measurement.
    """

    id: UUID
    tenant_id: UUID
    product_id: UUID
    version: int = 1
    inspection_type: str = "INCOMING"
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    tolerance_value: Decimal | None = None
    is_active: bool = True


class MasterDataProvider(Protocol):
    """Read-only warehouse/product lookups."""

    def get_warehouse(self, tenant_id: UUID, warehouse_id: UUID) -> Warehouse | None:
        """Return the warehouse, or None if the tenant has no such warehouse."""
        ...

    def get_product(self, tenant_id: UUID, product_id: UUID) -> Product | None:
        ...

    def find_warehouses_by_type(
        self, tenant_id: UUID, warehouse_type: WarehouseType | str,
    ) -> Sequence[Warehouse]:
        """Active warehouses of the given type, in a stable order."""
        ...


class QualityStandardProvider(Protocol):
    """Read-only quality standard lookup."""

    def find_active_standard(
        self, tenant_id: UUID, product_id: UUID, inspection_type: str,
    ) -> QualityStandard | None:
        """Latest active standard version for the product, or None."""
        ...
