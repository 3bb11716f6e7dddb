"""
Receiving Configuration Schema.

Defines the structure and defaults for goods-receipt intake settings.
Actual values are supplied by the caller at runtime (see
``stock_config.loader``).
"""

from dataclasses import dataclass
from typing import Self

from stock_kernel.domain.master_data import WarehouseType
from stock_kernel.logging_config import get_logger
from stock_modules.quality.models import InspectionType

logger = get_logger("modules.receiving.config")


VALID_MISSING_STANDARD_POLICIES = {"skip", "reject", "pass"}


@dataclass
class ReceivingConfig:
    """
    Configuration schema for goods-receipt intake.

    Field defaults:
        missing_standard_policy: "skip" -- an inspected item with no active
            standard stays PENDING with no inspection request and a warning
            is logged.  "reject" fails the receipt with ValidationError;
            "pass" receives the item as if no inspection were required.
        inspection_type: INCOMING.
        receipt_number_prefix: "GR".
        inspection_number_prefix: "IQC".
        quarantine_warehouse_type: QUARANTINE.

    Usage::

        config = ReceivingConfig(missing_standard_policy="reject")
    """

    missing_standard_policy: str = "skip"
    inspection_type: str = InspectionType.INCOMING.value
    receipt_number_prefix: str = "GR"
    inspection_number_prefix: str = "IQC"
    quarantine_warehouse_type: str = WarehouseType.QUARANTINE.value

    def __post_init__(self):
        if self.missing_standard_policy not in VALID_MISSING_STANDARD_POLICIES:
            raise ValueError(
                f"missing_standard_policy must be one of "
                f"{sorted(VALID_MISSING_STANDARD_POLICIES)}, "
                f"got '{self.missing_standard_policy}'"
            )

        valid_types = {t.value for t in InspectionType}
        if self.inspection_type not in valid_types:
            raise ValueError(
                f"inspection_type must be one of {sorted(valid_types)}, "
                f"got '{self.inspection_type}'"
            )

        for name in ("receipt_number_prefix", "inspection_number_prefix"):
            prefix = getattr(self, name)
            if not prefix or not prefix.isalnum():
                raise ValueError(f"{name} must be a non-empty alphanumeric string")

        WarehouseType(self.quarantine_warehouse_type)

        logger.debug(
            "receiving_config_initialized",
            extra={
                "missing_standard_policy": self.missing_standard_policy,
                "inspection_type": self.inspection_type,
                "quarantine_warehouse_type": self.quarantine_warehouse_type,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the documented defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g., a YAML section)."""
        logger.info(
            "receiving_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
