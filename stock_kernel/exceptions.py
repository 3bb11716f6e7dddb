"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock bookkeeping must fail precisely. A caller that receives a generic
ValueError has to parse the message to learn whether the warehouse ran out
of stock or the transaction was already approved. Every error raised by
the kernel and its modules therefore:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries its context as attributes (not just a message string)

Example:
    try:
        ledger.reserve(tenant_id, warehouse_id, product_id, None, qty, actor_id)
    except InsufficientInventoryError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StockKernelError:

    StockKernelError (base)
    |
    +-- ValidationError
    |
    +-- DuplicateError
    |   +-- DuplicateTransactionNumberError
    |   +-- DuplicateReceiptNumberError
    |
    +-- NotFoundError
    |   +-- TransactionNotFoundError
    |   +-- InventoryNotFoundError
    |   +-- LotNotFoundError
    |   +-- GoodsReceiptNotFoundError
    |   +-- InspectionNotFoundError
    |   +-- WarehouseNotFoundError
    |
    +-- InventoryError
    |   +-- InsufficientInventoryError
    |   +-- InsufficientReservedError
    |
    +-- StateError
    |   +-- InvalidStateTransitionError
    |   +-- AlreadyCancelledError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                          | When Raised
--------------|-------------------------------|----------------------------------
Validation    | VALIDATION_ERROR              | Missing/invalid required field
--------------|-------------------------------|----------------------------------
Duplicate     | DUPLICATE_TRANSACTION_NUMBER  | (tenant, transaction_no) exists
              | DUPLICATE_RECEIPT_NUMBER      | (tenant, receipt_no) exists
--------------|-------------------------------|----------------------------------
Not found     | TRANSACTION_NOT_FOUND         | Transaction id unresolved
              | INVENTORY_NOT_FOUND           | No row for the location tuple
              | LOT_NOT_FOUND                 | Lot id / lot number unresolved
              | GOODS_RECEIPT_NOT_FOUND       | Receipt id unresolved
              | INSPECTION_NOT_FOUND          | Inspection id unresolved
              | WAREHOUSE_NOT_FOUND           | Master data has no warehouse
--------------|-------------------------------|----------------------------------
Inventory     | INSUFFICIENT_INVENTORY        | requested > available
              | INSUFFICIENT_RESERVED         | requested > reserved
--------------|-------------------------------|----------------------------------
State         | INVALID_STATE_TRANSITION      | Wrong source state for an action
              | ALREADY_CANCELLED             | Receipt cancelled twice
--------------|-------------------------------|----------------------------------
Immutability  | IMMUTABILITY_VIOLATION        | Modifying a terminal transaction

===============================================================================
HANDLING PATTERNS
===============================================================================

None of these errors is retried by the kernel. Retrying a stock mutation
silently risks double-crediting; the caller decides whether to resubmit.
Every mutating service method runs inside a savepoint, so a raised error
never leaves partial effects behind in the caller's session.
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Validation


class ValidationError(StockKernelError):
    """A required field is missing or a value is out of range."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Duplicates


class DuplicateError(StockKernelError):
    """Base exception for document-number collisions."""

    code: str = "DUPLICATE_ERROR"


class DuplicateTransactionNumberError(DuplicateError):
    """Transaction number already exists for the tenant."""

    code: str = "DUPLICATE_TRANSACTION_NUMBER"

    def __init__(self, tenant_id: str, transaction_no: str):
        self.tenant_id = tenant_id
        self.transaction_no = transaction_no
        super().__init__(f"Transaction number already exists: {transaction_no}")


class DuplicateReceiptNumberError(DuplicateError):
    """Goods receipt number already exists for the tenant."""

    code: str = "DUPLICATE_RECEIPT_NUMBER"

    def __init__(self, tenant_id: str, receipt_no: str):
        self.tenant_id = tenant_id
        self.receipt_no = receipt_no
        super().__init__(f"Receipt number already exists: {receipt_no}")


# Not found


class NotFoundError(StockKernelError):
    """Base exception for unresolved identifiers."""

    code: str = "NOT_FOUND"


class TransactionNotFoundError(NotFoundError):
    """Inventory transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class InventoryNotFoundError(NotFoundError):
    """No inventory row exists for the (warehouse, product, lot) tuple."""

    code: str = "INVENTORY_NOT_FOUND"

    def __init__(self, warehouse_id: str, product_id: str, lot_id: str | None):
        self.warehouse_id = warehouse_id
        self.product_id = product_id
        self.lot_id = lot_id
        super().__init__(
            f"Inventory record not found: warehouse={warehouse_id} "
            f"product={product_id} lot={lot_id}"
        )


class LotNotFoundError(NotFoundError):
    """Lot with given ID or number was not found."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, lot_ref: str):
        self.lot_ref = lot_ref
        super().__init__(f"Lot not found: {lot_ref}")


class GoodsReceiptNotFoundError(NotFoundError):
    """Goods receipt with given ID was not found."""

    code: str = "GOODS_RECEIPT_NOT_FOUND"

    def __init__(self, receipt_id: str):
        self.receipt_id = receipt_id
        super().__init__(f"Goods receipt not found: {receipt_id}")


class InspectionNotFoundError(NotFoundError):
    """Quality inspection with given ID was not found."""

    code: str = "INSPECTION_NOT_FOUND"

    def __init__(self, inspection_id: str):
        self.inspection_id = inspection_id
        super().__init__(f"Quality inspection not found: {inspection_id}")


class WarehouseNotFoundError(NotFoundError):
    """Master data has no warehouse with the given ID for the tenant."""

    code: str = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = warehouse_id
        super().__init__(f"Warehouse not found: {warehouse_id}")


# Inventory quantities


class InventoryError(StockKernelError):
    """Base exception for stock quantity errors."""

    code: str = "INVENTORY_ERROR"


class InsufficientInventoryError(InventoryError):
    """Requested quantity exceeds the available quantity."""

    code: str = "INSUFFICIENT_INVENTORY"

    def __init__(self, available, requested):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient inventory: available={available}, requested={requested}"
        )


class InsufficientReservedError(InventoryError):
    """Requested release exceeds the reserved quantity."""

    code: str = "INSUFFICIENT_RESERVED"

    def __init__(self, reserved, requested):
        self.reserved = reserved
        self.requested = requested
        super().__init__(
            f"Insufficient reserved inventory: reserved={reserved}, requested={requested}"
        )


# State machine


class StateError(StockKernelError):
    """Base exception for lifecycle errors."""

    code: str = "STATE_ERROR"


class InvalidStateTransitionError(StateError):
    """The action is not allowed from the entity's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        action: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} in status {current_status}"
        )


class AlreadyCancelledError(StateError):
    """Goods receipt has already been cancelled."""

    code: str = "ALREADY_CANCELLED"

    def __init__(self, receipt_id: str):
        self.receipt_id = receipt_id
        super().__init__(f"Goods receipt already cancelled: {receipt_id}")


# Immutability


class ImmutabilityError(StockKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Approved and rejected inventory transactions are terminal and append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
