"""
Terminal inventory transactions are append-only.

The ORM listeners on InventoryTransactionModel block updates to APPROVED or
REJECTED rows and every delete.
"""

from decimal import Decimal

import pytest

from stock_kernel.domain.stock import TransactionType
from stock_kernel.domain.transaction import TransactionRequest
from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.models.transaction import InventoryTransactionModel
from stock_kernel.services.transaction_processor import TransactionProcessor


@pytest.fixture
def processor(session, deterministic_clock):
    return TransactionProcessor(session, deterministic_clock)


def _request(warehouse, product, tx_type=TransactionType.IN_RECEIVE, qty="10"):
    return TransactionRequest(
        transaction_type=tx_type,
        product_id=product.id,
        quantity=Decimal(qty),
        warehouse_id=warehouse.id,
        remarks="initial",
    )


def test_approved_transaction_cannot_be_modified(
    session, processor, tenant_id, warehouse, product, test_actor_id,
):
    record = processor.create(tenant_id, _request(warehouse, product), test_actor_id)
    tx = session.get(InventoryTransactionModel, record.id)
    tx.quantity = Decimal("999")
    with pytest.raises(ImmutabilityViolationError) as exc_info:
        session.flush()
    assert "quantity" in exc_info.value.reason


def test_rejected_transaction_cannot_be_modified(
    session, processor, tenant_id, warehouse, product, test_actor_id,
):
    pending = processor.create_pending(
        tenant_id, _request(warehouse, product, TransactionType.ADJUST), test_actor_id,
    )
    processor.reject(tenant_id, pending.id, test_actor_id, "no")
    tx = session.get(InventoryTransactionModel, pending.id)
    tx.remarks = "rewritten"
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_pending_transaction_can_be_edited(
    session, processor, tenant_id, warehouse, product, test_actor_id,
):
    pending = processor.create_pending(
        tenant_id, _request(warehouse, product, TransactionType.ADJUST), test_actor_id,
    )
    tx = session.get(InventoryTransactionModel, pending.id)
    tx.remarks = "recount"
    session.flush()
    assert processor.get(tenant_id, pending.id).remarks == "recount"


def test_audit_fields_may_change_on_terminal_row(
    session, processor, tenant_id, warehouse, product, test_actor_id,
):
    record = processor.create(tenant_id, _request(warehouse, product), test_actor_id)
    tx = session.get(InventoryTransactionModel, record.id)
    tx.updated_by_id = test_actor_id
    session.flush()


@pytest.mark.parametrize("approve", [True, False])
def test_transactions_cannot_be_deleted(
    session, processor, tenant_id, warehouse, product, test_actor_id, approve,
):
    if approve:
        record = processor.create(tenant_id, _request(warehouse, product), test_actor_id)
    else:
        record = processor.create_pending(
            tenant_id, _request(warehouse, product, TransactionType.ADJUST), test_actor_id,
        )
    session.delete(session.get(InventoryTransactionModel, record.id))
    with pytest.raises(ImmutabilityViolationError):
        session.flush()
