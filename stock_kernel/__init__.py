"""
Stock Kernel.

Inventory ledger and transaction engine for a multi-tenant ERP:
- Per-location stock rows with reservation accounting
- Append-only transaction log behind an approval gate
- Lot tracking with quality status
- Row-level locking for concurrent mutation
"""

__version__ = "0.1.0"
