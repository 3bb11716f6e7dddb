"""
Stock Modules.

Orchestration layers over the stock kernel.  Each module contains:
- Domain models (request structs and frozen DTOs)
- ORM persistence for its own documents
- Workflows (state machines)
- Configuration schemas
- A session-scoped service

Modules:
- Quality: inspection requests, grading, pass-rate statistics
- Receiving: goods receipts, inspection routing, quarantine disposition

Ledger arithmetic, the transaction log and lots live in the kernel.
"""

from stock_modules import quality, receiving

__all__ = ["quality", "receiving"]
