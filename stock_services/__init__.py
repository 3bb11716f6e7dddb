"""
stock_services -- Package init and public API.

Responsibility:
    The facade collaborators call.  Owns session lifecycles: every exposed
    operation is one committed-or-rolled-back unit of work.

Architecture position:
    Services -- the top layer.

        stock_services/ -> stock_modules/  (allowed)
        stock_services/ -> stock_kernel/   (allowed)
        stock_services/ -> stock_config/   (allowed)
        stock_kernel/   -> stock_services/ (FORBIDDEN)
        stock_modules/  -> stock_services/ (FORBIDDEN)
"""

from stock_services.inventory_engine import InventoryEngine, StockServices

__all__ = ["InventoryEngine", "StockServices"]
