"""ShipStation to QuickBooks inventory connector.

Exposes the service layer and the one-call ``run_inventory_sync`` API for
programmatic use.
"""

from .runner import Action, InventorySyncService, OperationResult, run_inventory_sync
from .store import open_store

__all__ = [
    "Action",
    "InventorySyncService",
    "OperationResult",
    "open_store",
    "run_inventory_sync",
]
