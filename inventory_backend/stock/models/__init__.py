"""
PATH: stock/models/__init__.py

Stock models export surface.
"""

from .warehouse import Warehouse
from .stock_item import StockItem
from .stock_move import StockMove
from .transfer import StockTransfer, StockTransferLine

__all__ = [
    "Warehouse",
    "StockItem",
    "StockMove",
    "StockTransfer",
    "StockTransferLine",
]
