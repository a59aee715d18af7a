"""
Stockflow Models.

Core models for stock movement:
- Warehouse: Where stock exists
- Product: What is stocked
- StockEntry: Quantity per (product, warehouse)
- Move: Immutable journal of quantity changes
- MovementDocument / MovementLine: Deliveries and transfers
"""

from stockflow.models.catalog import Product, Warehouse
from stockflow.models.document import MovementDocument, MovementLine
from stockflow.models.enums import DocumentKind, DocumentStatus
from stockflow.models.move import Move
from stockflow.models.stock import StockEntry

__all__ = [
    'DocumentKind',
    'DocumentStatus',
    'Warehouse',
    'Product',
    'StockEntry',
    'Move',
    'MovementDocument',
    'MovementLine',
]
