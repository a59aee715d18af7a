"""
Django Stockflow — warehouse stock and movement documents.

Deliveries take stock out of the warehouse network, transfers move it between
two warehouses. Both start as drafts and only touch the stock ledger when
they are finalized.

Usage:
    from stockflow import movements, MovementError

    movements.receive(50, product, main)
    doc = movements.create_transfer(main, annex, [{'product': product, 'quantity': 30}])
    movements.finalize_transfer(doc.pk)
    movements.available(product, annex)  # 30
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'movements':
        from stockflow.service import movements
        return movements
    elif name == 'MovementError':
        from stockflow.exceptions import MovementError
        return MovementError
    elif name == 'Warehouse':
        from stockflow.models.catalog import Warehouse
        return Warehouse
    elif name == 'Product':
        from stockflow.models.catalog import Product
        return Product
    elif name == 'StockEntry':
        from stockflow.models.stock import StockEntry
        return StockEntry
    elif name == 'Move':
        from stockflow.models.move import Move
        return Move
    elif name == 'MovementDocument':
        from stockflow.models.document import MovementDocument
        return MovementDocument
    elif name == 'MovementLine':
        from stockflow.models.document import MovementLine
        return MovementLine
    elif name == 'DocumentKind':
        from stockflow.models.enums import DocumentKind
        return DocumentKind
    elif name == 'DocumentStatus':
        from stockflow.models.enums import DocumentStatus
        return DocumentStatus
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'movements',
    'MovementError',
    'Warehouse',
    'Product',
    'StockEntry',
    'Move',
    'MovementDocument',
    'MovementLine',
    'DocumentKind',
    'DocumentStatus',
]

__version__ = '0.1.0'
