"""
Stock services — modular organization of stock operations.

    from stockflow.services import StockLedger, Availability, DocumentStore, MovementEngine
"""

from stockflow.services.availability import Availability
from stockflow.services.documents import DocumentStore
from stockflow.services.engine import MovementEngine
from stockflow.services.ledger import StockLedger
from stockflow.services.locks import PairLocks

__all__ = [
    'StockLedger',
    'Availability',
    'DocumentStore',
    'MovementEngine',
    'PairLocks',
]
