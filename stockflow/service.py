"""
Stockflow Service — The single public interface for stock movements.

Usage:
    from stockflow import movements, MovementError

    movements.receive(50, product, main)
    doc = movements.create_delivery('ACME', [
        {'product': product, 'warehouse': main, 'quantity': 10},
    ])
    movements.finalize_delivery(doc.pk, {1: 8})   # partial: 8 of 10
    movements.available(product, main)            # 42
"""

from stockflow.models.stock import StockEntry
from stockflow.services.catalog import delete_product
from stockflow.services.engine import MovementEngine


class Stockflow(MovementEngine):
    """
    Movement engine plus the ledger entry points callers need around it.

    Ids and model instances are accepted everywhere; ids are resolved
    through the configured catalog directory.
    """

    # ══════════════════════════════════════════════════════════════
    # LEDGER
    # ══════════════════════════════════════════════════════════════

    def receive(self, quantity: int, product, warehouse, reason: str = 'Receipt',
                user=None) -> StockEntry:
        """Stock entry into a warehouse."""
        product = self.directory.get_product(getattr(product, 'pk', product))
        warehouse = self.directory.get_warehouse(getattr(warehouse, 'pk', warehouse))
        return self.ledger.receive(quantity, product, warehouse, reason=reason, user=user)

    def adjust(self, product, warehouse, new_quantity: int, reason: str, user=None):
        """Inventory count correction to new_quantity."""
        product = self.directory.get_product(getattr(product, 'pk', product))
        warehouse = self.directory.get_warehouse(getattr(warehouse, 'pk', warehouse))
        return self.ledger.adjust(product, warehouse, new_quantity, reason=reason, user=user)

    def stock_by_warehouse(self, product) -> dict[int, int]:
        """{warehouse_id: quantity} for one product."""
        return self.availability.summary(product)

    def entries(self, product=None, warehouse=None, include_empty: bool = False):
        """List stock entries with filters."""
        return self.ledger.list_entries(product, warehouse, include_empty=include_empty)

    # ══════════════════════════════════════════════════════════════
    # CATALOG
    # ══════════════════════════════════════════════════════════════

    def delete_product(self, product) -> dict[str, int]:
        """Explicitly delete a product with its stock and line history."""
        return delete_product(
            getattr(product, 'pk', product),
            directory=self.directory,
            locks=self.locks,
        )


movements = Stockflow()
