"""
Stock availability — how much can leave a warehouse right now.

available = ledger quantity. There is no reserved quantity: drafts do not
hold stock, so two drafts may both see the same figure. Only the recheck
made by finalize, under the stock locks, is binding.
"""

from stockflow.exceptions import InsufficientStockError
from stockflow.services.ledger import StockLedger, _pk


class Availability:
    """Read-only availability queries over a StockLedger."""

    def __init__(self, ledger: StockLedger | None = None):
        self.ledger = ledger or StockLedger()

    def available_to_move(self, product, warehouse) -> int:
        """Quantity of product that can leave warehouse."""
        return self.ledger.get_quantity(product, warehouse)

    def check(self, product, warehouse, quantity: int, line: int | None = None) -> int:
        """
        Raise unless quantity can leave warehouse.

        Returns:
            The available quantity

        Raises:
            InsufficientStockError: With available/requested and the offending
                product, warehouse and line number in data
        """
        available = self.available_to_move(product, warehouse)
        if available < quantity:
            where = f" (line {line})" if line is not None else ""
            raise InsufficientStockError(
                f"Only {available} of product {_pk(product)} available in "
                f"warehouse {_pk(warehouse)}, {quantity} requested{where}",
                product=_pk(product),
                warehouse=_pk(warehouse),
                line=line,
                available=available,
                requested=quantity,
            )
        return available

    def summary(self, product) -> dict[int, int]:
        """{warehouse_id: quantity} of every warehouse holding the product."""
        return {
            entry.warehouse_id: entry.quantity
            for entry in self.ledger.list_entries(product=product)
        }
