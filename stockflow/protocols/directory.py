"""
Catalog Directory Protocol — Interface for product/warehouse lookup.

Stockflow defines this protocol; the catalog that owns products and
warehouses implements it. The engine only needs to know that an id exists
and to get the row it can reference.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from stockflow.models import Product, Warehouse


@runtime_checkable
class CatalogDirectory(Protocol):
    """
    Protocol for resolving product and warehouse ids.

    Implementations raise stockflow.exceptions.NotFoundError for unknown ids.
    """

    def get_product(self, product_id: int) -> Product:
        """
        Resolve a product id.

        Args:
            product_id: Primary key of the product

        Returns:
            Product instance

        Raises:
            NotFoundError: If the product does not exist
        """
        ...

    def get_warehouse(self, warehouse_id: int) -> Warehouse:
        """
        Resolve a warehouse id.

        Args:
            warehouse_id: Primary key of the warehouse

        Returns:
            Warehouse instance

        Raises:
            NotFoundError: If the warehouse does not exist
        """
        ...
