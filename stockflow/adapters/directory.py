"""
Stockflow directory adapter — product/warehouse lookup.

Loads the configured CatalogDirectory from settings.

Usage:
    from stockflow.adapters import get_directory

    directory = get_directory()
    product = directory.get_product(42)

Settings:
    STOCKFLOW = {
        "DIRECTORY": "stockflow.adapters.directory.ModelDirectory",
    }
"""

from __future__ import annotations

import logging
import threading

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from stockflow.conf import stockflow_settings
from stockflow.exceptions import NotFoundError
from stockflow.models import Product, Warehouse
from stockflow.protocols.directory import CatalogDirectory

logger = logging.getLogger(__name__)


class ModelDirectory:
    """Directory backed by Stockflow's own Product and Warehouse tables."""

    def get_product(self, product_id: int) -> Product:
        try:
            return Product.objects.get(pk=product_id)
        except (Product.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(
                f"Product {product_id} not found",
                entity='product', id=product_id,
            )

    def get_warehouse(self, warehouse_id: int) -> Warehouse:
        try:
            return Warehouse.objects.get(pk=warehouse_id)
        except (Warehouse.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(
                f"Warehouse {warehouse_id} not found",
                entity='warehouse', id=warehouse_id,
            )


# Cached directory instance
_lock = threading.Lock()
_directory: CatalogDirectory | None = None


def get_directory() -> CatalogDirectory:
    """
    Return the configured directory.

    Raises:
        ImproperlyConfigured: If DIRECTORY is empty, cannot be imported,
            or does not implement CatalogDirectory
    """
    global _directory

    if _directory is None:
        with _lock:
            if _directory is None:  # double-checked
                path = stockflow_settings.DIRECTORY

                if not path:
                    raise ImproperlyConfigured(
                        "STOCKFLOW['DIRECTORY'] must not be empty. "
                        "Example: 'stockflow.adapters.directory.ModelDirectory'"
                    )

                try:
                    directory_class = import_string(path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import directory '{path}': {e}"
                    ) from e

                directory = directory_class()
                if not isinstance(directory, CatalogDirectory):
                    raise ImproperlyConfigured(
                        f"'{path}' does not implement CatalogDirectory"
                    )
                _directory = directory
                logger.debug("Loaded catalog directory: %s", path)

    return _directory


def reset_directory() -> None:
    """Reset the cached directory. Useful for testing."""
    global _directory
    _directory = None
