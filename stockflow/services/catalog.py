"""
Catalog cascade — the one destructive operation on stock history.

Deleting a product removes its stock entries, their moves and every
document line that references it, then the product itself. It is never
triggered by the engine; callers invoke it on purpose.
"""

import logging

from django.db import OperationalError, transaction

from stockflow.exceptions import BusyError
from stockflow.models.document import MovementLine
from stockflow.models.move import Move
from stockflow.models.stock import StockEntry
from stockflow.services.locks import PairLocks, pair_locks

logger = logging.getLogger('stockflow')


def delete_product(product_id: int, directory=None, locks: PairLocks | None = None) -> dict[str, int]:
    """
    Delete a product and everything that references it.

    Args:
        product_id: Product primary key
        directory: CatalogDirectory used to resolve the id
        locks: Pair locks shared with the engine

    Returns:
        Number of deleted rows per kind: moves, stock_entries, lines

    Raises:
        NotFoundError: If the product does not exist
        BusyError: If one of its stock entries stays locked past the timeout

    Concurrency:
        - Holds the pair locks of every stock entry of the product,
          so no finalize can interleave
        - Runs under transaction.atomic()
    """
    if directory is None:
        from stockflow.adapters.directory import get_directory
        directory = get_directory()
    locks = locks or pair_locks

    product = directory.get_product(product_id)
    pairs = StockEntry.objects.filter(product=product).values_list('product_id', 'warehouse_id')

    with locks.hold(list(pairs)):
        try:
            with transaction.atomic():
                moves, _ = Move.objects.filter(entry__product=product).delete()
                entries, _ = StockEntry.objects.filter(product=product).delete()
                lines, _ = MovementLine.objects.filter(product=product).delete()
                product.delete()
        except OperationalError as exc:
            raise BusyError(product=product.pk) from exc

    counts = {'moves': moves, 'stock_entries': entries, 'lines': lines}
    logger.info(
        "catalog.delete_product",
        extra={"product_id": product_id, **counts},
    )
    return counts
