"""
Stock ledger — authoritative quantity per (product, warehouse).

apply_delta() is the single choke point for quantity changes: it refuses
any delta that would take an entry below zero, so the caller's transaction
aborts instead of the entry being clamped.
"""

import logging

from django.db import OperationalError, transaction

from stockflow.exceptions import BusyError, InsufficientStockError, InvalidQuantityError, ValidationError
from stockflow.models.move import Move
from stockflow.models.stock import StockEntry
from stockflow.services.locks import PairLocks, pair_locks, set_database_lock_timeout

logger = logging.getLogger('stockflow')


def _pk(obj) -> int:
    return getattr(obj, 'pk', obj)


def _require_int(value, **context) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(
            f"Quantity must be an integer, got {value!r}",
            requested=value, **context,
        )
    return value


class StockLedger:
    """Read and delta operations on StockEntry rows."""

    def __init__(self, locks: PairLocks | None = None):
        self.locks = locks or pair_locks

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    def get_entry(self, product, warehouse, lock: bool = False) -> StockEntry | None:
        """Entry for the pair, or None. lock=True requires a transaction."""
        qs = StockEntry.objects.all()
        if lock:
            qs = qs.select_for_update()
        return qs.filter(
            product_id=_pk(product),
            warehouse_id=_pk(warehouse),
        ).first()

    def get_quantity(self, product, warehouse) -> int:
        """Quantity of the pair. A missing entry is 0, not an error."""
        quantity = StockEntry.objects.filter(
            product_id=_pk(product),
            warehouse_id=_pk(warehouse),
        ).values_list('quantity', flat=True).first()
        return quantity or 0

    def list_entries(self, product=None, warehouse=None, include_empty: bool = False):
        """List entries with filters."""
        qs = StockEntry.objects.select_related('product', 'warehouse')

        if product is not None:
            qs = qs.filter(product_id=_pk(product))

        if warehouse is not None:
            qs = qs.filter(warehouse_id=_pk(warehouse))

        if not include_empty:
            qs = qs.in_stock()

        return qs.order_by('product_id', 'warehouse_id')

    # ══════════════════════════════════════════════════════════════
    # DELTAS
    # ══════════════════════════════════════════════════════════════

    def lock_entries(self, pairs) -> dict[tuple[int, int], StockEntry]:
        """
        Lock the rows of every pair, creating missing ones, in sorted order.

        Must run inside transaction.atomic().
        """
        set_database_lock_timeout()
        entries = {}
        for product_id, warehouse_id in sorted(set(pairs)):
            StockEntry.objects.get_or_create(
                product_id=product_id,
                warehouse_id=warehouse_id,
            )
            entries[(product_id, warehouse_id)] = (
                StockEntry.objects.select_for_update().get(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                )
            )
        return entries

    def apply_delta(self, product, warehouse, delta: int, *, reason: str,
                    document=None, user=None) -> Move | None:
        """
        Add delta (positive or negative) to the pair's quantity.

        Creates the entry if absent. A zero delta changes nothing.

        Raises:
            InsufficientStockError: If the result would be negative. The
                caller validated availability before, so this means a race:
                the enclosing transaction must abort.

        Concurrency:
            - Must run inside the caller's transaction.atomic()
            - Locks the entry with select_for_update()
        """
        delta = _require_int(delta)
        if delta == 0:
            return None

        product_id, warehouse_id = _pk(product), _pk(warehouse)

        with transaction.atomic():
            entry, _ = StockEntry.objects.get_or_create(
                product_id=product_id,
                warehouse_id=warehouse_id,
            )
            entry = StockEntry.objects.select_for_update().get(pk=entry.pk)

            if entry.quantity + delta < 0:
                raise InsufficientStockError(
                    f"Product {product_id} has {entry.quantity} in warehouse "
                    f"{warehouse_id}, cannot remove {-delta}",
                    product=product_id,
                    warehouse=warehouse_id,
                    available=entry.quantity,
                    requested=-delta,
                )

            move = Move.objects.create(
                entry=entry,
                delta=delta,
                document=document,
                reason=reason,
                user=user,
            )

        logger.info(
            "ledger.delta",
            extra={
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "delta": delta,
                "reason": reason,
                "document_id": getattr(document, 'pk', None),
            },
        )
        return move

    def receive(self, quantity: int, product, warehouse, *,
                reason: str = 'Receipt', user=None) -> StockEntry:
        """
        Stock entry into a warehouse.

        Raises:
            InvalidQuantityError: If quantity is not a positive integer
            BusyError: If the pair stays locked past the timeout

        Concurrency:
            - Holds the pair lock, runs under transaction.atomic()
        """
        pair = (_pk(product), _pk(warehouse))
        quantity = _require_int(quantity, product=pair[0], warehouse=pair[1])
        if quantity <= 0:
            raise InvalidQuantityError(
                f"Quantity must be positive, got {quantity}",
                product=pair[0], warehouse=pair[1], requested=quantity,
            )

        with self.locks.hold([pair]):
            try:
                with transaction.atomic():
                    self.lock_entries([pair])
                    self.apply_delta(pair[0], pair[1], quantity, reason=reason, user=user)
            except OperationalError as exc:
                raise BusyError(product=pair[0], warehouse=pair[1]) from exc

        logger.info(
            "ledger.receive",
            extra={
                "product_id": pair[0],
                "warehouse_id": pair[1],
                "qty": quantity,
                "reason": reason,
            },
        )
        return StockEntry.objects.get(product_id=pair[0], warehouse_id=pair[1])

    def adjust(self, product, warehouse, new_quantity: int, *,
               reason: str, user=None) -> Move | None:
        """
        Inventory count correction.

        Calculates delta automatically: new_quantity - current quantity.

        Raises:
            ValidationError: If reason is empty
            InvalidQuantityError: If new_quantity is negative or not an integer
        """
        if not reason:
            raise ValidationError("Reason is required", field='reason')
        pair = (_pk(product), _pk(warehouse))
        new_quantity = _require_int(new_quantity, product=pair[0], warehouse=pair[1])
        if new_quantity < 0:
            raise InvalidQuantityError(
                f"Quantity cannot be negative, got {new_quantity}",
                product=pair[0], warehouse=pair[1], requested=new_quantity,
            )

        with self.locks.hold([pair]):
            try:
                with transaction.atomic():
                    entry = self.lock_entries([pair])[pair]
                    delta = new_quantity - entry.quantity
                    move = self.apply_delta(
                        pair[0], pair[1], delta,
                        reason=f"Adjustment: {reason}", user=user,
                    )
            except OperationalError as exc:
                raise BusyError(product=pair[0], warehouse=pair[1]) from exc

        if move is not None:
            logger.info(
                "ledger.adjust",
                extra={
                    "product_id": pair[0],
                    "warehouse_id": pair[1],
                    "delta": move.delta,
                    "reason": reason,
                },
            )
        return move
