"""
StockEntry model — quantity of a product in a warehouse.
"""

import logging

from django.db import models
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce
from django.utils.translation import gettext_lazy as _

logger = logging.getLogger('stockflow')


class StockEntryQuerySet(models.QuerySet):
    """Query helpers for stock entries."""

    def for_product(self, product):
        return self.filter(product=product)

    def at_warehouse(self, warehouse):
        return self.filter(warehouse=warehouse)

    def in_stock(self):
        """Only entries holding something."""
        return self.filter(quantity__gt=0)


class StockEntry(models.Model):
    """
    Quantity of a product at a warehouse.

    Rules:
    - One row per (product, warehouse), created lazily on first stocking
    - quantity is only changed by Move.save(), never written directly
    - quantity >= 0 is checked by the ledger before every delta;
      the database constraint is the last line, not the policy
    """

    product = models.ForeignKey(
        'stockflow.Product',
        on_delete=models.PROTECT,
        related_name='stock_entries',
        verbose_name=_('Product'),
    )
    warehouse = models.ForeignKey(
        'stockflow.Warehouse',
        on_delete=models.PROTECT,
        related_name='stock_entries',
        verbose_name=_('Warehouse'),
    )
    quantity = models.IntegerField(
        default=0,
        verbose_name=_('Quantity'),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockEntryQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock entry')
        verbose_name_plural = _('Stock entries')
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'warehouse'],
                name='unique_stock_entry_coordinate',
            ),
            models.CheckConstraint(
                condition=Q(quantity__gte=0),
                name='stock_entry_quantity_non_negative',
            ),
        ]

    @property
    def key(self) -> tuple[int, int]:
        """(product_id, warehouse_id) — the lock key of this entry."""
        return (self.product_id, self.warehouse_id)

    def recalculate(self) -> int:
        """
        Recalculate quantity from Moves.

        Use for:
        - Integrity audit
        - Correction after detected inconsistency

        Returns:
            New calculated quantity
        """
        total = self.moves.aggregate(
            t=Coalesce(Sum('delta'), 0)
        )['t']

        if total != self.quantity:
            old = self.quantity
            self.quantity = total
            self.save(update_fields=['quantity', 'updated_at'])
            logger.warning(
                "stock.recalculated",
                extra={
                    "entry_id": self.pk,
                    "old": old,
                    "new": total,
                    "diff": total - old,
                },
            )

        return total

    def __str__(self) -> str:
        return f"{self.product} [{self.warehouse.code}]: {self.quantity}"
