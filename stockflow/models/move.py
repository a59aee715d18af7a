"""
Move model — Immutable journal of stock quantity changes.
"""

from django.conf import settings
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Move(models.Model):
    """
    Immutable record of quantity change.

    Rules:
    - NEVER update() or delete()
    - Corrections are new Moves with inverse delta
    - Updates StockEntry.quantity atomically on save()

    This is the ONLY model that changes quantity.
    """

    entry = models.ForeignKey(
        'stockflow.StockEntry',
        on_delete=models.PROTECT,
        related_name='moves',
        verbose_name=_('Stock entry'),
    )

    delta = models.IntegerField(
        verbose_name=_('Delta'),
        help_text=_('Positive = in, Negative = out'),
    )

    # Document that caused the change (None for receipts and adjustments)
    document = models.ForeignKey(
        'stockflow.MovementDocument',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='moves',
        verbose_name=_('Document'),
    )

    reason = models.CharField(
        max_length=255,
        verbose_name=_('Reason'),
        help_text=_('Required. E.g. "Receipt", "DLV-000012"'),
    )

    timestamp = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Timestamp'))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('User'),
    )

    class Meta:
        verbose_name = _('Move')
        verbose_name_plural = _('Moves')
        ordering = ['timestamp', 'pk']
        indexes = [
            models.Index(fields=['entry', 'timestamp'], name='stockflow_m_entry_i_5b7d40_idx'),
        ]

    def save(self, *args, **kwargs):
        """Save move and update entry quantity atomically."""
        if self.pk:
            raise ValueError(
                "Moves are immutable. "
                "To correct one, create a new Move with the inverse delta."
            )

        if not self.reason:
            raise ValueError("Reason is required")

        with transaction.atomic():
            super().save(*args, **kwargs)

            from stockflow.models.stock import StockEntry

            StockEntry.objects.filter(pk=self.entry_id).update(
                quantity=F('quantity') + self.delta,
                updated_at=timezone.now()
            )

    def delete(self, *args, **kwargs):
        """Prevent deletion — moves are immutable."""
        raise ValueError(
            "Moves are immutable. "
            "To reverse one, create a new Move with the inverse delta."
        )

    def __str__(self) -> str:
        signal = '+' if self.delta > 0 else ''
        return f"{signal}{self.delta} | {self.reason}"
