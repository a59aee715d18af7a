"""
MovementDocument and MovementLine models — deliveries and transfers.
"""

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockflow.models.enums import (
    FINALIZED_LABELS,
    REFERENCE_PREFIXES,
    DocumentKind,
    DocumentStatus,
)


class MovementDocumentQuerySet(models.QuerySet):
    """Query helpers for movement documents."""

    def deliveries(self):
        return self.filter(kind=DocumentKind.DELIVERY)

    def transfers(self):
        return self.filter(kind=DocumentKind.TRANSFER)

    def drafts(self):
        return self.filter(status=DocumentStatus.DRAFT)

    def finalized(self):
        return self.filter(status=DocumentStatus.FINALIZED)

    def with_lines(self):
        return self.prefetch_related('lines__product', 'lines__source_warehouse')


class MovementDocument(models.Model):
    """
    A requested movement of stock.

    LIFECYCLE:

        ┌───────┐   finalize()   ┌───────────┐
        │ DRAFT │ ─────────────► │ FINALIZED │
        └───────┘                └───────────┘

    A draft never touches stock. Finalizing writes the actual quantity of
    every line and applies the ledger deltas in the same transaction.

    KINDS:

    1. DELIVERY (customer filled):
       - Each line picks its own source warehouse
       - Stock leaves the network

    2. TRANSFER (source/destination filled):
       - Every line draws from source_warehouse
       - Stock arrives at destination_warehouse
    """

    kind = models.CharField(
        max_length=20,
        choices=DocumentKind.choices,
        db_index=True,
        verbose_name=_('Kind'),
    )
    status = models.CharField(
        max_length=20,
        choices=DocumentStatus.choices,
        default=DocumentStatus.DRAFT,
        db_index=True,
        verbose_name=_('Status'),
    )

    # Delivery metadata
    customer = models.CharField(
        max_length=200,
        blank=True,
        default='',
        verbose_name=_('Customer'),
    )

    # Transfer metadata
    source_warehouse = models.ForeignKey(
        'stockflow.Warehouse',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='outgoing_transfers',
        verbose_name=_('From warehouse'),
    )
    destination_warehouse = models.ForeignKey(
        'stockflow.Warehouse',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='incoming_transfers',
        verbose_name=_('To warehouse'),
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Created by'),
    )
    finalized_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Finalized at'),
    )
    finalized_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Finalized by'),
    )

    objects = MovementDocumentQuerySet.as_manager()

    class Meta:
        verbose_name = _('Movement document')
        verbose_name_plural = _('Movement documents')
        ordering = ['-created_at', '-pk']
        constraints = [
            models.CheckConstraint(
                condition=~Q(source_warehouse=F('destination_warehouse')),
                name='movement_document_distinct_warehouses',
            ),
        ]
        indexes = [
            models.Index(fields=['kind', 'status'], name='stockflow_m_kind_8c1f2e_idx'),
        ]

    @property
    def is_draft(self) -> bool:
        return self.status == DocumentStatus.DRAFT

    @property
    def is_finalized(self) -> bool:
        return self.status == DocumentStatus.FINALIZED

    @property
    def reference(self) -> str:
        """Display identifier, e.g. DLV-000042."""
        return f"{REFERENCE_PREFIXES[self.kind]}-{self.pk:06d}"

    @property
    def status_label(self) -> str:
        """Status as the users of each document kind call it."""
        if self.is_finalized:
            return str(FINALIZED_LABELS[self.kind])
        return str(DocumentStatus(self.status).label)

    def delete(self, *args, **kwargs):
        """Prevent deletion — documents are the audit trail."""
        raise ValueError("Movement documents cannot be deleted.")

    def __str__(self) -> str:
        if self.kind == DocumentKind.DELIVERY:
            return f"{self.reference} → {self.customer} ({self.status_label})"
        return (
            f"{self.reference} {self.source_warehouse} → "
            f"{self.destination_warehouse} ({self.status_label})"
        )


class MovementLine(models.Model):
    """
    One product of a document.

    requested_quantity is fixed at creation. actual_quantity stays NULL
    while the document is a draft and is written once, at finalization.
    """

    document = models.ForeignKey(
        MovementDocument,
        on_delete=models.PROTECT,
        related_name='lines',
        verbose_name=_('Document'),
    )
    line_number = models.PositiveIntegerField(verbose_name=_('Line'))
    product = models.ForeignKey(
        'stockflow.Product',
        on_delete=models.PROTECT,
        related_name='movement_lines',
        verbose_name=_('Product'),
    )
    source_warehouse = models.ForeignKey(
        'stockflow.Warehouse',
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('Source warehouse'),
    )
    requested_quantity = models.PositiveIntegerField(verbose_name=_('Requested'))
    actual_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_('Actual'),
        help_text=_('Empty until the document is finalized'),
    )

    class Meta:
        verbose_name = _('Movement line')
        verbose_name_plural = _('Movement lines')
        ordering = ['document', 'line_number']
        constraints = [
            models.UniqueConstraint(
                fields=['document', 'line_number'],
                name='unique_movement_line_number',
            ),
            models.CheckConstraint(
                condition=Q(requested_quantity__gt=0),
                name='movement_line_requested_positive',
            ),
            models.CheckConstraint(
                condition=(
                    Q(actual_quantity__isnull=True)
                    | Q(actual_quantity__lte=F('requested_quantity'))
                ),
                name='movement_line_actual_within_requested',
            ),
        ]

    @property
    def key(self) -> tuple[int, int]:
        """(product_id, warehouse_id) the line draws stock from."""
        return (self.product_id, self.source_warehouse_id)

    @property
    def shortfall(self) -> int | None:
        """Requested minus actual, once finalized."""
        if self.actual_quantity is None:
            return None
        return self.requested_quantity - self.actual_quantity

    def __str__(self) -> str:
        return f"#{self.line_number} {self.requested_quantity}x {self.product}"
