"""
Stockflow Admin.

Provides views for production debugging:
- Warehouse / Product: list + edit
- StockEntry: read-only (product, warehouse, quantity)
- Move: read-only audit trail (timestamp, delta, reason)
- MovementDocument: read-only with lines inline and a "finalize" action
"""

import logging

from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _

from stockflow.exceptions import MovementError
from stockflow.models import (
    DocumentStatus,
    Move,
    MovementDocument,
    MovementLine,
    Product,
    StockEntry,
    Warehouse,
)

logger = logging.getLogger(__name__)


class ReadOnlyAdminMixin:
    """Rows only change through the movement engine."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# CATALOG ADMIN
# =========================================================================

@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ['code', 'name']
    search_fields = ['code', 'name']
    readonly_fields = ['created_at']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Deletion goes through movements.delete_product(), not the admin."""

    list_display = ['sku', 'name']
    search_fields = ['sku', 'name']
    readonly_fields = ['created_at']

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# STOCK ADMIN (read-only)
# =========================================================================

@admin.register(StockEntry)
class StockEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['product', 'warehouse', 'quantity', 'updated_at']
    list_filter = ['warehouse']
    search_fields = ['product__sku', 'product__name']
    readonly_fields = ['product', 'warehouse', 'quantity', 'created_at', 'updated_at']


@admin.register(Move)
class MoveAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Immutable audit trail."""

    list_display = ['timestamp', 'entry', 'delta', 'reason', 'document', 'user']
    list_filter = ['timestamp']
    search_fields = ['reason']
    readonly_fields = ['entry', 'delta', 'document', 'reason', 'timestamp', 'user']
    date_hierarchy = 'timestamp'


# =========================================================================
# DOCUMENT ADMIN (read-only with finalize action)
# =========================================================================

class MovementLineInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = MovementLine
    extra = 0
    fields = ['line_number', 'product', 'source_warehouse',
              'requested_quantity', 'actual_quantity']
    readonly_fields = fields


@admin.register(MovementDocument)
class MovementDocumentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['reference_display', 'kind', 'status_display', 'customer',
                    'source_warehouse', 'destination_warehouse', 'created_at']
    list_filter = ['kind', 'status']
    search_fields = ['customer']
    readonly_fields = ['kind', 'status', 'customer', 'source_warehouse',
                       'destination_warehouse', 'created_at', 'created_by',
                       'finalized_at', 'finalized_by']
    inlines = [MovementLineInline]
    actions = ['finalize_as_requested']

    @admin.display(description=_('Reference'))
    def reference_display(self, obj):
        return obj.reference

    @admin.display(description=_('Status'))
    def status_display(self, obj):
        return obj.status_label

    @admin.action(description=_('Finalize selected drafts as requested'))
    def finalize_as_requested(self, request, queryset):
        from stockflow import movements

        count = 0
        for document in queryset.filter(status=DocumentStatus.DRAFT):
            try:
                movements.finalize(document.pk, user=request.user)
                count += 1
            except MovementError as exc:
                logger.warning("finalize_as_requested: %s not finalized: %s",
                               document.reference, exc)
                self.message_user(
                    request,
                    _("{reference} not finalized: {message}").format(
                        reference=document.reference, message=exc.message,
                    ),
                    level=messages.ERROR,
                )

        self.message_user(request, _('{count} document(s) finalized.').format(count=count))
