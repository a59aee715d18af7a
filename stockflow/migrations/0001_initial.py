"""
Initial migration for Stockflow models.
"""

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create Stockflow models: Warehouse, Product, StockEntry, MovementDocument, MovementLine, Move."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Warehouse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.SlugField(help_text='Unique identifier (e.g. main, annex)', unique=True, verbose_name='Code')),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Warehouse',
                'verbose_name_plural': 'Warehouses',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(max_length=64, unique=True, verbose_name='SKU')),
                ('name', models.CharField(max_length=200, verbose_name='Name')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['sku'],
            },
        ),
        migrations.CreateModel(
            name='StockEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.IntegerField(default=0, verbose_name='Quantity')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_entries', to='stockflow.product', verbose_name='Product')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_entries', to='stockflow.warehouse', verbose_name='Warehouse')),
            ],
            options={
                'verbose_name': 'Stock entry',
                'verbose_name_plural': 'Stock entries',
            },
        ),
        migrations.CreateModel(
            name='MovementDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('delivery', 'Delivery'), ('transfer', 'Transfer')], db_index=True, max_length=20, verbose_name='Kind')),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('finalized', 'Finalized')], db_index=True, default='draft', max_length=20, verbose_name='Status')),
                ('customer', models.CharField(blank=True, default='', max_length=200, verbose_name='Customer')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('finalized_at', models.DateTimeField(blank=True, null=True, verbose_name='Finalized at')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Created by')),
                ('finalized_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Finalized by')),
                ('source_warehouse', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='outgoing_transfers', to='stockflow.warehouse', verbose_name='From warehouse')),
                ('destination_warehouse', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='incoming_transfers', to='stockflow.warehouse', verbose_name='To warehouse')),
            ],
            options={
                'verbose_name': 'Movement document',
                'verbose_name_plural': 'Movement documents',
                'ordering': ['-created_at', '-pk'],
            },
        ),
        migrations.CreateModel(
            name='MovementLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('line_number', models.PositiveIntegerField(verbose_name='Line')),
                ('requested_quantity', models.PositiveIntegerField(verbose_name='Requested')),
                ('actual_quantity', models.PositiveIntegerField(blank=True, help_text='Empty until the document is finalized', null=True, verbose_name='Actual')),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lines', to='stockflow.movementdocument', verbose_name='Document')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movement_lines', to='stockflow.product', verbose_name='Product')),
                ('source_warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='stockflow.warehouse', verbose_name='Source warehouse')),
            ],
            options={
                'verbose_name': 'Movement line',
                'verbose_name_plural': 'Movement lines',
                'ordering': ['document', 'line_number'],
            },
        ),
        migrations.CreateModel(
            name='Move',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('delta', models.IntegerField(help_text='Positive = in, Negative = out', verbose_name='Delta')),
                ('reason', models.CharField(help_text='Required. E.g. "Receipt", "DLV-000012"', max_length=255, verbose_name='Reason')),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Timestamp')),
                ('document', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='moves', to='stockflow.movementdocument', verbose_name='Document')),
                ('entry', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='moves', to='stockflow.stockentry', verbose_name='Stock entry')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Move',
                'verbose_name_plural': 'Moves',
                'ordering': ['timestamp', 'pk'],
            },
        ),
        # Constraints
        migrations.AddConstraint(
            model_name='stockentry',
            constraint=models.UniqueConstraint(fields=('product', 'warehouse'), name='unique_stock_entry_coordinate'),
        ),
        migrations.AddConstraint(
            model_name='stockentry',
            constraint=models.CheckConstraint(condition=models.Q(('quantity__gte', 0)), name='stock_entry_quantity_non_negative'),
        ),
        migrations.AddConstraint(
            model_name='movementdocument',
            constraint=models.CheckConstraint(condition=models.Q(('source_warehouse', models.F('destination_warehouse')), _negated=True), name='movement_document_distinct_warehouses'),
        ),
        migrations.AddConstraint(
            model_name='movementline',
            constraint=models.UniqueConstraint(fields=('document', 'line_number'), name='unique_movement_line_number'),
        ),
        migrations.AddConstraint(
            model_name='movementline',
            constraint=models.CheckConstraint(condition=models.Q(('requested_quantity__gt', 0)), name='movement_line_requested_positive'),
        ),
        migrations.AddConstraint(
            model_name='movementline',
            constraint=models.CheckConstraint(condition=models.Q(('actual_quantity__isnull', True), ('actual_quantity__lte', models.F('requested_quantity')), _connector='OR'), name='movement_line_actual_within_requested'),
        ),
        # Indexes
        migrations.AddIndex(
            model_name='movementdocument',
            index=models.Index(fields=['kind', 'status'], name='stockflow_m_kind_8c1f2e_idx'),
        ),
        migrations.AddIndex(
            model_name='move',
            index=models.Index(fields=['entry', 'timestamp'], name='stockflow_m_entry_i_5b7d40_idx'),
        ),
    ]
