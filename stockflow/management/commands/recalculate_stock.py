"""
Management command to audit stock entries against their moves.

Usage:
    python manage.py recalculate_stock
    python manage.py recalculate_stock --dry-run
"""

from django.core.management.base import BaseCommand
from django.db.models import Sum
from django.db.models.functions import Coalesce

from stockflow.models import StockEntry


class Command(BaseCommand):
    """Recalculate stock entries from the move journal."""

    help = 'Rebuilds stock quantities from the move journal'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show the entries that drifted without fixing them'
        )

    def handle(self, *args, **options):
        entries = StockEntry.objects.annotate(
            journal=Coalesce(Sum('moves__delta'), 0)
        ).select_related('product', 'warehouse')
        drifted = [entry for entry in entries if entry.journal != entry.quantity]

        for entry in drifted:
            self.stdout.write(
                f'{entry.product} @ {entry.warehouse.code}: '
                f'{entry.quantity} → {entry.journal}'
            )

        if options['dry_run']:
            self.stdout.write(f'{len(drifted)} entry(ies) would be fixed')
        else:
            for entry in drifted:
                entry.recalculate()
            self.stdout.write(
                self.style.SUCCESS(f'{len(drifted)} entry(ies) fixed')
            )
