"""
Enums for Stockflow models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class DocumentKind(models.TextChoices):
    """
    Type of movement document.

    DELIVERY: Stock leaves the warehouse network to a customer.
              Finalizing only decrements the source warehouse.

    TRANSFER: Stock moves between two warehouses of the network.
              Finalizing decrements the source and increments the destination.
    """
    DELIVERY = 'delivery', _('Delivery')
    TRANSFER = 'transfer', _('Transfer')


class DocumentStatus(models.TextChoices):
    """Document lifecycle status. DRAFT → FINALIZED, never back."""
    DRAFT = 'draft', _('Draft')              # Recorded, stock untouched
    FINALIZED = 'finalized', _('Finalized')  # Applied to the stock ledger


# How the terminal status reads for each kind of document
FINALIZED_LABELS = {
    DocumentKind.DELIVERY: _('Validated'),
    DocumentKind.TRANSFER: _('Completed'),
}

REFERENCE_PREFIXES = {
    DocumentKind.DELIVERY: 'DLV',
    DocumentKind.TRANSFER: 'TRF',
}
