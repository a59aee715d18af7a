"""
Warehouse and Product models — the directory the engine moves stock between.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Warehouse(models.Model):
    """
    Where stock exists. The scope dimension of every stock entry.

    Examples:
        Warehouse.objects.create(code='main', name='Main Warehouse')
        Warehouse.objects.create(code='annex', name='Annex')
    """

    code = models.SlugField(
        unique=True,
        max_length=50,
        verbose_name=_('Code'),
        help_text=_('Unique identifier (e.g. main, annex)'),
    )
    name = models.CharField(
        max_length=100,
        verbose_name=_('Name'),
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Warehouse')
        verbose_name_plural = _('Warehouses')
        ordering = ['code']

    def __str__(self) -> str:
        return self.name


class Product(models.Model):
    """Something that is stocked. Read-only from the engine's point of view."""

    sku = models.CharField(
        unique=True,
        max_length=64,
        verbose_name=_('SKU'),
    )
    name = models.CharField(
        max_length=200,
        verbose_name=_('Name'),
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering = ['sku']

    def __str__(self) -> str:
        return f"{self.sku} {self.name}"
