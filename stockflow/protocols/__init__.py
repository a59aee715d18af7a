"""
Stockflow Protocols.

Defines interfaces for external system integration.
"""

from stockflow.protocols.directory import CatalogDirectory

__all__ = [
    "CatalogDirectory",
]
