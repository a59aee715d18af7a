"""
Stockflow Adapters.

Implementations of protocols for external systems.
"""

from stockflow.adapters.directory import (
    ModelDirectory,
    get_directory,
    reset_directory,
)

__all__ = [
    "ModelDirectory",
    "get_directory",
    "reset_directory",
]
