"""
Stockflow configuration.

Usage in settings.py:
    STOCKFLOW = {
        "DIRECTORY": "stockflow.adapters.directory.ModelDirectory",
        "LOCK_TIMEOUT_SECONDS": 5,
        "CHECK_AVAILABILITY_ON_CREATE": True,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StockflowSettings:
    """Stockflow configuration settings."""

    # Product/warehouse directory backend (dotted path)
    DIRECTORY: str = "stockflow.adapters.directory.ModelDirectory"

    # Upper bound for acquiring the stock locks of one operation
    LOCK_TIMEOUT_SECONDS: float = 5.0

    # Reject drafts that already exceed current stock
    CHECK_AVAILABILITY_ON_CREATE: bool = True


def get_stockflow_settings() -> StockflowSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOCKFLOW", {})
    return StockflowSettings(**{
        k: v for k, v in user_settings.items()
        if k in StockflowSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stockflow_settings(), name)


stockflow_settings = _LazySettings()
