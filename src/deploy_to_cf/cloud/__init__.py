"""Cloud Controller API clients."""

from .catalog import CatalogClient

__all__ = ["CatalogClient"]
