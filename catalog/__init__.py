"""Client for the external catalog API."""

from catalog.client import CatalogClient, create_client

__all__ = ["CatalogClient", "create_client"]
