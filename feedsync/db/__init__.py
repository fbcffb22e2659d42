"""
Módulo de acceso a datos para Shopify Feed Sync.

Este módulo proporciona acceso al catálogo local y a la API de Shopify
con separación clara de responsabilidades:

- ConnDB: Gestión exclusiva de la conexión SQLite
- CatalogStore: Persistencia del catálogo, logs de sync e historial de exportaciones
- RemoteCatalogClient: Lecturas paginadas y con rate limiting de la API REST de Shopify
"""

from feedsync.db.catalog_store import CatalogStore
from feedsync.db.connection import ConnDB, get_db_connection
from feedsync.db.shopify_client import RemoteCatalogClient

__all__ = [
    "ConnDB",
    "CatalogStore",
    "RemoteCatalogClient",
    "get_db_connection",
]
