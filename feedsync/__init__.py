"""
Shopify Feed Sync.

Sincroniza el catálogo de una tienda Shopify en una base local y genera
el feed de Google Merchant con etiquetas personalizadas.
"""

from importlib.metadata import PackageNotFoundError, version

_FALLBACK_VERSION = "1.0.0"

try:
    __version__ = version("feedsync")
except PackageNotFoundError:
    __version__ = _FALLBACK_VERSION
