"""
catalog-bridge

Translates product catalogs between Shopify, WooCommerce and eBay through a
platform-neutral canonical model, and syncs them into a destination store by
matching SKUs.
"""

__version__ = "0.1.0"

from .adapters import EbayAdapter, ShopifyAdapter, WooAdapter, get_adapter
from .config import BridgeConfig
from .convert import convert, convert_batch
from .mock_client import InMemoryCatalogClient
from .models.canonical import CanonicalProduct, CanonicalVariant, PlatformMeta
from .reconciler import SyncReconciler

__all__ = [
    "BridgeConfig",
    "CanonicalProduct",
    "CanonicalVariant",
    "EbayAdapter",
    "InMemoryCatalogClient",
    "PlatformMeta",
    "ShopifyAdapter",
    "SyncReconciler",
    "WooAdapter",
    "convert",
    "convert_batch",
    "get_adapter",
]
