"""Destination clients used by the sync reconciler."""

import logging
from typing import Optional

import httpx

from ..config import BridgeConfig
from ..errors import ConfigurationError
from .base import (
    CatalogClient,
    DesiredVariant,
    HttpCatalogClient,
    RemoteVariant,
    VariantUpdate,
    diff_variant,
)
from .shopify_client import ShopifyClient
from .woo_client import WooClient


def build_client(
    platform: str,
    config: BridgeConfig,
    client: Optional[httpx.AsyncClient] = None,
    logger: Optional[logging.Logger] = None,
) -> HttpCatalogClient:
    """Create the HTTP client for ``platform`` from the bridge configuration."""
    if platform == "shopify":
        if config.shopify is None:
            raise ConfigurationError("Missing 'shopify' configuration section")
        return ShopifyClient(config.shopify, config.rate_limit, config.sync, client=client, logger=logger)
    if platform == "woo":
        if config.woo is None:
            raise ConfigurationError("Missing 'woo' configuration section")
        return WooClient(config.woo, config.rate_limit, config.sync, client=client, logger=logger)
    raise ConfigurationError(f"No sync client for platform: {platform}")


__all__ = [
    "CatalogClient",
    "DesiredVariant",
    "HttpCatalogClient",
    "RemoteVariant",
    "ShopifyClient",
    "VariantUpdate",
    "WooClient",
    "build_client",
    "diff_variant",
]
