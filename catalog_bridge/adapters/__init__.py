"""Platform adapters translating between wire records and canonical products."""

import logging
from typing import Callable, Dict, Optional, Type

from ..errors import ConfigurationError
from .base import ConversionResult, Converted, PlatformAdapter, Skipped, UNTRACKED_MARKER
from .ebay import EbayAdapter, decode_sku, encode_sku
from .shopify import ShopifyAdapter
from .woo import WooAdapter, infer_inventory

ADAPTERS: Dict[str, Type[PlatformAdapter]] = {
    "shopify": ShopifyAdapter,
    "woo": WooAdapter,
    "ebay": EbayAdapter,
}


def get_adapter(
    platform: str,
    logger: Optional[logging.Logger] = None,
    id_factory: Optional[Callable[[], str]] = None,
) -> PlatformAdapter:
    """Instantiate the adapter registered for ``platform``."""
    try:
        adapter_cls = ADAPTERS[platform]
    except KeyError:
        raise ConfigurationError(f"Unsupported platform: {platform}") from None
    return adapter_cls(logger=logger, id_factory=id_factory)


__all__ = [
    "ADAPTERS",
    "ConversionResult",
    "Converted",
    "EbayAdapter",
    "PlatformAdapter",
    "ShopifyAdapter",
    "Skipped",
    "UNTRACKED_MARKER",
    "WooAdapter",
    "decode_sku",
    "encode_sku",
    "get_adapter",
    "infer_inventory",
]
