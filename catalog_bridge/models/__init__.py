"""Data models for the canonical record and each platform's wire format."""

from .canonical import (
    CanonicalImage,
    CanonicalProduct,
    CanonicalProductOption,
    CanonicalVariant,
    Platform,
    PLATFORMS,
    PlatformMeta,
    PlatformMetaEntry,
    VariantAttribute,
)
from .shopify_models import (
    ShopifyImage,
    ShopifyMetafield,
    ShopifyOption,
    ShopifyProduct,
    ShopifyVariant,
)
from .woo_models import (
    WooProduct,
    WooSimpleProduct,
    WooUnsupportedProduct,
    WooVariableProduct,
    WooVariation,
    parse_woo_product,
)
from .ebay_models import (
    EbayInventoryItem,
    EbayInventoryItemGroup,
    EbayOffer,
    EbayRecord,
    parse_ebay_record,
)

__all__ = [
    "CanonicalImage",
    "CanonicalProduct",
    "CanonicalProductOption",
    "CanonicalVariant",
    "Platform",
    "PLATFORMS",
    "PlatformMeta",
    "PlatformMetaEntry",
    "VariantAttribute",
    "ShopifyImage",
    "ShopifyMetafield",
    "ShopifyOption",
    "ShopifyProduct",
    "ShopifyVariant",
    "WooProduct",
    "WooSimpleProduct",
    "WooUnsupportedProduct",
    "WooVariableProduct",
    "WooVariation",
    "parse_woo_product",
    "EbayInventoryItem",
    "EbayInventoryItemGroup",
    "EbayOffer",
    "EbayRecord",
    "parse_ebay_record",
]
