"""Example usage of catalog-bridge: convert a Shopify product and sync it to WooCommerce."""

import asyncio
import json

from catalog_bridge import InMemoryCatalogClient, SyncReconciler, convert, get_adapter
from catalog_bridge.clients import WooClient

SHOPIFY_PRODUCT = {
    "id": 101,
    "title": "Zip Hoodie",
    "status": "active",
    "tags": "winter, cotton",
    "options": [{"name": "Color", "position": 1, "values": ["Blue", "Red"]}],
    "variants": [
        {"id": 201, "title": "Blue", "price": "45.00", "compare_at_price": "50.00", "sku": "HOOD-BLUE",
         "inventory_quantity": 4, "inventory_management": "shopify", "option1": "Blue"},
        {"id": 202, "title": "Red", "price": "42.00", "sku": "HOOD-RED",
         "inventory_quantity": 0, "inventory_management": "shopify", "option1": "Red"},
    ],
}


async def main():
    """Example: Shopify -> eBay -> Shopify, then a sandbox sync into WooCommerce."""
    shopify = get_adapter("shopify")
    ebay = get_adapter("ebay")
    woo = get_adapter("woo")

    record = shopify.parse_record(SHOPIFY_PRODUCT)

    # Convert to an eBay inventory item group
    group = convert(record, shopify, ebay).value
    print("eBay inventory item group:")
    print(json.dumps(ebay.dump_record(group), indent=2))

    # Back to Shopify: canonical ids and platform ids survive in the SKU payload
    restored = convert(group, ebay, shopify).value
    for variant in restored.variants:
        print(f"  • {variant.sku}: {variant.price} ({variant.inventory_quantity} in stock)")

    # Sync into an in-memory WooCommerce store twice; the second run is a no-op
    client = InMemoryCatalogClient(WooClient)
    reconciler = SyncReconciler(client)
    woo_record = convert(record, shopify, woo).value
    for attempt in (1, 2):
        report = await reconciler.sync([woo_record])
        print(f"\nSync #{attempt}: {report.counts()}")


if __name__ == "__main__":
    asyncio.run(main())
