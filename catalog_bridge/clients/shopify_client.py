"""Shopify Admin API client (GraphQL for reads and inventory, REST for writes)."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..adapters.base import parse_decimal
from ..config import RateLimitConfig, ShopifyConfig, SyncConfig
from ..errors import ConfigurationError, RemoteOperationError
from ..models.canonical import PlatformId
from ..models.shopify_models import ShopifyProduct, ShopifyVariant
from .base import DesiredVariant, HttpCatalogClient, RemoteVariant, VariantUpdate, chunked

METAFIELD_NAMESPACE = "catalog_bridge"

PRODUCTS_QUERY = """
query Products($first: Int!, $after: String) {
  products(first: $first, after: $after) {
    pageInfo { hasNextPage endCursor }
    edges {
      node {
        id
        title
        descriptionHtml
        vendor
        productType
        status
        tags
        handle
        options { name position values }
        images(first: 50) { edges { node { id url altText } } }
        metafields(first: 10, namespace: "%(namespace)s") {
          edges { node { id namespace key value type } }
        }
        variants(first: 100) {
          edges {
            node {
              id
              title
              price
              compareAtPrice
              sku
              inventoryQuantity
              taxable
              selectedOptions { name value }
              image { id }
              inventoryItem { id tracked requiresShipping }
              metafields(first: 10, namespace: "%(namespace)s") {
                edges { node { id namespace key value type } }
              }
            }
          }
        }
      }
    }
  }
}
""" % {"namespace": METAFIELD_NAMESPACE}

VARIANTS_BY_SKU_QUERY = """
query VariantsBySku($first: Int!, $query: String!) {
  productVariants(first: $first, query: $query) {
    edges {
      node {
        id
        sku
        price
        inventoryQuantity
        inventoryItem { id }
        product { id }
      }
    }
  }
}
"""

SET_ON_HAND_MUTATION = """
mutation SetOnHand($input: InventorySetOnHandQuantitiesInput!) {
  inventorySetOnHandQuantities(input: $input) {
    inventoryAdjustmentGroup { id }
    userErrors { field message }
  }
}
"""


def legacy_id(gid: Optional[str]) -> Optional[PlatformId]:
    """Numeric REST id from a GraphQL global id (``gid://shopify/Product/123``)."""
    if gid is None:
        return None
    tail = str(gid).rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else tail


def sku_search_query(skus: Sequence[str]) -> str:
    terms = []
    for sku in skus:
        escaped = sku.replace("\\", "\\\\").replace("'", "\\'")
        terms.append(f"sku:'{escaped}'")
    return " OR ".join(terms)


def _edges(connection: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges", [])]


def flatten_product(node: Dict[str, Any]) -> ShopifyProduct:
    """Reshape a GraphQL product node into the REST product model."""
    options = node.get("options") or []
    option_names = [option["name"] for option in sorted(options, key=lambda o: o.get("position") or 0)]

    variants = []
    for variant in _edges(node.get("variants")):
        selected = {option["name"]: option["value"] for option in variant.get("selectedOptions") or []}
        slots = [selected.get(name) for name in option_names[:3]]
        slots += [None] * (3 - len(slots))
        inventory_item = variant.get("inventoryItem") or {}
        variants.append(
            ShopifyVariant(
                id=legacy_id(variant.get("id")),
                title=variant.get("title") or "",
                price=str(variant.get("price") or "0"),
                compare_at_price=variant.get("compareAtPrice"),
                sku=variant.get("sku"),
                inventory_quantity=variant.get("inventoryQuantity"),
                inventory_management="shopify" if inventory_item.get("tracked") else None,
                inventory_item_id=legacy_id(inventory_item.get("id")),
                taxable=variant.get("taxable"),
                requires_shipping=inventory_item.get("requiresShipping"),
                option1=slots[0],
                option2=slots[1],
                option3=slots[2],
                image_id=legacy_id((variant.get("image") or {}).get("id")),
                metafields=_edges(variant.get("metafields")),
            )
        )

    status = node.get("status")
    return ShopifyProduct(
        id=legacy_id(node.get("id")),
        title=node["title"],
        body_html=node.get("descriptionHtml"),
        vendor=node.get("vendor"),
        product_type=node.get("productType"),
        status=status.lower() if status else None,
        tags=", ".join(node.get("tags") or []) or None,
        handle=node.get("handle"),
        images=[
            {"id": legacy_id(image.get("id")), "src": image["url"], "alt": image.get("altText"), "position": index + 1}
            for index, image in enumerate(_edges(node.get("images")))
        ],
        options=options,
        variants=variants,
        metafields=_edges(node.get("metafields")),
    )


class ShopifyClient(HttpCatalogClient[ShopifyProduct]):
    """Client for the Shopify Admin API."""

    platform = "shopify"

    def __init__(
        self,
        config: ShopifyConfig,
        rate_limit: Optional[RateLimitConfig] = None,
        sync: Optional[SyncConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(
            base_url=f"https://{config.shop_domain}/admin/api/{config.api_version}",
            rate_limit=rate_limit,
            client=client,
            headers={
                "X-Shopify-Access-Token": config.access_token,
                "Content-Type": "application/json",
            },
            logger=logger,
        )
        self.config = config
        self.sync = sync or SyncConfig()
        self.location_gid = (
            f"gid://shopify/Location/{config.location_id}" if config.location_id else None
        )

    async def _graphql(self, query: str, variables: Dict[str, Any], operation: str) -> Dict[str, Any]:
        payload = await self._request("POST", "graphql.json", operation, json={"query": query, "variables": variables})
        if payload.get("errors"):
            raise RemoteOperationError(self.platform, operation, 200, json.dumps(payload["errors"]))
        return payload["data"]

    # -- reads --------------------------------------------------------------

    async def get_all_products(self) -> List[ShopifyProduct]:
        products: List[ShopifyProduct] = []
        cursor = None
        while True:
            data = await self._graphql(
                PRODUCTS_QUERY,
                {"first": self.sync.page_size, "after": cursor},
                "list_products",
            )
            connection = data["products"]
            products.extend(flatten_product(node) for node in _edges(connection))
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")

        self.logger.info("products_listed", extra={"platform": self.platform, "count": len(products)})
        return products

    async def find_variants_by_skus(self, skus: Sequence[str]) -> Dict[str, RemoteVariant]:
        wanted = set(skus)
        found: Dict[str, RemoteVariant] = {}
        for batch in chunked(sorted(wanted), self.sync.lookup_batch_size):
            data = await self._graphql(
                VARIANTS_BY_SKU_QUERY,
                # Search is fuzzy, so fetch headroom and filter exactly below.
                {"first": min(250, len(batch) * 2), "query": sku_search_query(batch)},
                "find_variants_by_skus",
            )
            for node in _edges(data.get("productVariants")):
                sku = node.get("sku")
                if sku not in wanted or sku in found:
                    continue
                found[sku] = RemoteVariant(
                    sku=sku,
                    product_id=legacy_id((node.get("product") or {}).get("id")),
                    variant_id=legacy_id(node.get("id")),
                    price=parse_decimal(node.get("price")),
                    inventory=node.get("inventoryQuantity"),
                    extra={"inventory_item_id": (node.get("inventoryItem") or {}).get("id")},
                )
        return found

    # -- writes -------------------------------------------------------------

    async def create_product(self, record: ShopifyProduct) -> ShopifyProduct:
        payload = record.model_dump(mode="json", exclude_none=True, exclude={"id"})
        response = await self._request("POST", "products.json", "create_product", json={"product": payload})
        return ShopifyProduct.model_validate(response["product"])

    async def update_product(self, product_id: PlatformId, record: ShopifyProduct) -> ShopifyProduct:
        numeric_id = legacy_id(str(product_id))
        # Variants are reconciled individually; sending them here would replace the set.
        payload = record.model_dump(mode="json", exclude_none=True, exclude={"id", "variants"})
        response = await self._request(
            "PUT", f"products/{numeric_id}.json", "update_product", json={"product": payload}
        )
        return ShopifyProduct.model_validate(response["product"])

    async def update_variants(self, product_id: PlatformId, updates: List[VariantUpdate]) -> None:
        operations = [
            self._update_price(update) for update in updates if update.price_changed
        ]
        inventory_updates = [update for update in updates if update.inventory_changed]
        if inventory_updates:
            operations.append(self._set_on_hand(inventory_updates))
        await asyncio.gather(*operations)

    async def _update_price(self, update: VariantUpdate) -> None:
        variant_id = legacy_id(str(update.existing.variant_id))
        body: Dict[str, Any] = {"id": variant_id, "price": str(update.desired.price)}
        if isinstance(update.desired.payload, ShopifyVariant):
            body["compare_at_price"] = update.desired.payload.compare_at_price
        await self._request("PUT", f"variants/{variant_id}.json", "update_variant_price", json={"variant": body})

    async def _set_on_hand(self, updates: List[VariantUpdate]) -> None:
        if not self.location_gid:
            raise ConfigurationError("A Shopify location_id is required for inventory updates")
        variables = {
            "input": {
                "reason": "correction",
                "setQuantities": [
                    {
                        "inventoryItemId": update.existing.extra.get("inventory_item_id"),
                        "locationId": self.location_gid,
                        "quantity": update.desired.inventory,
                    }
                    for update in updates
                ],
            }
        }
        data = await self._graphql(SET_ON_HAND_MUTATION, variables, "set_inventory")
        user_errors = (data.get("inventorySetOnHandQuantities") or {}).get("userErrors") or []
        if user_errors:
            raise RemoteOperationError(self.platform, "set_inventory", 200, json.dumps(user_errors))

    async def add_variants(self, product_id: PlatformId, desired: List[DesiredVariant]) -> List[ShopifyVariant]:
        numeric_id = legacy_id(str(product_id))
        created = []
        # One request per variant, in record order.
        for variant in desired:
            payload = variant.payload.model_dump(mode="json", exclude_none=True, exclude={"id", "image_id"})
            response = await self._request(
                "POST", f"products/{numeric_id}/variants.json", "add_variant", json={"variant": payload}
            )
            created.append(ShopifyVariant.model_validate(response["variant"]))
        return created

    # -- record helpers -----------------------------------------------------

    @staticmethod
    def desired_variants(record: ShopifyProduct) -> List[DesiredVariant]:
        return [
            DesiredVariant(
                sku=variant.sku,
                price=parse_decimal(variant.price),
                # Untracked variants carry no quantity worth pushing.
                inventory=variant.inventory_quantity if variant.inventory_management else None,
                payload=variant,
            )
            for variant in record.variants
            if variant.sku
        ]

    @staticmethod
    def record_title(record: ShopifyProduct) -> str:
        return record.title
