"""WooCommerce REST API client."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from ..adapters.base import parse_decimal
from ..config import RateLimitConfig, SyncConfig, WooConfig
from ..models.canonical import PlatformId
from ..models.woo_models import (
    WooSimpleProduct,
    WooUnsupportedProduct,
    WooVariableProduct,
    WooVariation,
    parse_woo_product,
)
from .base import DesiredVariant, HttpCatalogClient, RemoteVariant, VariantUpdate, chunked

WooRecord = Union[WooSimpleProduct, WooVariableProduct, WooUnsupportedProduct]

MAX_PER_PAGE = 100

_PRICE_FIELDS = ("regular_price", "sale_price")
_STOCK_FIELDS = ("manage_stock", "stock_quantity", "stock_status")


def active_price(regular_price: str, sale_price: str, price: Optional[str] = None):
    return parse_decimal(sale_price) or parse_decimal(regular_price) or parse_decimal(price)


def _variant_fields(payload: Union[WooSimpleProduct, WooVariation], update: VariantUpdate) -> Dict[str, Any]:
    fields = []
    if update.price_changed:
        fields.extend(_PRICE_FIELDS)
    if update.inventory_changed:
        fields.extend(_STOCK_FIELDS)
    return {name: getattr(payload, name) for name in fields}


class WooClient(HttpCatalogClient[WooRecord]):
    """
    Client for the WooCommerce REST API (``/wp-json/wc/<version>``).

    Authenticates with consumer key/secret query parameters.
    """

    platform = "woo"

    def __init__(
        self,
        config: WooConfig,
        rate_limit: Optional[RateLimitConfig] = None,
        sync: Optional[SyncConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(
            base_url=f"{config.store_url}/wp-json/wc/{config.api_version}",
            rate_limit=rate_limit,
            client=client,
            params={
                "consumer_key": config.consumer_key,
                "consumer_secret": config.consumer_secret,
            },
            logger=logger,
        )
        self.config = config
        self.sync = sync or SyncConfig()

    def _parse(self, raw: Dict[str, Any], variations: Optional[List[Any]] = None) -> WooRecord:
        """Parse a product payload, replacing the bare variation id list."""
        if raw.get("type") == "variable":
            raw = {**raw, "variations": variations or []}
        return parse_woo_product(raw)

    async def _variations(self, product_id: PlatformId) -> List[Dict[str, Any]]:
        return await self._request(
            "GET",
            f"products/{product_id}/variations",
            "list_variations",
            params={"per_page": MAX_PER_PAGE},
        )

    # -- reads --------------------------------------------------------------

    async def get_all_products(self) -> List[WooRecord]:
        per_page = min(self.sync.page_size, MAX_PER_PAGE)
        products: List[WooRecord] = []
        page = 1
        while True:
            self.logger.debug("fetching_page", extra={"platform": self.platform, "page": page})
            raw_page = await self._request(
                "GET", "products", "list_products", params={"page": page, "per_page": per_page}
            )
            if not raw_page:
                break

            variable = [raw for raw in raw_page if raw.get("type") == "variable" and raw.get("variations")]
            hydrated = await asyncio.gather(*(self._variations(raw["id"]) for raw in variable))
            variations_by_id = {raw["id"]: variations for raw, variations in zip(variable, hydrated)}

            products.extend(self._parse(raw, variations_by_id.get(raw.get("id"))) for raw in raw_page)
            if len(raw_page) < per_page:
                break
            page += 1

        self.logger.info("products_listed", extra={"platform": self.platform, "count": len(products)})
        return products

    async def find_variants_by_skus(self, skus: Sequence[str]) -> Dict[str, RemoteVariant]:
        wanted = set(skus)
        found: Dict[str, RemoteVariant] = {}
        for batch in chunked(sorted(wanted), self.sync.lookup_batch_size):
            results = await self._request(
                "GET",
                "products",
                "find_variants_by_skus",
                params={"sku": ",".join(batch), "per_page": MAX_PER_PAGE},
            )
            for raw in results:
                product_type = raw.get("type")
                if product_type == "variation":
                    # A variation resolves to its parent product.
                    self._remember(found, wanted, raw, raw.get("parent_id"), raw.get("id"), "variable")
                elif product_type == "variable":
                    for variation in await self._variations(raw["id"]):
                        self._remember(found, wanted, variation, raw["id"], variation.get("id"), "variable")
                else:
                    self._remember(found, wanted, raw, raw.get("id"), None, product_type)
        return found

    def _remember(
        self,
        found: Dict[str, RemoteVariant],
        wanted: set,
        raw: Dict[str, Any],
        product_id: Optional[PlatformId],
        variant_id: Optional[PlatformId],
        product_type: Optional[str],
    ) -> None:
        sku = raw.get("sku")
        if sku not in wanted or sku in found:
            return
        found[sku] = RemoteVariant(
            sku=sku,
            product_id=product_id,
            variant_id=variant_id,
            price=parse_decimal(raw.get("price")),
            inventory=raw.get("stock_quantity") if raw.get("manage_stock") else None,
            extra={"product_type": product_type},
        )

    # -- writes -------------------------------------------------------------

    async def create_product(self, record: WooRecord) -> WooRecord:
        if isinstance(record, WooVariableProduct) and record.variations:
            # Variations need the parent id, so the parent goes first.
            parent = record.model_dump(mode="json", exclude_none=True, exclude={"id", "variations"})
            created = await self._request("POST", "products", "create_product", json=parent)
            self.logger.info(
                "parent_created",
                extra={"platform": self.platform, "product_id": created.get("id"), "variations": len(record.variations)},
            )
            batch = await self._request(
                "POST",
                f"products/{created['id']}/variations/batch",
                "create_variations",
                json={"create": [self._variation_payload(variation) for variation in record.variations]},
            )
            return self._parse(created, batch.get("create", []))

        payload = record.model_dump(mode="json", exclude_none=True, exclude={"id"})
        created = await self._request("POST", "products", "create_product", json=payload)
        return self._parse(created)

    async def update_product(self, product_id: PlatformId, record: WooRecord) -> WooRecord:
        payload = record.model_dump(mode="json", exclude_none=True, exclude={"id", "variations"})
        updated = await self._request("PUT", f"products/{product_id}", "update_product", json=payload)
        return self._parse(updated, getattr(record, "variations", None))

    async def update_variants(self, product_id: PlatformId, updates: List[VariantUpdate]) -> None:
        variation_updates = []
        for update in updates:
            fields = _variant_fields(update.desired.payload, update)
            if update.existing.variant_id is None:
                # Simple product: the variant lives on the product itself.
                await self._request("PUT", f"products/{product_id}", "update_simple_product", json=fields)
            else:
                variation_updates.append({"id": update.existing.variant_id, **fields})

        if variation_updates:
            await self._request(
                "POST",
                f"products/{product_id}/variations/batch",
                "update_variations",
                json={"update": variation_updates},
            )

    async def add_variants(self, product_id: PlatformId, desired: List[DesiredVariant]) -> List[WooVariation]:
        response = await self._request(
            "POST",
            f"products/{product_id}/variations/batch",
            "create_variations",
            json={"create": [self._variation_payload(variant.payload) for variant in desired]},
        )
        return [WooVariation.model_validate(raw) for raw in response.get("create", [])]

    async def restructure_product(self, product_id: PlatformId, record: WooRecord) -> WooRecord:
        """
        Turn an existing simple product into the variable product ``record``.

        The parent is switched first so a variation reusing the simple
        product's SKU does not collide with it.
        """
        if not isinstance(record, WooVariableProduct):
            raise TypeError(f"Only variable products replace a simple product, got {type(record).__name__}")
        parent = record.model_dump(mode="json", exclude_none=True, exclude={"id", "variations"})
        # Stock moves to the variations.
        parent["manage_stock"] = False
        updated = await self._request("PUT", f"products/{product_id}", "restructure_product", json=parent)
        batch = await self._request(
            "POST",
            f"products/{product_id}/variations/batch",
            "create_variations",
            json={"create": [self._variation_payload(variation) for variation in record.variations]},
        )
        self.logger.info(
            "product_restructured",
            extra={"platform": self.platform, "product_id": product_id, "variations": len(record.variations)},
        )
        return self._parse(updated, batch.get("create", []))

    def _variation_payload(self, variation: WooVariation) -> Dict[str, Any]:
        return variation.model_dump(mode="json", exclude_none=True, exclude={"id"})

    # -- record helpers -----------------------------------------------------

    @staticmethod
    def desired_variants(record: WooRecord) -> List[DesiredVariant]:
        if isinstance(record, WooSimpleProduct):
            if not record.sku:
                return []
            return [
                DesiredVariant(
                    sku=record.sku,
                    price=active_price(record.regular_price, record.sale_price, record.price),
                    inventory=record.stock_quantity if record.manage_stock else None,
                    payload=record,
                )
            ]
        if isinstance(record, WooVariableProduct):
            return [
                DesiredVariant(
                    sku=variation.sku,
                    price=active_price(variation.regular_price, variation.sale_price, variation.price),
                    inventory=variation.stock_quantity if variation.manage_stock else None,
                    payload=variation,
                )
                for variation in record.variations
                if variation.sku
            ]
        return []

    @staticmethod
    def needs_restructure(record: WooRecord, matched: List[RemoteVariant]) -> bool:
        """A variable record whose SKUs currently sit on a simple product."""
        return isinstance(record, WooVariableProduct) and any(
            remote.extra.get("product_type") == "simple" for remote in matched
        )

    @staticmethod
    def record_title(record: WooRecord) -> str:
        return record.name
