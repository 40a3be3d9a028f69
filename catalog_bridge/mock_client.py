"""In-memory catalog client for sandbox mode and tests."""

import itertools
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from .clients.base import CatalogClient, DesiredVariant, RemoteVariant, VariantUpdate
from .models.canonical import PlatformId


class InMemoryCatalogClient(CatalogClient[Any]):
    """
    Client that keeps the destination catalog in memory.

    Record handling (SKU extraction, titles) is borrowed from ``client_cls`` so
    the reconciler sees exactly what it would see against the real platform.
    Every call is appended to ``calls``.
    """

    platform = "memory"

    def __init__(self, client_cls: Type[CatalogClient], start_id: int = 1000):
        self.client_cls = client_cls
        self.platform = client_cls.platform
        self.products: Dict[PlatformId, Any] = {}
        self.remote_variants: Dict[str, RemoteVariant] = {}
        self.calls: List[Tuple[Any, ...]] = []
        self.failures: Dict[str, Exception] = {}
        self._ids = itertools.count(start_id)

    def seed(self, product_id: PlatformId, record: Any) -> None:
        """Pretend ``record`` already exists remotely under ``product_id``."""
        self.products[product_id] = record
        self._register(product_id, self.desired_variants(record), getattr(record, "type", None))

    def fail_on(self, title: str, error: Exception) -> None:
        """Raise ``error`` for any write touching the product titled ``title``."""
        self.failures[title] = error

    def _register(
        self, product_id: PlatformId, desired: Iterable[DesiredVariant], product_type: Optional[str] = None
    ) -> None:
        for variant in desired:
            self.remote_variants[variant.sku] = RemoteVariant(
                sku=variant.sku,
                product_id=product_id,
                variant_id=next(self._ids),
                price=variant.price,
                inventory=variant.inventory,
                extra={"product_type": product_type} if product_type else {},
            )

    def _check_failure(self, title: Optional[str]) -> None:
        if title in self.failures:
            raise self.failures[title]

    def _title_for(self, product_id: PlatformId) -> Optional[str]:
        record = self.products.get(product_id)
        return self.record_title(record) if record is not None else None

    async def get_all_products(self) -> List[Any]:
        self.calls.append(("get_all_products",))
        return list(self.products.values())

    async def create_product(self, record: Any) -> Any:
        title = self.record_title(record)
        self.calls.append(("create_product", title))
        self._check_failure(title)
        product_id = next(self._ids)
        created = record.model_copy(update={"id": product_id})
        self.seed(product_id, created)
        return created

    async def update_product(self, product_id: PlatformId, record: Any) -> Any:
        self.calls.append(("update_product", product_id))
        self._check_failure(self.record_title(record))
        updated = record.model_copy(update={"id": product_id})
        self.products[product_id] = updated
        return updated

    async def find_variants_by_skus(self, skus: Sequence[str]) -> Dict[str, RemoteVariant]:
        self.calls.append(("find_variants_by_skus", tuple(skus)))
        return {sku: self.remote_variants[sku] for sku in skus if sku in self.remote_variants}

    async def update_variants(self, product_id: PlatformId, updates: List[VariantUpdate]) -> None:
        self.calls.append(("update_variants", product_id, [update.desired.sku for update in updates]))
        self._check_failure(self._title_for(product_id))
        for update in updates:
            changes: Dict[str, Any] = {}
            if update.price_changed:
                changes["price"] = update.desired.price
            if update.inventory_changed:
                changes["inventory"] = update.desired.inventory
            self.remote_variants[update.desired.sku] = replace(update.existing, **changes)

    async def add_variants(self, product_id: PlatformId, desired: List[DesiredVariant]) -> List[Any]:
        self.calls.append(("add_variants", product_id, [variant.sku for variant in desired]))
        self._check_failure(self._title_for(product_id))
        self._register(product_id, desired, getattr(self.products.get(product_id), "type", None))
        return [variant.payload for variant in desired]

    async def restructure_product(self, product_id: PlatformId, record: Any) -> Any:
        desired = self.desired_variants(record)
        self.calls.append(("restructure_product", product_id, [variant.sku for variant in desired]))
        self._check_failure(self.record_title(record))
        self.remote_variants = {
            sku: remote for sku, remote in self.remote_variants.items() if remote.product_id != product_id
        }
        restructured = record.model_copy(update={"id": product_id})
        self.seed(product_id, restructured)
        return restructured

    def calls_named(self, name: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    def desired_variants(self, record: Any) -> List[DesiredVariant]:
        return self.client_cls.desired_variants(record)

    def record_title(self, record: Any) -> str:
        return self.client_cls.record_title(record)

    def needs_restructure(self, record: Any, matched: List[RemoteVariant]) -> bool:
        return self.client_cls.needs_restructure(record, matched)
