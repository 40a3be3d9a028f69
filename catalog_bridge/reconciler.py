"""
Create-or-update reconciliation of platform records against a destination.

Records are matched to the destination by SKU with one batched lookup. A
record with any matching SKU updates the existing product (only variants
whose price or inventory differ are sent, unmatched variants are appended to
the same parent); a record with no match is created. Products are
independent, so each one is synced in its own task.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Dict, Generic, List, Literal, Optional, Sequence, TypeVar

from .clients.base import CatalogClient, DesiredVariant, RemoteVariant, diff_variant
from .config import SyncConfig
from .errors import CatalogBridgeError, UnresolvableParentError
from .models.canonical import PlatformId
from .telemetry import SyncInstruments

T = TypeVar("T")

SyncAction = Literal["created", "updated", "unchanged", "failed"]


@dataclass
class ProductSyncResult:
    """Outcome of syncing one record."""
    title: str
    action: SyncAction
    remote_id: Optional[PlatformId] = None
    updated_skus: List[str] = field(default_factory=list)
    appended_skus: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class SyncReport:
    results: List[ProductSyncResult] = field(default_factory=list)

    def by_action(self, action: SyncAction) -> List[ProductSyncResult]:
        return [result for result in self.results if result.action == action]

    @property
    def created(self) -> List[ProductSyncResult]:
        return self.by_action("created")

    @property
    def updated(self) -> List[ProductSyncResult]:
        return self.by_action("updated")

    @property
    def unchanged(self) -> List[ProductSyncResult]:
        return self.by_action("unchanged")

    @property
    def failed(self) -> List[ProductSyncResult]:
        return self.by_action("failed")

    def counts(self) -> Dict[str, int]:
        return {action: len(self.by_action(action)) for action in ("created", "updated", "unchanged", "failed")}


class SyncReconciler(Generic[T]):
    """Sync a batch of destination-platform records through a ``CatalogClient``."""

    def __init__(
        self,
        client: CatalogClient[T],
        config: Optional[SyncConfig] = None,
        logger: Optional[logging.Logger] = None,
        instruments: Optional[SyncInstruments] = None,
    ):
        """
        Initialize the reconciler.

        Args:
            client: Destination client
            config: Sync settings; ``isolate_failures`` decides whether one
                product's error fails the whole batch
            logger: Logger for per-product events
            instruments: Optional OpenTelemetry instruments
        """
        self.client = client
        self.config = config or SyncConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.instruments = instruments

    async def sync(self, records: Sequence[T]) -> SyncReport:
        if not records:
            return SyncReport()

        desired_by_record = [self.client.desired_variants(record) for record in records]
        skus: List[str] = []
        for desired in desired_by_record:
            for variant in desired:
                if variant.sku not in skus:
                    skus.append(variant.sku)
        existing = await self.client.find_variants_by_skus(skus) if skus else {}

        tasks = []
        for record, desired in zip(records, desired_by_record):
            if any(variant.sku in existing for variant in desired):
                operation = self._update(record, desired, existing)
            else:
                operation = self._create(record)
            tasks.append(self._guarded(record, operation))

        report = SyncReport(results=list(await asyncio.gather(*tasks)))
        self.logger.info("sync_complete", extra={"platform": self.client.platform, **report.counts()})
        return report

    async def _guarded(self, record: T, operation: Awaitable[ProductSyncResult]) -> ProductSyncResult:
        title = self.client.record_title(record)
        started = time.perf_counter()
        try:
            result = await operation
        except CatalogBridgeError as exc:
            if not self.config.isolate_failures:
                raise
            self.logger.error(
                "sync_product_failed",
                extra={"platform": self.client.platform, "title": title, "error": str(exc)},
            )
            result = ProductSyncResult(title=title, action="failed", error=str(exc))

        if self.instruments is not None:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.instruments.record(self.client.platform, result.action, elapsed_ms)
        return result

    async def _create(self, record: T) -> ProductSyncResult:
        title = self.client.record_title(record)
        created = await self.client.create_product(record)
        remote_id = getattr(created, "id", None)
        self.logger.info(
            "sync_product_created",
            extra={"platform": self.client.platform, "title": title, "remote_id": remote_id},
        )
        return ProductSyncResult(title=title, action="created", remote_id=remote_id)

    async def _restructure(
        self,
        record: T,
        product_id: PlatformId,
        desired: List[DesiredVariant],
        existing: Dict[str, RemoteVariant],
    ) -> ProductSyncResult:
        """Replace a product whose shape cannot take ``record``'s variants in place."""
        title = self.client.record_title(record)
        await self.client.restructure_product(product_id, record)
        result = ProductSyncResult(
            title=title,
            action="updated",
            remote_id=product_id,
            updated_skus=[variant.sku for variant in desired if variant.sku in existing],
            appended_skus=[variant.sku for variant in desired if variant.sku not in existing],
        )
        self.logger.info(
            "sync_product_restructured",
            extra={
                "platform": self.client.platform,
                "title": title,
                "remote_id": product_id,
                "updated": len(result.updated_skus),
                "appended": len(result.appended_skus),
            },
        )
        return result

    async def _update(
        self,
        record: T,
        desired: List[DesiredVariant],
        existing: Dict[str, RemoteVariant],
    ) -> ProductSyncResult:
        title = self.client.record_title(record)
        updates = []
        to_append = []
        product_id: Optional[PlatformId] = None
        unchanged = 0

        for variant in desired:
            remote = existing.get(variant.sku)
            if remote is None:
                to_append.append(variant)
                continue
            if product_id is None:
                product_id = remote.product_id
            change = diff_variant(remote, variant)
            if change.price_changed or change.inventory_changed:
                updates.append(change)
            else:
                unchanged += 1

        if product_id is None and (updates or to_append):
            raise UnresolvableParentError(title)

        matched = [existing[variant.sku] for variant in desired if variant.sku in existing]
        if self.client.needs_restructure(record, matched):
            if product_id is None:
                raise UnresolvableParentError(title)
            return await self._restructure(record, product_id, desired, existing)

        if unchanged:
            self.logger.debug(
                "variants_unchanged",
                extra={"platform": self.client.platform, "title": title, "count": unchanged},
            )

        operations = []
        if updates:
            operations.append(self.client.update_variants(product_id, updates))
        if to_append:
            operations.append(self.client.add_variants(product_id, to_append))
        if not operations:
            self.logger.info(
                "sync_product_unchanged",
                extra={"platform": self.client.platform, "title": title, "remote_id": product_id},
            )
            return ProductSyncResult(title=title, action="unchanged", remote_id=product_id)

        await asyncio.gather(*operations)
        result = ProductSyncResult(
            title=title,
            action="updated",
            remote_id=product_id,
            updated_skus=[update.desired.sku for update in updates],
            appended_skus=[variant.sku for variant in to_append],
        )
        self.logger.info(
            "sync_product_updated",
            extra={
                "platform": self.client.platform,
                "title": title,
                "remote_id": product_id,
                "updated": len(result.updated_skus),
                "appended": len(result.appended_skus),
            },
        )
        return result
