"""Client contract used by the sync reconciler, plus the shared HTTP plumbing."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, ClassVar, Dict, Generic, List, Optional, Sequence, TypeVar

import httpx

from ..config import RateLimitConfig
from ..errors import RemoteOperationError
from ..models.canonical import PlatformId
from ..rate_limiter import TokenBucketRateLimiter

T = TypeVar("T")


@dataclass(frozen=True)
class RemoteVariant:
    """A variant that already exists on the destination, found by SKU."""
    sku: str
    product_id: Optional[PlatformId]
    variant_id: Optional[PlatformId]
    price: Optional[Decimal] = None
    inventory: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DesiredVariant:
    """
    A variant as the source wants it.

    ``payload`` is the platform record for the variant (a Shopify variant, a
    Woo variation, or a whole Woo simple product).
    """
    sku: str
    price: Optional[Decimal]
    inventory: Optional[int]
    payload: Any = None


@dataclass(frozen=True)
class VariantUpdate:
    existing: RemoteVariant
    desired: DesiredVariant
    price_changed: bool
    inventory_changed: bool


def diff_variant(existing: RemoteVariant, desired: DesiredVariant) -> VariantUpdate:
    """
    Compare a remote variant against the desired state.

    A desired inventory of None means untracked and is never pushed.
    """
    price_changed = desired.price is not None and existing.price != desired.price
    inventory_changed = desired.inventory is not None and existing.inventory != desired.inventory
    return VariantUpdate(
        existing=existing,
        desired=desired,
        price_changed=price_changed,
        inventory_changed=inventory_changed,
    )


def chunked(items: Sequence[str], size: int) -> List[Sequence[str]]:
    return [items[index:index + size] for index in range(0, len(items), size)]


class CatalogClient(ABC, Generic[T]):
    """
    Everything the reconciler needs from a destination platform.

    ``T`` is the platform record type produced by the matching adapter.
    """

    platform: ClassVar[str]

    @abstractmethod
    async def get_all_products(self) -> List[T]:
        """Fetch the entire catalog, handling pagination."""

    @abstractmethod
    async def create_product(self, record: T) -> T:
        """Create a product with all of its variants."""

    @abstractmethod
    async def update_product(self, product_id: PlatformId, record: T) -> T:
        """Replace product-level fields of an existing product."""

    @abstractmethod
    async def find_variants_by_skus(self, skus: Sequence[str]) -> Dict[str, RemoteVariant]:
        """Look up existing variants for ``skus``; unknown SKUs are absent from the result."""

    @abstractmethod
    async def update_variants(self, product_id: PlatformId, updates: List[VariantUpdate]) -> None:
        """Push the changed price and/or inventory of existing variants."""

    @abstractmethod
    async def add_variants(self, product_id: PlatformId, desired: List[DesiredVariant]) -> List[Any]:
        """Append new variants to an existing product."""

    @staticmethod
    @abstractmethod
    def desired_variants(record: T) -> List[DesiredVariant]:
        """Variants carried by a record, in record order."""

    @staticmethod
    @abstractmethod
    def record_title(record: T) -> str:
        """Human-readable title used in logs and reports."""

    @staticmethod
    def needs_restructure(record: T, matched: List[RemoteVariant]) -> bool:
        """Whether the remote product holding ``matched`` has to change shape before ``record`` fits it."""
        return False

    async def restructure_product(self, product_id: PlatformId, record: T) -> T:
        """Reshape an existing product into ``record``, variants included."""
        raise NotImplementedError(f"{self.platform} products are never restructured")

    async def close(self) -> None:
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class HttpCatalogClient(CatalogClient[T]):
    """
    Base for clients that talk to a platform over HTTP.

    The ``httpx.AsyncClient`` may be injected (tests, shared pools); it is
    only closed here when this object created it.
    """

    def __init__(
        self,
        base_url: str,
        rate_limit: Optional[RateLimitConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        logger: Optional[logging.Logger] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root every request path is appended to
            rate_limit: Token bucket settings (defaults apply when omitted)
            client: Optional HTTP client, e.g. one backed by ``httpx.MockTransport``
            headers: Headers sent with every request
            params: Query parameters sent with every request
            logger: Logger for request diagnostics
            timeout: Timeout for the owned HTTP client
        """
        rate_limit = rate_limit or RateLimitConfig()
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.params = params or {}
        self.logger = logger or logging.getLogger(f"catalog_bridge.clients.{self.platform}")
        self.rate_limiter = TokenBucketRateLimiter(
            rate=rate_limit.max_requests_per_second,
            burst_size=rate_limit.burst_size,
        )

        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(timeout=timeout)
            self._owns_client = True

    async def close(self) -> None:
        """Close HTTP client."""
        if self._owns_client:
            await self.client.aclose()

    async def _request(self, method: str, path: str, operation: str, **kwargs) -> Any:
        """
        Make a rate-limited API request.

        Args:
            method: HTTP method
            path: Path relative to ``base_url``
            operation: Short name used in errors and logs
            **kwargs: Extra ``httpx`` request arguments (json, params, ...)

        Returns:
            Decoded JSON body, or None for an empty body
        """
        params = {**self.params, **kwargs.pop("params", {})}
        headers = {**self.headers, **kwargs.pop("headers", {})}

        await self.rate_limiter.acquire()
        try:
            response = await self.client.request(
                method,
                f"{self.base_url}/{path.lstrip('/')}",
                params=params,
                headers=headers,
                **kwargs,
            )
        except httpx.RequestError as exc:
            self.logger.error(
                "request_failed",
                extra={"platform": self.platform, "operation": operation, "error": str(exc)},
            )
            raise RemoteOperationError(self.platform, operation, None, str(exc)) from exc

        if response.is_error:
            self.logger.error(
                "request_failed",
                extra={
                    "platform": self.platform,
                    "operation": operation,
                    "status_code": response.status_code,
                },
            )
            raise RemoteOperationError(self.platform, operation, response.status_code, response.text)

        self.logger.debug(
            "request_completed",
            extra={"platform": self.platform, "operation": operation, "status_code": response.status_code},
        )
        if not response.content:
            return None
        return response.json()
