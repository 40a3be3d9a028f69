"""Webhook relay: Shopify product events synced to the other storefronts."""

import base64
import hashlib
import hmac
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from pydantic import ValidationError

from .adapters import PlatformAdapter, ShopifyAdapter, Skipped, get_adapter
from .clients import CatalogClient, build_client
from .config import BridgeConfig
from .models.canonical import CanonicalProduct
from .reconciler import SyncReconciler

SYNC_TOPICS = ("products/create", "products/update")


class WebhookRelay:
    """
    Relay Shopify product webhooks to destination platforms.

    Supported topics:
    - products/create
    - products/update

    Each event is converted to canonical form, then to every target
    platform, and synced through that target's reconciler.
    """

    def __init__(
        self,
        targets: Dict[str, SyncReconciler],
        webhook_secret: Optional[str] = None,
        source: Optional[ShopifyAdapter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize webhook relay.

        Args:
            targets: Reconciler per destination platform name
            webhook_secret: Secret for webhook verification
            source: Adapter for incoming Shopify payloads
            logger: Logger for relay events
        """
        self.targets = targets
        self.webhook_secret = webhook_secret
        self.logger = logger or logging.getLogger(__name__)
        self.source = source or ShopifyAdapter(logger=self.logger)
        self.target_adapters: Dict[str, PlatformAdapter] = {
            name: get_adapter(name, logger=self.logger) for name in targets
        }
        self._handlers: Dict[str, list] = {}

    def verify_webhook(self, data: bytes, hmac_header: str) -> bool:
        """
        Verify Shopify webhook signature.

        Args:
            data: Raw request body
            hmac_header: Base64 HMAC-SHA256 header from Shopify

        Returns:
            True if signature is valid
        """
        if not self.webhook_secret:
            return True  # Skip verification if no secret configured

        digest = hmac.new(self.webhook_secret.encode("utf-8"), data, hashlib.sha256).digest()
        computed_hmac = base64.b64encode(digest).decode("ascii")
        return hmac.compare_digest(computed_hmac, hmac_header)

    def on(self, topic: str):
        """
        Decorator to register handlers called with the canonical product
        after an event has been synced.

        Example:
            @relay.on('products/update')
            async def audit(product):
                print(f"Product synced: {product.title}")
        """
        def decorator(func: Callable):
            self._handlers.setdefault(topic, []).append(func)
            return func
        return decorator

    async def handle_webhook(self, topic: str, data: Dict[str, Any]) -> Dict[str, Dict[str, int]]:
        """
        Process a webhook event.

        Returns:
            Sync outcome counts per target platform
        """
        if topic not in SYNC_TOPICS:
            self.logger.info("webhook_ignored", extra={"topic": topic})
            return {}

        result = self.source.from_platform(self.source.parse_record(data))
        if isinstance(result, Skipped):
            return {}
        product: CanonicalProduct = result.value

        summary = {}
        for name, reconciler in self.targets.items():
            record = self.target_adapters[name].to_platform(product)
            report = await reconciler.sync([record])
            summary[name] = report.counts()
        self.logger.info(
            "webhook_relayed",
            extra={"topic": topic, "title": product.title, "targets": sorted(summary)},
        )

        for handler in self._handlers.get(topic, []):
            await handler(product)
        return summary

    def create_fastapi_app(self, lifespan=None) -> FastAPI:
        """
        Create a FastAPI app with webhook endpoint.

        Returns:
            FastAPI application ready to receive webhooks
        """
        app = FastAPI(title="catalog-bridge webhook relay", lifespan=lifespan)

        @app.post("/webhooks/shopify")
        async def shopify_webhook(request: Request):
            """Endpoint to receive Shopify webhooks."""
            hmac_header = request.headers.get("X-Shopify-Hmac-Sha256", "")
            topic = request.headers.get("X-Shopify-Topic", "")
            body = await request.body()

            if not self.verify_webhook(body, hmac_header):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid webhook signature"
                )

            try:
                data = json.loads(body)
            except json.JSONDecodeError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid JSON payload"
                )

            try:
                summary = await self.handle_webhook(topic, data)
            except ValidationError as exc:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"Invalid product payload: {exc.error_count()} error(s)"
                )

            return {"status": "success", "synced": summary}

        @app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "targets": sorted(self.targets)}

        return app


def create_webhook_app(
    config: BridgeConfig,
    clients: Optional[Dict[str, CatalogClient]] = None,
    logger: Optional[logging.Logger] = None,
) -> FastAPI:
    """
    Convenience function to create the relay app from configuration.

    Args:
        config: Bridge configuration; ``webhook_targets`` selects destinations
        clients: Optional pre-built clients per target (sandbox, tests)
        logger: Logger shared by the relay and reconcilers

    Example:
        app = create_webhook_app(config)

        # Run with uvicorn:
        # uvicorn app:app --host 0.0.0.0 --port 8000
    """
    clients = dict(clients or {})
    for target in config.webhook_targets:
        if target not in clients:
            clients[target] = build_client(target, config, logger=logger)

    relay = WebhookRelay(
        targets={
            target: SyncReconciler(clients[target], config.sync, logger=logger)
            for target in config.webhook_targets
        },
        webhook_secret=config.shopify.webhook_secret if config.shopify else None,
        logger=logger,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        for client in clients.values():
            await client.close()

    return relay.create_fastapi_app(lifespan=lifespan)
