"""Configuration management for catalog-bridge."""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class RateLimitConfig(BaseModel):
    """Rate limiting configuration."""
    max_requests_per_second: float = Field(2.0, gt=0, description="Maximum API requests per second")
    burst_size: int = Field(10, gt=0, description="Maximum burst size for rate limiter")


class SyncConfig(BaseModel):
    """Sync reconciler configuration."""
    page_size: int = Field(50, gt=0, le=250, description="Products fetched per page when listing a catalog")
    lookup_batch_size: int = Field(50, gt=0, description="SKUs per remote lookup request")
    isolate_failures: bool = Field(
        True,
        description="Record a failed product and keep syncing the rest instead of aborting the batch",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field("INFO", description="Root log level")
    file: Optional[str] = Field(None, description="Log file path (stderr when omitted)")


class ShopifyConfig(BaseModel):
    """Shopify API configuration."""
    shop_domain: str = Field(..., description="Shopify shop domain (e.g., 'mystore.myshopify.com')")
    access_token: str = Field(..., description="Shopify Admin API access token")
    api_version: str = Field("2024-07", description="Shopify API version")
    location_id: Optional[str] = Field(None, description="Location used for inventory updates")
    webhook_secret: Optional[str] = Field(None, description="Webhook verification secret")


class WooConfig(BaseModel):
    """WooCommerce REST API configuration."""
    store_url: str = Field(..., description="Base URL of the WordPress site (e.g., 'https://example.com')")
    consumer_key: str = Field(..., description="WooCommerce REST consumer key")
    consumer_secret: str = Field(..., description="WooCommerce REST consumer secret")
    api_version: str = Field("v3", description="WooCommerce REST API version")

    @field_validator("store_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class BridgeConfig(BaseModel):
    """Main configuration for catalog-bridge."""
    shopify: Optional[ShopifyConfig] = None
    woo: Optional[WooConfig] = None
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    webhook_targets: List[Literal["shopify", "woo"]] = Field(
        default_factory=list,
        description="Platforms that Shopify webhook events are synced to",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "shopify": {
                    "shop_domain": "mystore.myshopify.com",
                    "access_token": "shpat_xxxxx",
                    "api_version": "2024-07",
                    "location_id": "123456789",
                },
                "woo": {
                    "store_url": "https://example.com",
                    "consumer_key": "ck_xxxxx",
                    "consumer_secret": "cs_xxxxx",
                },
                "rate_limit": {
                    "max_requests_per_second": 2.0,
                    "burst_size": 10,
                },
                "sync": {
                    "page_size": 50,
                    "lookup_batch_size": 50,
                    "isolate_failures": True,
                },
                "logging": {"level": "INFO"},
                "webhook_targets": ["woo"],
            }
        }
    )
