"""Exceptions raised by catalog-bridge clients and the sync reconciler."""

from typing import Optional


class CatalogBridgeError(Exception):
    """Base class for errors that abort the sync of a single product."""


class ConfigurationError(CatalogBridgeError):
    """Raised when a required configuration value is missing."""


class UnresolvableParentError(CatalogBridgeError):
    """Raised when an update target has no usable remote parent id."""

    def __init__(self, product_title: str):
        self.product_title = product_title
        super().__init__(f'Could not determine parent product ID for "{product_title}"')


class RemoteOperationError(CatalogBridgeError):
    """Raised when a platform API call fails or reports errors."""

    def __init__(
        self,
        platform: str,
        operation: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        self.platform = platform
        self.operation = operation
        self.status_code = status_code
        self.body = body
        status = status_code if status_code is not None else "transport"
        super().__init__(f"{platform} {operation} failed ({status}): {body}")
