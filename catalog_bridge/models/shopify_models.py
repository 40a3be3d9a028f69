"""Pydantic models for Shopify Admin API product payloads."""

from typing import Optional, List, Union
from pydantic import BaseModel, Field, ConfigDict

ShopifyId = Union[int, str]


class ShopifyMetafield(BaseModel):
    """Shopify metafield attached to a product or variant."""
    id: Optional[ShopifyId] = None
    namespace: str
    key: str
    value: str
    type: str = "json"


class ShopifyImage(BaseModel):
    """Shopify product image."""
    id: Optional[ShopifyId] = None
    src: str
    alt: Optional[str] = None
    position: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class ShopifyOption(BaseModel):
    """Product-level option definition (at most three per product)."""
    name: str
    position: Optional[int] = None
    values: List[str] = Field(default_factory=list)


class ShopifyVariant(BaseModel):
    """Shopify product variant."""
    id: Optional[ShopifyId] = None
    title: str = ""
    price: str = "0"
    compare_at_price: Optional[str] = None
    sku: Optional[str] = None
    inventory_quantity: Optional[int] = None
    inventory_management: Optional[str] = None
    inventory_policy: Optional[str] = None
    inventory_item_id: Optional[ShopifyId] = None
    taxable: Optional[bool] = None
    requires_shipping: Optional[bool] = None
    option1: Optional[str] = None
    option2: Optional[str] = None
    option3: Optional[str] = None
    image_id: Optional[ShopifyId] = None
    metafields: List[ShopifyMetafield] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def option_values(self) -> List[Optional[str]]:
        return [self.option1, self.option2, self.option3]


class ShopifyProduct(BaseModel):
    """Shopify product data model."""
    id: Optional[ShopifyId] = None
    title: str
    body_html: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[str] = None
    handle: Optional[str] = None
    images: List[ShopifyImage] = Field(default_factory=list)
    options: List[ShopifyOption] = Field(default_factory=list)
    variants: List[ShopifyVariant] = Field(default_factory=list)
    metafields: List[ShopifyMetafield] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)
