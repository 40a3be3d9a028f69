"""Pydantic models for WooCommerce REST API (wc/v3) product payloads."""

from typing import Any, Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter


class WooMetaData(BaseModel):
    """Entry of the generic ``meta_data`` list."""
    id: Optional[int] = None
    key: str
    value: Any = None


class WooImage(BaseModel):
    id: Optional[int] = None
    src: str
    name: Optional[str] = None
    alt: Optional[str] = ""


class WooTerm(BaseModel):
    """Category or tag reference."""
    id: Optional[int] = None
    name: str
    slug: Optional[str] = None


class WooAttribute(BaseModel):
    """Product-level attribute; ``variation`` marks it as a variation axis."""
    id: int = 0
    name: str
    position: Optional[int] = None
    visible: bool = True
    variation: bool = False
    options: List[str] = Field(default_factory=list)


class WooVariationAttribute(BaseModel):
    id: int = 0
    name: str
    option: str


class WooVariation(BaseModel):
    """A variation of a variable product."""
    id: Optional[int] = None
    sku: str = ""
    price: Optional[str] = None
    regular_price: str = ""
    sale_price: str = ""
    manage_stock: bool = False
    stock_quantity: Optional[int] = None
    stock_status: str = "instock"
    virtual: bool = False
    tax_status: str = "taxable"
    attributes: List[WooVariationAttribute] = Field(default_factory=list)
    image: Optional[WooImage] = None
    meta_data: List[WooMetaData] = Field(default_factory=list)


class _WooProductBase(BaseModel):
    id: Optional[int] = None
    name: str
    slug: Optional[str] = None
    sku: str = ""
    status: str = "draft"
    description: str = ""
    short_description: str = ""
    virtual: bool = False
    tax_status: str = "taxable"
    images: List[WooImage] = Field(default_factory=list)
    categories: List[WooTerm] = Field(default_factory=list)
    tags: List[WooTerm] = Field(default_factory=list)
    attributes: List[WooAttribute] = Field(default_factory=list)
    meta_data: List[WooMetaData] = Field(default_factory=list)


class WooSimpleProduct(_WooProductBase):
    """A product whose single variant is inlined on the product."""
    type: Literal["simple"] = "simple"
    price: Optional[str] = None
    regular_price: str = ""
    sale_price: str = ""
    manage_stock: bool = False
    stock_quantity: Optional[int] = None
    stock_status: str = "instock"


class WooVariableProduct(_WooProductBase):
    """A parent product plus its list of variations."""
    type: Literal["variable"] = "variable"
    variations: List[WooVariation] = Field(default_factory=list)


class WooUnsupportedProduct(_WooProductBase):
    """Grouped and external products have no coherent variant set."""
    type: Literal["grouped", "external"]


WooProduct = Annotated[
    Union[WooSimpleProduct, WooVariableProduct, WooUnsupportedProduct],
    Field(discriminator="type"),
]

_woo_product_adapter = TypeAdapter(WooProduct)


def parse_woo_product(raw: Dict[str, Any]) -> Union[WooSimpleProduct, WooVariableProduct, WooUnsupportedProduct]:
    """
    Parse a raw product payload into its tagged record type.

    Variable products must already carry full variation objects rather than
    the bare id list the products endpoint returns.
    """
    return _woo_product_adapter.validate_python(raw)
