"""Pydantic models for eBay Inventory API records."""

from typing import Any, Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter


class EbayAmount(BaseModel):
    value: str
    currency: str = "USD"


class EbayPricingSummary(BaseModel):
    price: EbayAmount
    original_retail_price: Optional[EbayAmount] = Field(None, alias="originalRetailPrice")

    model_config = ConfigDict(populate_by_name=True)


class EbayShipToLocationAvailability(BaseModel):
    quantity: int = 0


class EbayAvailability(BaseModel):
    ship_to_location_availability: EbayShipToLocationAvailability = Field(
        default_factory=EbayShipToLocationAvailability,
        alias="shipToLocationAvailability",
    )

    model_config = ConfigDict(populate_by_name=True)


class EbayProductDetails(BaseModel):
    """Catalog details of a standalone inventory item."""
    title: str
    description: str = ""
    image_urls: List[str] = Field(default_factory=list, alias="imageUrls")
    aspects: Dict[str, List[str]] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class EbayOffer(BaseModel):
    """Offer for one member of an inventory item group."""
    sku: str
    offer_id: Optional[str] = Field(None, alias="offerId")
    pricing_summary: EbayPricingSummary = Field(alias="pricingSummary")
    availability: EbayAvailability = Field(default_factory=EbayAvailability)
    aspects: Dict[str, List[str]] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class EbaySpecification(BaseModel):
    name: str
    values: List[str] = Field(default_factory=list)


class EbayVariesBy(BaseModel):
    aspects_image_varies_by: List[str] = Field(default_factory=list, alias="aspectsImageVariesBy")
    specifications: List[EbaySpecification] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class EbayInventoryItem(BaseModel):
    """A single-variant listing: one inventory item, no offer."""
    kind: Literal["item"] = Field("item", exclude=True)
    sku: str
    condition: Literal["NEW"] = "NEW"
    product: EbayProductDetails
    availability: EbayAvailability = Field(default_factory=EbayAvailability)

    model_config = ConfigDict(populate_by_name=True)


class EbayInventoryItemGroup(BaseModel):
    """A multi-variant listing: item group plus one offer per variant."""
    kind: Literal["group"] = Field("group", exclude=True)
    inventory_item_group_key: str = Field(alias="inventoryItemGroupKey")
    title: str
    description: str = ""
    image_urls: List[str] = Field(default_factory=list, alias="imageUrls")
    aspects: Dict[str, List[str]] = Field(default_factory=dict)
    varies_by: Optional[EbayVariesBy] = Field(None, alias="variesBy")
    variant_skus: List[str] = Field(default_factory=list, alias="variantSKUs")
    offers: List[EbayOffer] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


def _record_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "group" if "inventoryItemGroupKey" in value or "inventory_item_group_key" in value else "item"
    return getattr(value, "kind", "item")


EbayRecord = Annotated[
    Union[
        Annotated[EbayInventoryItem, Tag("item")],
        Annotated[EbayInventoryItemGroup, Tag("group")],
    ],
    Discriminator(_record_kind),
]

_ebay_record_adapter = TypeAdapter(EbayRecord)


def parse_ebay_record(raw: Dict[str, Any]) -> Union[EbayInventoryItem, EbayInventoryItemGroup]:
    """Tag a raw eBay payload; only item groups carry a group key."""
    return _ebay_record_adapter.validate_python(raw)
