"""Platform-neutral product records shared by every adapter."""

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Tuple, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator

Platform = Literal["shopify", "woo", "ebay"]
PLATFORMS: Tuple[str, ...] = get_args(Platform)

PlatformId = Union[int, str]

# field name -> wire key
_ENTRY_WIRE_NAMES = {
    "id": "id",
    "sku": "sku",
    "product_type": "productType",
    "parent_sku": "parentSku",
}
_ENTRY_FIELDS = {
    **{wire: field for field, wire in _ENTRY_WIRE_NAMES.items()},
    **{field: field for field in _ENTRY_WIRE_NAMES},
}


class PlatformMetaEntry(BaseModel):
    """
    Identifiers and remembered data for one platform.

    The wire form is a flat JSON object. Keys that are not known fields are
    kept verbatim in ``extra`` so data written by newer versions survives.
    """
    id: Optional[PlatformId] = None
    sku: Optional[str] = None
    product_type: Optional[str] = None
    parent_sku: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        extra = data.get("extra")
        values: Dict[str, Any] = {"extra": dict(extra) if isinstance(extra, dict) else {}}
        for key, value in data.items():
            if key == "extra":
                continue
            field = _ENTRY_FIELDS.get(key)
            if field is None:
                values["extra"][key] = value
            else:
                values[field] = value
        return values

    @model_serializer(mode="plain")
    def _serialize(self) -> Dict[str, Any]:
        return self.to_wire()

    def to_wire(self) -> Dict[str, Any]:
        wire = dict(self.extra)
        for field, key in _ENTRY_WIRE_NAMES.items():
            value = getattr(self, field)
            if value is not None:
                wire[key] = value
        return wire

    def merged(self, newer: "PlatformMetaEntry") -> "PlatformMetaEntry":
        """Overlay the non-null fields and extra keys of ``newer``."""
        wire = self.to_wire()
        wire.update(newer.to_wire())
        return PlatformMetaEntry.model_validate(wire)

    def split_extra(self, *keys: str) -> Tuple["PlatformMetaEntry", Dict[str, Any]]:
        """Return a copy without ``keys`` in ``extra`` plus the removed values."""
        kept = {k: v for k, v in self.extra.items() if k not in keys}
        removed = {k: self.extra[k] for k in keys if k in self.extra}
        return self.model_copy(update={"extra": kept}), removed

    def with_extra(self, **values: Any) -> "PlatformMetaEntry":
        return self.model_copy(update={"extra": {**self.extra, **values}})


class PlatformMeta(BaseModel):
    """
    Per-platform identifiers and data remembered for a product or variant.

    Platforms outside the supported set are kept untouched in ``other``.
    """
    shopify: Optional[PlatformMetaEntry] = None
    woo: Optional[PlatformMetaEntry] = None
    ebay: Optional[PlatformMetaEntry] = None
    other: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        other = data.get("other")
        values: Dict[str, Any] = {"other": dict(other) if isinstance(other, dict) else {}}
        for key, value in data.items():
            if key == "other":
                continue
            if key in PLATFORMS:
                values[key] = value
            else:
                values["other"][key] = value
        return values

    @model_serializer(mode="plain")
    def _serialize(self) -> Dict[str, Any]:
        return self.to_wire()

    def to_wire(self) -> Dict[str, Any]:
        wire = dict(self.other)
        for platform in PLATFORMS:
            entry = getattr(self, platform)
            if entry is not None:
                wire[platform] = entry.to_wire()
        return wire

    def entry(self, platform: Platform) -> PlatformMetaEntry:
        return getattr(self, platform) or PlatformMetaEntry()

    def with_entry(self, platform: Platform, entry: PlatformMetaEntry) -> "PlatformMeta":
        return self.model_copy(update={platform: entry})

    def platform_id(self, platform: Platform) -> Optional[PlatformId]:
        entry = getattr(self, platform)
        return entry.id if entry else None

    def merge(self, newer: "PlatformMeta") -> "PlatformMeta":
        """Union ``newer`` into this meta without dropping existing platforms."""
        update: Dict[str, Any] = {"other": {**self.other, **newer.other}}
        for platform in PLATFORMS:
            theirs = getattr(newer, platform)
            if theirs is None:
                continue
            ours = getattr(self, platform)
            update[platform] = ours.merged(theirs) if ours else theirs
        return self.model_copy(update=update)


class CanonicalImage(BaseModel):
    """Product or variant image."""
    src: str
    alt: Optional[str] = None
    position: Optional[int] = None
    meta: PlatformMeta = Field(default_factory=PlatformMeta)


class CanonicalProductOption(BaseModel):
    """Option definition, e.g. Color -> [Red, Blue]."""
    name: str
    values: List[str] = Field(default_factory=list)


class VariantAttribute(BaseModel):
    name: str
    value: str


class CanonicalVariant(BaseModel):
    """A sellable variant of a canonical product."""
    canonical_id: str = Field(alias="canonicalId")
    title: str
    price: Decimal
    compare_at_price: Optional[Decimal] = Field(None, alias="compareAtPrice")
    sku: str = ""
    inventory: Optional[int] = None
    manage_stock: Optional[bool] = Field(None, alias="manageStock")
    taxable: Optional[bool] = None
    requires_shipping: Optional[bool] = Field(None, alias="requiresShipping")
    attributes: Optional[List[VariantAttribute]] = None
    image: Optional[CanonicalImage] = None
    meta: PlatformMeta = Field(default_factory=PlatformMeta)

    model_config = ConfigDict(populate_by_name=True)


class CanonicalProduct(BaseModel):
    """The platform-neutral product every adapter converts to and from."""
    id: Optional[str] = None
    title: str
    description: str = ""
    images: List[CanonicalImage] = Field(default_factory=list)
    options: Optional[List[CanonicalProductOption]] = None
    product_type: Optional[str] = Field(None, alias="productType")
    status: Optional[str] = None
    tags: Optional[List[str]] = None
    variants: List[CanonicalVariant] = Field(default_factory=list)
    meta: PlatformMeta = Field(default_factory=PlatformMeta)

    model_config = ConfigDict(populate_by_name=True)

    def option_definitions(self) -> List[CanonicalProductOption]:
        """Declared options, or options derived from variant attributes."""
        if self.options:
            return list(self.options)
        derived: Dict[str, List[str]] = {}
        for variant in self.variants:
            for attribute in variant.attributes or []:
                values = derived.setdefault(attribute.name, [])
                if attribute.value not in values:
                    values.append(attribute.value)
        return [CanonicalProductOption(name=name, values=values) for name, values in derived.items()]
