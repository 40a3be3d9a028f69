"""
Adapter between eBay inventory records and the canonical model.

eBay has no generic metadata field, so each variant's canonical id, title
and meta travel inside its SKU::

    <originalSku>::meta=<JSON {"canonicalId", "title", "meta"}>

Anything else eBay cannot hold (the standalone item's price, untracked
inventory, variant flags and images, product-level fields) is kept in the payload's own ``ebay`` meta
entry and removed again on read.
"""

import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..models.canonical import (
    CanonicalImage,
    CanonicalProduct,
    CanonicalProductOption,
    CanonicalVariant,
    PlatformMeta,
    VariantAttribute,
)
from ..models.ebay_models import (
    EbayAmount,
    EbayAvailability,
    EbayInventoryItem,
    EbayInventoryItemGroup,
    EbayOffer,
    EbayPricingSummary,
    EbayProductDetails,
    EbayShipToLocationAvailability,
    EbaySpecification,
    EbayVariesBy,
    parse_ebay_record,
)
from .base import (
    FLAGS_KEY,
    IMAGE_KEY,
    IMAGES_KEY,
    UNTRACKED_MARKER,
    ConversionResult,
    Converted,
    PlatformAdapter,
    dump_image,
    dump_json,
    flag_fields,
    format_decimal,
    image_overlay,
    observe,
    parse_decimal,
    replace_entry,
    restore_inventory,
    variant_flags,
)

META_SEPARATOR = "::meta="

PRICE_KEY = "price"
COMPARE_AT_PRICE_KEY = "compareAtPrice"
PRODUCT_FIELDS_KEY = "product"
_STASH_KEYS = (UNTRACKED_MARKER, PRICE_KEY, COMPARE_AT_PRICE_KEY, FLAGS_KEY, IMAGE_KEY, PRODUCT_FIELDS_KEY)

DEFAULT_VARIANT_TITLE = "Title Not Found"

EbayRecordType = Union[EbayInventoryItem, EbayInventoryItemGroup]


@dataclass(frozen=True)
class SkuPayload:
    """Decoded eBay SKU."""
    sku: str
    canonical_id: Optional[str] = None
    title: Optional[str] = None
    meta: PlatformMeta = field(default_factory=PlatformMeta)


def encode_sku(sku: str, canonical_id: str, title: str, meta: PlatformMeta) -> str:
    payload = {"canonicalId": canonical_id, "title": title, "meta": meta.to_wire()}
    return f"{sku}{META_SEPARATOR}{dump_json(payload)}"


def decode_sku(ebay_sku: str) -> SkuPayload:
    """
    Split an eBay SKU into the original SKU and its embedded payload.

    A missing or malformed payload yields the text before the separator and
    empty meta; this never raises.
    """
    sku, separator, encoded = ebay_sku.partition(META_SEPARATOR)
    if not separator:
        return SkuPayload(sku=sku)
    try:
        payload = json.loads(encoded)
    except json.JSONDecodeError:
        return SkuPayload(sku=sku)
    if not isinstance(payload, dict):
        return SkuPayload(sku=sku)

    raw_meta = payload.get("meta")
    try:
        meta = PlatformMeta.model_validate(raw_meta) if isinstance(raw_meta, dict) else PlatformMeta()
    except ValidationError:
        meta = PlatformMeta()
    canonical_id = payload.get("canonicalId")
    title = payload.get("title")
    return SkuPayload(
        sku=sku,
        canonical_id=canonical_id if isinstance(canonical_id, str) else None,
        title=title if isinstance(title, str) else None,
        meta=meta,
    )


def _aspects(variant: CanonicalVariant) -> Dict[str, List[str]]:
    return {attribute.name: [attribute.value] for attribute in variant.attributes or []}


def _attributes(aspects: Dict[str, List[str]]) -> Optional[List[VariantAttribute]]:
    attributes = [VariantAttribute(name=name, value=values[0]) for name, values in aspects.items() if values]
    return attributes or None


def _stashed_options(value: Any) -> Optional[List[CanonicalProductOption]]:
    if not isinstance(value, list):
        return None
    return [
        CanonicalProductOption(name=item["name"], values=[str(v) for v in item.get("values") or []])
        for item in value
        if isinstance(item, dict) and isinstance(item.get("name"), str)
    ] or None


def _group_key(product: CanonicalProduct) -> str:
    ebay_id = product.meta.platform_id("ebay")
    if ebay_id is not None:
        return str(ebay_id)
    return product.id or re.sub(r"\s+", "-", product.title)


class EbayAdapter(PlatformAdapter[EbayRecordType]):
    """Convert eBay inventory items and item groups to and from canonical form."""

    platform = "ebay"

    def parse_record(self, raw: Dict[str, Any]) -> EbayRecordType:
        return parse_ebay_record(raw)

    # -- read ---------------------------------------------------------------

    def from_platform(self, record: EbayRecordType) -> ConversionResult:
        if isinstance(record, EbayInventoryItemGroup):
            return Converted(self._from_group(record))
        if isinstance(record, EbayInventoryItem):
            return Converted(self._from_item(record))
        raise TypeError(f"Unhandled eBay record type: {type(record).__name__}")

    def _from_item(self, item: EbayInventoryItem) -> CanonicalProduct:
        variant, product_fields = self._variant_from_payload(
            decode_sku(item.sku),
            price=None,
            compare_at_price=None,
            quantity=item.availability.ship_to_location_availability.quantity,
            aspects=item.product.aspects,
            offer_id=None,
        )
        # A standalone item is addressed by its full SKU, which embeds the
        # payload itself, so no product id is recorded for it.
        return self._product(
            key=None,
            title=item.product.title,
            description=item.product.description,
            image_urls=item.product.image_urls,
            options=None,
            variants=[variant],
            product_fields=product_fields,
        )

    def _from_group(self, group: EbayInventoryItemGroup) -> CanonicalProduct:
        variants: List[CanonicalVariant] = []
        product_fields: Dict[str, Any] = {}
        for offer in group.offers:
            pricing = offer.pricing_summary
            variant, fields = self._variant_from_payload(
                decode_sku(offer.sku),
                price=parse_decimal(pricing.price.value),
                compare_at_price=parse_decimal(pricing.original_retail_price.value)
                if pricing.original_retail_price
                else None,
                quantity=offer.availability.ship_to_location_availability.quantity,
                aspects=offer.aspects,
                offer_id=offer.offer_id,
            )
            variants.append(variant)
            if fields and not product_fields:
                product_fields = fields

        options = None
        if group.varies_by and group.varies_by.specifications:
            options = [
                CanonicalProductOption(name=spec.name, values=list(spec.values))
                for spec in group.varies_by.specifications
            ]
        return self._product(
            key=group.inventory_item_group_key,
            title=group.title,
            description=group.description,
            image_urls=group.image_urls,
            options=options,
            variants=variants,
            product_fields=product_fields,
        )

    def _variant_from_payload(
        self,
        payload: SkuPayload,
        price: Optional[Decimal],
        compare_at_price: Optional[Decimal],
        quantity: int,
        aspects: Dict[str, List[str]],
        offer_id: Optional[str],
    ) -> Tuple[CanonicalVariant, Dict[str, Any]]:
        entry, stash = payload.meta.entry("ebay").split_extra(*_STASH_KEYS)
        meta = replace_entry(payload.meta, "ebay", entry)
        if price is None:
            price = parse_decimal(stash.get(PRICE_KEY)) or Decimal("0")
            compare_at_price = parse_decimal(stash.get(COMPARE_AT_PRICE_KEY))
        flags = stash.get(FLAGS_KEY)
        flags = flags if isinstance(flags, dict) else {}

        variant = CanonicalVariant(
            canonical_id=payload.canonical_id or self.id_factory(),
            title=payload.title or DEFAULT_VARIANT_TITLE,
            price=price,
            compare_at_price=compare_at_price,
            sku=payload.sku,
            inventory=restore_inventory(quantity, bool(stash.get(UNTRACKED_MARKER))),
            attributes=_attributes(aspects),
            image=self.load_image(stash.get(IMAGE_KEY)),
            **flag_fields({name: value for name, value in flags.items() if isinstance(value, bool)}),
            meta=observe(meta, "ebay", id=offer_id, sku=payload.sku),
        )
        product_fields = stash.get(PRODUCT_FIELDS_KEY)
        return variant, product_fields if isinstance(product_fields, dict) else {}

    def _product(
        self,
        key: Optional[str],
        title: str,
        description: str,
        image_urls: List[str],
        options: Optional[List[CanonicalProductOption]],
        variants: List[CanonicalVariant],
        product_fields: Dict[str, Any],
    ) -> CanonicalProduct:
        restored = self.load_meta(product_fields.get("meta"))
        tags = product_fields.get("tags")
        product_type = product_fields.get("productType")
        status = product_fields.get("status")
        overlays = product_fields.get(IMAGES_KEY)
        overlays = overlays if isinstance(overlays, dict) else {}
        return CanonicalProduct(
            id=key,
            title=title,
            description=description,
            images=[
                self.restore_image(CanonicalImage(src=url, position=index + 1), overlays.get(url))
                for index, url in enumerate(image_urls)
            ],
            options=options if options is not None else _stashed_options(product_fields.get("options")),
            product_type=product_type if isinstance(product_type, str) else None,
            status=status if isinstance(status, str) else None,
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else None,
            variants=variants,
            meta=observe(restored, "ebay", id=key),
        )

    # -- write --------------------------------------------------------------

    def to_platform(self, product: CanonicalProduct) -> EbayRecordType:
        if len(product.variants) == 1:
            return self._to_item(product)
        return self._to_group(product)

    def _product_fields(self, product: CanonicalProduct) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"meta": product.meta.to_wire()}
        if product.status is not None:
            fields["status"] = product.status
        if product.tags is not None:
            fields["tags"] = list(product.tags)
        if product.product_type is not None:
            fields["productType"] = product.product_type
        if product.options:
            fields["options"] = [option.model_dump() for option in product.options]
        overlays = {image.src: image_overlay(image, None, "alt", "position") for image in product.images}
        overlays = {src: overlay for src, overlay in overlays.items() if overlay}
        if overlays:
            fields[IMAGES_KEY] = overlays
        return fields

    def _payload_meta(
        self, product: CanonicalProduct, variant: CanonicalVariant, index: int, standalone: bool
    ) -> PlatformMeta:
        entry, _ = variant.meta.entry("ebay").split_extra(*_STASH_KEYS)
        stash: Dict[str, Any] = {}
        if variant.inventory is None:
            stash[UNTRACKED_MARKER] = True
        if standalone:
            # Prices live on offers, which a standalone item does not have.
            stash[PRICE_KEY] = format_decimal(variant.price)
            if variant.compare_at_price is not None:
                stash[COMPARE_AT_PRICE_KEY] = format_decimal(variant.compare_at_price)
        flags = {name: value for name, value in variant_flags(variant).items() if value is not None}
        if flags:
            stash[FLAGS_KEY] = flags
        if variant.image is not None:
            stash[IMAGE_KEY] = dump_image(variant.image)
        if index == 0:
            stash[PRODUCT_FIELDS_KEY] = self._product_fields(product)
        return replace_entry(variant.meta, "ebay", entry.with_extra(**stash))

    def _encoded_sku(self, product: CanonicalProduct, variant: CanonicalVariant, index: int, standalone: bool) -> str:
        meta = self._payload_meta(product, variant, index, standalone)
        return encode_sku(variant.sku, variant.canonical_id, variant.title, meta)

    def _availability(self, variant: CanonicalVariant) -> EbayAvailability:
        quantity = variant.inventory if variant.inventory is not None else 0
        return EbayAvailability(
            ship_to_location_availability=EbayShipToLocationAvailability(quantity=quantity)
        )

    def _to_item(self, product: CanonicalProduct) -> EbayInventoryItem:
        variant = product.variants[0]
        return EbayInventoryItem(
            sku=self._encoded_sku(product, variant, 0, standalone=True),
            product=EbayProductDetails(
                title=product.title,
                description=product.description,
                image_urls=[image.src for image in product.images],
                aspects=_aspects(variant),
            ),
            availability=self._availability(variant),
        )

    def _to_group(self, product: CanonicalProduct) -> EbayInventoryItemGroup:
        offers = []
        for index, variant in enumerate(product.variants):
            offer_id = variant.meta.platform_id("ebay")
            offers.append(
                EbayOffer(
                    sku=self._encoded_sku(product, variant, index, standalone=False),
                    offer_id=str(offer_id) if offer_id is not None else None,
                    pricing_summary=EbayPricingSummary(
                        price=EbayAmount(value=format_decimal(variant.price)),
                        original_retail_price=EbayAmount(value=format_decimal(variant.compare_at_price))
                        if variant.compare_at_price is not None
                        else None,
                    ),
                    availability=self._availability(variant),
                    aspects=_aspects(variant),
                )
            )

        declared = product.option_definitions()
        return EbayInventoryItemGroup(
            inventory_item_group_key=_group_key(product),
            title=product.title,
            description=product.description,
            image_urls=[image.src for image in product.images],
            varies_by=EbayVariesBy(
                specifications=[EbaySpecification(name=option.name, values=list(option.values)) for option in declared]
            )
            if declared
            else None,
            variant_skus=[offer.sku for offer in offers],
            offers=offers,
        )
