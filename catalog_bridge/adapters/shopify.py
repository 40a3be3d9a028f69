"""Adapter between Shopify products and the canonical model."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..models.canonical import (
    CanonicalImage,
    CanonicalProduct,
    CanonicalProductOption,
    CanonicalVariant,
    PlatformMeta,
    VariantAttribute,
)
from ..models.shopify_models import (
    ShopifyImage,
    ShopifyMetafield,
    ShopifyOption,
    ShopifyProduct,
    ShopifyVariant,
)
from .base import (
    FLAGS_KEY,
    IMAGE_KEY,
    IMAGES_KEY,
    UNSET_FLAGS_KEY,
    UNTRACKED_MARKER,
    ConversionResult,
    Converted,
    PlatformAdapter,
    dump_image,
    dump_json,
    format_decimal,
    image_overlay,
    observe,
    parse_decimal,
    replace_entry,
    restore_flags,
    restore_inventory,
    stash_flags,
)

METAFIELD_NAMESPACE = "catalog_bridge"
PRODUCT_META_KEY = "canonical_meta"
VARIANT_ID_KEY = "canonical_id"
VARIANT_META_KEY = "canonical_variant_meta"

DEFAULT_OPTION_NAME = "Title"
DEFAULT_VARIANT_TITLE = "Default Title"
MAX_OPTIONS = 3

SHOPIFY_STATUSES = ("active", "draft", "archived")

# Stashed in the shopify entry of persisted variant meta.
_VARIANT_STASH_KEYS = (UNTRACKED_MARKER, FLAGS_KEY, UNSET_FLAGS_KEY, IMAGE_KEY)


def _is_default_option(option: ShopifyOption) -> bool:
    return option.name == DEFAULT_OPTION_NAME and option.values in ([], [DEFAULT_VARIANT_TITLE])


def _metafield(fields: List[ShopifyMetafield], key: str) -> Optional[str]:
    for field in fields:
        if field.namespace == METAFIELD_NAMESPACE and field.key == key:
            return field.value
    return None


def _split_tags(tags: Optional[str]) -> Optional[List[str]]:
    if not tags:
        return None
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


class ShopifyAdapter(PlatformAdapter[ShopifyProduct]):
    """
    Convert Shopify products to and from canonical form.

    Canonical variant ids and accumulated meta are kept in metafields under
    the ``catalog_bridge`` namespace so they survive a Shopify round trip.
    """

    platform = "shopify"

    def parse_record(self, raw: Dict[str, Any]) -> ShopifyProduct:
        return ShopifyProduct.model_validate(raw)

    # -- read ---------------------------------------------------------------

    def from_platform(self, record: ShopifyProduct) -> ConversionResult:
        restored = self.load_meta(_metafield(record.metafields, PRODUCT_META_KEY))
        entry, stash = restored.entry("shopify").split_extra(IMAGES_KEY)
        restored = replace_entry(restored, "shopify", entry)
        overlays = stash.get(IMAGES_KEY)
        overlays = overlays if isinstance(overlays, dict) else {}

        ordered_options = sorted(
            enumerate(record.options),
            key=lambda pair: pair[1].position if pair[1].position is not None else pair[0] + 1,
        )
        slot_options = [option for _, option in ordered_options][:MAX_OPTIONS]

        images: List[CanonicalImage] = []
        images_by_id: Dict[str, CanonicalImage] = {}
        for index, image in enumerate(record.images):
            canonical_image = self.restore_image(self._image_from_platform(image, index), overlays.get(image.src))
            images.append(canonical_image)
            if image.id is not None:
                images_by_id[str(image.id)] = canonical_image

        variants = [
            self._variant_from_platform(variant, slot_options, images_by_id)
            for variant in record.variants
        ]
        options = [
            CanonicalProductOption(name=option.name, values=list(option.values))
            for option in slot_options
            if not _is_default_option(option)
        ]

        return Converted(
            CanonicalProduct(
                id=str(record.id) if record.id is not None else None,
                title=record.title,
                description=record.body_html or "",
                images=images,
                options=options or None,
                product_type=record.product_type or None,
                status=record.status,
                tags=_split_tags(record.tags),
                variants=variants,
                meta=observe(restored, "shopify", id=record.id),
            )
        )

    def _image_from_platform(self, image: ShopifyImage, index: int) -> CanonicalImage:
        return CanonicalImage(
            src=image.src,
            alt=image.alt,
            position=image.position if image.position is not None else index + 1,
            meta=observe(PlatformMeta(), "shopify", id=image.id),
        )

    def _variant_from_platform(
        self,
        variant: ShopifyVariant,
        slot_options: List[ShopifyOption],
        images_by_id: Dict[str, CanonicalImage],
    ) -> CanonicalVariant:
        restored = self.load_meta(_metafield(variant.metafields, VARIANT_META_KEY))
        entry, stash = restored.entry("shopify").split_extra(*_VARIANT_STASH_KEYS)
        meta = replace_entry(restored, "shopify", entry)
        inventory = restore_inventory(variant.inventory_quantity, bool(stash.get(UNTRACKED_MARKER)))
        flags = restore_flags(
            {"manageStock": variant.inventory_management is not None},
            stash,
            lambda _, value: inventory is not None and value is not False,
        )

        values = variant.option_values()
        attributes = [
            VariantAttribute(name=option.name, value=values[index])
            for index, option in enumerate(slot_options)
            if not _is_default_option(option) and values[index] is not None
        ]

        if variant.image_id is not None:
            image = images_by_id.get(str(variant.image_id))
        else:
            image = self.load_image(stash.get(IMAGE_KEY))

        return CanonicalVariant(
            canonical_id=_metafield(variant.metafields, VARIANT_ID_KEY) or self.id_factory(),
            title=variant.title or DEFAULT_VARIANT_TITLE,
            price=parse_decimal(variant.price) or Decimal("0"),
            compare_at_price=parse_decimal(variant.compare_at_price),
            sku=variant.sku or "",
            inventory=inventory,
            manage_stock=flags["manageStock"],
            taxable=variant.taxable,
            requires_shipping=variant.requires_shipping,
            attributes=attributes or None,
            image=image,
            meta=observe(meta, "shopify", id=variant.id),
        )

    # -- write --------------------------------------------------------------

    def to_platform(self, product: CanonicalProduct) -> ShopifyProduct:
        declared = product.option_definitions()[:MAX_OPTIONS]
        status = product.status if product.status in SHOPIFY_STATUSES else None
        if product.status and status is None:
            status = "draft"

        return ShopifyProduct(
            id=product.meta.platform_id("shopify"),
            title=product.title,
            body_html=product.description,
            product_type=product.product_type,
            status=status,
            tags=", ".join(product.tags) if product.tags else None,
            images=[
                ShopifyImage(
                    id=image.meta.platform_id("shopify"),
                    src=image.src,
                    alt=image.alt,
                    position=image.position if image.position is not None else index + 1,
                )
                for index, image in enumerate(product.images)
            ],
            options=[
                ShopifyOption(name=option.name, position=index + 1, values=list(option.values))
                for index, option in enumerate(declared)
            ],
            variants=[self._variant_to_platform(variant, declared) for variant in product.variants],
            metafields=[
                ShopifyMetafield(
                    namespace=METAFIELD_NAMESPACE,
                    key=PRODUCT_META_KEY,
                    type="json",
                    value=dump_json(self._product_meta(product).to_wire()),
                )
            ],
        )

    def _product_meta(self, product: CanonicalProduct) -> PlatformMeta:
        """Product meta to persist, with image meta of other platforms stashed by src."""
        overlays = {}
        for image in product.images:
            overlay = image_overlay(image, "shopify")
            if overlay:
                overlays[image.src] = overlay
        entry, _ = product.meta.entry("shopify").split_extra(IMAGES_KEY)
        if overlays:
            entry = entry.with_extra(**{IMAGES_KEY: overlays})
        return replace_entry(product.meta, "shopify", entry)

    def _option_slots(
        self, declared: List[CanonicalProductOption], variant: CanonicalVariant
    ) -> List[Optional[str]]:
        """Fill option1..option3 by matching attribute names to declared options."""
        if not declared:
            # No option axes at all: Shopify keys the variant by its title.
            slots: List[Optional[str]] = [variant.title]
        else:
            values = {attribute.name: attribute.value for attribute in variant.attributes or []}
            slots = [
                values.get(option.name) or (option.values[0] if option.values else None)
                for option in declared
            ]
        return (slots + [None] * MAX_OPTIONS)[:MAX_OPTIONS]

    def _variant_to_platform(
        self, variant: CanonicalVariant, declared: List[CanonicalProductOption]
    ) -> ShopifyVariant:
        tracked = variant.inventory is not None
        manage = tracked and (variant.manage_stock is not False)
        image_id = variant.image.meta.platform_id("shopify") if variant.image else None

        entry, _ = variant.meta.entry("shopify").split_extra(*_VARIANT_STASH_KEYS)
        if not tracked:
            entry = entry.with_extra(**{UNTRACKED_MARKER: True})
        entry = entry.with_extra(**stash_flags({"manageStock": variant.manage_stock}, {"manageStock": manage}))
        if variant.image is not None and image_id is None:
            entry = entry.with_extra(**{IMAGE_KEY: dump_image(variant.image)})
        persisted = replace_entry(variant.meta, "shopify", entry)
        option1, option2, option3 = self._option_slots(declared, variant)

        return ShopifyVariant(
            id=variant.meta.platform_id("shopify"),
            title=variant.title,
            price=format_decimal(variant.price),
            compare_at_price=format_decimal(variant.compare_at_price),
            sku=variant.sku,
            inventory_quantity=variant.inventory if tracked else 0,
            inventory_management="shopify" if manage else None,
            inventory_policy="deny" if manage else None,
            taxable=variant.taxable,
            requires_shipping=variant.requires_shipping,
            option1=option1,
            option2=option2,
            option3=option3,
            image_id=image_id,
            metafields=[
                ShopifyMetafield(
                    namespace=METAFIELD_NAMESPACE,
                    key=VARIANT_ID_KEY,
                    type="single_line_text_field",
                    value=variant.canonical_id,
                ),
                ShopifyMetafield(
                    namespace=METAFIELD_NAMESPACE,
                    key=VARIANT_META_KEY,
                    type="json",
                    value=dump_json(persisted.to_wire()),
                ),
            ],
        )
