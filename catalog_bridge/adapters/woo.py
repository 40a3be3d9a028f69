"""Adapter between WooCommerce products and the canonical model."""

from decimal import Decimal
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple, Union
from urllib.parse import urlparse

from ..models.canonical import (
    CanonicalImage,
    CanonicalProduct,
    CanonicalProductOption,
    CanonicalVariant,
    PlatformId,
    PlatformMeta,
    VariantAttribute,
)
from ..models.woo_models import (
    WooAttribute,
    WooImage,
    WooMetaData,
    WooSimpleProduct,
    WooTerm,
    WooUnsupportedProduct,
    WooVariableProduct,
    WooVariation,
    WooVariationAttribute,
    parse_woo_product,
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
    flag_fields,
    format_decimal,
    image_overlay,
    observe,
    parse_decimal,
    replace_entry,
    restore_flags,
    stash_flags,
    variant_flags,
)

# Wire-level meta_data keys shared with every other consumer of the store.
CANONICAL_META_KEY = "_canonicalMeta"
CANONICAL_ID_KEY = "_canonicalId"
CANONICAL_VARIANT_META_KEY = "_canonicalVariantMeta"

UNMANAGED_STOCK_KEY = "unmanagedStock"
SHORT_DESCRIPTION_KEY = "shortDescription"
TITLE_KEY = "title"
ATTRIBUTES_KEY = "attributes"
SYNTHETIC_OPTION_KEY = "syntheticOption"
UNSET_STATUS_KEY = "unsetStatus"

DEFAULT_VARIANT_TITLE = "Default Title"
DEFAULT_ATTRIBUTE_NAME = "Option"

_STATUS_TO_WOO = {"active": "publish", "archived": "private"}
_STATUS_FROM_WOO = {"publish": "active", "private": "archived"}

# Stashed in the woo entry of persisted product and variant meta.
_PRODUCT_STASH_KEYS = (IMAGES_KEY, SYNTHETIC_OPTION_KEY, UNSET_STATUS_KEY)
_VARIANT_STASH_KEYS = (
    UNMANAGED_STOCK_KEY,
    UNTRACKED_MARKER,
    FLAGS_KEY,
    UNSET_FLAGS_KEY,
    TITLE_KEY,
    ATTRIBUTES_KEY,
    IMAGE_KEY,
)

WooRecord = Union[WooSimpleProduct, WooVariableProduct, WooUnsupportedProduct]
Representation = Literal["simple", "variable"]


def infer_inventory(stock_quantity: Optional[int], stock_status: str) -> Optional[int]:
    """
    Canonical inventory for a Woo stock reading.

    An unmanaged quantity that is in stock counts as one unit; an unmanaged
    quantity in any other state is untracked.
    """
    if stock_quantity is not None:
        return stock_quantity
    return 1 if stock_status == "instock" else None


def _meta_value(entries: List[WooMetaData], key: str) -> Any:
    for entry in entries:
        if entry.key == key:
            return entry.value
    return None


def _int_id(value: Optional[PlatformId]) -> Optional[int]:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _image_name(src: str) -> str:
    return PurePosixPath(urlparse(src).path).name


def _prices(regular: str, sale: str, active: Optional[str]) -> Tuple[Decimal, Optional[Decimal]]:
    regular_price = parse_decimal(regular)
    sale_price = parse_decimal(sale)
    if sale_price is not None:
        return sale_price, regular_price
    if regular_price is not None:
        return regular_price, None
    return parse_decimal(active) or Decimal("0"), None


def _price_fields(variant: CanonicalVariant) -> Dict[str, str]:
    if variant.compare_at_price is not None:
        return {
            "regular_price": format_decimal(variant.compare_at_price),
            "sale_price": format_decimal(variant.price),
        }
    return {"regular_price": format_decimal(variant.price), "sale_price": ""}


def _written_flag(name: str, value: Optional[bool], inventory: Optional[int]) -> bool:
    """What Woo stores for a canonical variant flag."""
    if name == "manageStock":
        return inventory is not None and value is not False
    return value is not False


def _shipping_fields(variant: Optional[CanonicalVariant]) -> Dict[str, Any]:
    taxable = _written_flag("taxable", variant.taxable if variant else None, None)
    requires_shipping = _written_flag("requiresShipping", variant.requires_shipping if variant else None, None)
    return {"virtual": not requires_shipping, "tax_status": "taxable" if taxable else "none"}


def _derived_title(options: Iterable[str]) -> str:
    return " / ".join(options) or DEFAULT_VARIANT_TITLE


def _without_attribute(variant: CanonicalVariant, name: str) -> CanonicalVariant:
    kept = [attribute for attribute in variant.attributes or [] if attribute.name != name]
    return variant.model_copy(update={"attributes": kept or None})


def _stashed_attributes(value: Any) -> Optional[List[VariantAttribute]]:
    if not isinstance(value, list):
        return None
    return [
        VariantAttribute(name=item["name"], value=item["value"])
        for item in value
        if isinstance(item, dict) and isinstance(item.get("name"), str) and isinstance(item.get("value"), str)
    ] or None


class WooAdapter(PlatformAdapter[WooRecord]):
    """
    Convert WooCommerce products to and from canonical form.

    A canonical product is written either as a simple product or as a
    variable product with variations. The product type seen on read is kept
    in ``meta.woo.productType`` so a variable product that is down to one
    variant stays variable.
    """

    platform = "woo"

    def parse_record(self, raw: Dict[str, Any]) -> WooRecord:
        return parse_woo_product(raw)

    # -- read ---------------------------------------------------------------

    def from_platform(self, record: WooRecord) -> ConversionResult:
        if isinstance(record, WooUnsupportedProduct):
            return self.skip(f"unsupported product type '{record.type}'", record.id, record.name)

        restored = self.load_meta(_meta_value(record.meta_data, CANONICAL_META_KEY))
        entry, stash = restored.entry("woo").split_extra(*_PRODUCT_STASH_KEYS)
        restored = replace_entry(restored, "woo", entry)

        if isinstance(record, WooSimpleProduct):
            variants = [self._simple_variant(record)]
            option_attributes = record.attributes
        elif isinstance(record, WooVariableProduct):
            variants = [self._variation_to_variant(record, variation) for variation in record.variations]
            option_attributes = [attribute for attribute in record.attributes if attribute.variation]
        else:
            raise TypeError(f"Unhandled WooCommerce record type: {type(record).__name__}")

        is_variable = isinstance(record, WooVariableProduct)
        synthetic = stash.get(SYNTHETIC_OPTION_KEY)
        if is_variable and isinstance(synthetic, str):
            option_attributes = [attribute for attribute in option_attributes if attribute.name != synthetic]
            variants = [_without_attribute(variant, synthetic) for variant in variants]

        status: Optional[str] = _STATUS_FROM_WOO.get(record.status, "draft")
        if stash.get(UNSET_STATUS_KEY) and record.status == "draft":
            status = None

        meta = observe(
            restored,
            "woo",
            id=record.id,
            productType=record.type,
            parentSku=record.sku if is_variable and record.sku else None,
            **{SHORT_DESCRIPTION_KEY: record.short_description or None},
        )
        overlays = stash.get(IMAGES_KEY)
        overlays = overlays if isinstance(overlays, dict) else {}

        return Converted(
            CanonicalProduct(
                id=str(record.id) if record.id is not None else None,
                title=record.name,
                description=record.description,
                images=[
                    self.restore_image(
                        CanonicalImage(
                            src=image.src,
                            alt=image.alt or None,
                            position=index + 1,
                            meta=observe(PlatformMeta(), "woo", id=image.id),
                        ),
                        overlays.get(image.src),
                    )
                    for index, image in enumerate(record.images)
                ],
                options=[
                    CanonicalProductOption(name=attribute.name, values=list(attribute.options))
                    for attribute in option_attributes
                ] or None,
                product_type=record.categories[0].name if record.categories else None,
                status=status,
                tags=[tag.name for tag in record.tags] or None,
                variants=variants,
                meta=meta,
            )
        )

    def _restore_variant_meta(self, entries: List[WooMetaData]) -> Tuple[PlatformMeta, Dict[str, Any]]:
        """Load persisted variant meta, separating what was stashed beside it."""
        restored = self.load_meta(_meta_value(entries, CANONICAL_VARIANT_META_KEY))
        entry, stash = restored.entry("woo").split_extra(*_VARIANT_STASH_KEYS)
        return replace_entry(restored, "woo", entry), stash

    def _canonical_id(self, entries: List[WooMetaData]) -> str:
        value = _meta_value(entries, CANONICAL_ID_KEY)
        return str(value) if value else self.id_factory()

    def _inventory(self, stock_quantity: Optional[int], stock_status: str, stash: Dict[str, Any]) -> Optional[int]:
        if stock_quantity is None and stash.get(UNTRACKED_MARKER):
            return None
        if stock_quantity is None and UNMANAGED_STOCK_KEY in stash:
            remembered = stash[UNMANAGED_STOCK_KEY]
            if isinstance(remembered, int) and (remembered > 0) == (stock_status == "instock"):
                return remembered
        return infer_inventory(stock_quantity, stock_status)

    def _flags(
        self, manage_stock: bool, tax_status: str, virtual: bool, inventory: Optional[int], stash: Dict[str, Any]
    ) -> Dict[str, Optional[bool]]:
        native = {"manageStock": manage_stock, "taxable": tax_status == "taxable", "requiresShipping": not virtual}
        restored = restore_flags(native, stash, lambda name, value: _written_flag(name, value, inventory))
        return flag_fields(restored)

    def _simple_variant(self, record: WooSimpleProduct) -> CanonicalVariant:
        meta, stash = self._restore_variant_meta(record.meta_data)
        price, compare_at_price = _prices(record.regular_price, record.sale_price, record.price)
        inventory = self._inventory(record.stock_quantity, record.stock_status, stash)
        title = stash.get(TITLE_KEY)
        return CanonicalVariant(
            canonical_id=self._canonical_id(record.meta_data),
            title=title if isinstance(title, str) else DEFAULT_VARIANT_TITLE,
            price=price,
            compare_at_price=compare_at_price,
            sku=record.sku,
            inventory=inventory,
            **self._flags(record.manage_stock, record.tax_status, record.virtual, inventory, stash),
            attributes=_stashed_attributes(stash.get(ATTRIBUTES_KEY)),
            image=self.load_image(stash.get(IMAGE_KEY)),
            meta=observe(meta, "woo", id=record.id),
        )

    def _variation_to_variant(self, parent: WooVariableProduct, variation: WooVariation) -> CanonicalVariant:
        meta, stash = self._restore_variant_meta(variation.meta_data)
        price, compare_at_price = _prices(variation.regular_price, variation.sale_price, variation.price)
        inventory = self._inventory(variation.stock_quantity, variation.stock_status, stash)
        image = None
        if variation.image is not None:
            image = CanonicalImage(
                src=variation.image.src,
                alt=variation.image.alt or None,
                meta=observe(PlatformMeta(), "woo", id=variation.image.id),
            )
            overlay = stash.get(IMAGE_KEY)
            if isinstance(overlay, dict) and overlay.get("src") == image.src:
                image = self.restore_image(image, overlay)
        tax_status = parent.tax_status if variation.tax_status == "parent" else variation.tax_status
        title = stash.get(TITLE_KEY)
        if not isinstance(title, str):
            title = _derived_title(attribute.option for attribute in variation.attributes)
        return CanonicalVariant(
            canonical_id=self._canonical_id(variation.meta_data),
            title=title,
            price=price,
            compare_at_price=compare_at_price,
            sku=variation.sku,
            inventory=inventory,
            **self._flags(variation.manage_stock, tax_status, variation.virtual, inventory, stash),
            attributes=[
                VariantAttribute(name=attribute.name, value=attribute.option)
                for attribute in variation.attributes
            ] or None,
            image=image,
            meta=observe(meta, "woo", id=variation.id),
        )

    # -- write --------------------------------------------------------------

    def choose_representation(self, product: CanonicalProduct) -> Representation:
        """Simple only for a single variant never seen as a variable product."""
        must_be_variable = product.meta.entry("woo").product_type == "variable"
        if len(product.variants) == 1 and not must_be_variable:
            return "simple"
        return "variable"

    def to_platform(self, product: CanonicalProduct) -> WooRecord:
        if self.choose_representation(product) == "simple":
            return self._to_simple(product)
        return self._to_variable(product)

    def _common_fields(self, product: CanonicalProduct) -> Dict[str, Any]:
        first = product.variants[0] if product.variants else None
        woo_entry = product.meta.entry("woo")

        return {
            "id": _int_id(woo_entry.id),
            "name": product.title,
            "description": product.description,
            "short_description": woo_entry.extra.get(SHORT_DESCRIPTION_KEY) or "",
            "status": _STATUS_TO_WOO.get(product.status or "", "draft"),
            **_shipping_fields(first),
            "images": [
                WooImage(
                    id=_int_id(image.meta.platform_id("woo")),
                    src=image.src,
                    name=_image_name(image.src),
                    alt=image.alt or "",
                )
                for image in product.images
            ],
            "categories": [WooTerm(name=product.product_type)] if product.product_type else [],
            "tags": [WooTerm(name=tag) for tag in product.tags or []],
        }

    def _product_meta(self, product: CanonicalProduct, synthetic: Optional[str] = None) -> PlatformMeta:
        """Product meta to persist, with what Woo cannot hold stashed in the woo entry."""
        stash: Dict[str, Any] = {}
        overlays = {}
        for image in product.images:
            overlay = image_overlay(image, "woo", "position")
            if overlay:
                overlays[image.src] = overlay
        if overlays:
            stash[IMAGES_KEY] = overlays
        if synthetic:
            stash[SYNTHETIC_OPTION_KEY] = synthetic
        if product.status is None:
            stash[UNSET_STATUS_KEY] = True
        entry, _ = product.meta.entry("woo").split_extra(*_PRODUCT_STASH_KEYS)
        return replace_entry(product.meta, "woo", entry.with_extra(**stash))

    def _stock_fields(self, variant: CanonicalVariant) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Stock fields for a variant plus the values to stash beside it."""
        manage = _written_flag("manageStock", variant.manage_stock, variant.inventory)
        stash: Dict[str, Any] = {}
        if variant.inventory is None:
            stash[UNTRACKED_MARKER] = True
        elif not manage:
            # Woo drops unmanaged quantities; remember what was written.
            stash[UNMANAGED_STOCK_KEY] = variant.inventory
        written = {name: _written_flag(name, value, variant.inventory) for name, value in variant_flags(variant).items()}
        stash.update(stash_flags(variant_flags(variant), written))
        fields = {
            "manage_stock": manage,
            "stock_quantity": variant.inventory if manage else None,
            "stock_status": "outofstock" if variant.inventory == 0 else "instock",
        }
        return fields, stash

    def _variant_meta_data(
        self, variant: CanonicalVariant, stash: Dict[str, Any], derived_title: str
    ) -> List[WooMetaData]:
        if variant.title != derived_title:
            stash = {**stash, TITLE_KEY: variant.title}
        entry, _ = variant.meta.entry("woo").split_extra(*_VARIANT_STASH_KEYS)
        persisted = replace_entry(variant.meta, "woo", entry.with_extra(**stash))
        return [
            WooMetaData(key=CANONICAL_ID_KEY, value=variant.canonical_id),
            WooMetaData(key=CANONICAL_VARIANT_META_KEY, value=persisted.to_wire()),
        ]

    def _to_simple(self, product: CanonicalProduct) -> WooSimpleProduct:
        variant = product.variants[0]
        stock, stash = self._stock_fields(variant)
        if variant.attributes:
            stash[ATTRIBUTES_KEY] = [attribute.model_dump() for attribute in variant.attributes]
        if variant.image is not None:
            stash[IMAGE_KEY] = dump_image(variant.image)
        return WooSimpleProduct(
            **self._common_fields(product),
            sku=variant.sku,
            **_price_fields(variant),
            **stock,
            attributes=[
                WooAttribute(name=option.name, position=index, variation=False, options=list(option.values))
                for index, option in enumerate(product.option_definitions())
            ],
            meta_data=[
                WooMetaData(key=CANONICAL_META_KEY, value=self._product_meta(product).to_wire()),
                *self._variant_meta_data(variant, stash, DEFAULT_VARIANT_TITLE),
            ],
        )

    def _to_variable(self, product: CanonicalProduct) -> WooVariableProduct:
        declared = product.option_definitions()
        synthetic = None
        if not declared and product.variants:
            titles: List[str] = []
            for variant in product.variants:
                if variant.title not in titles:
                    titles.append(variant.title)
            synthetic = DEFAULT_ATTRIBUTE_NAME
            declared = [CanonicalProductOption(name=synthetic, values=titles)]

        return WooVariableProduct(
            **self._common_fields(product),
            sku=product.meta.entry("woo").parent_sku or "",
            attributes=[
                WooAttribute(name=option.name, position=index, variation=True, options=list(option.values))
                for index, option in enumerate(declared)
            ],
            variations=[self._variant_to_variation(variant) for variant in product.variants],
            meta_data=[WooMetaData(key=CANONICAL_META_KEY, value=self._product_meta(product, synthetic).to_wire())],
        )

    def _variant_to_variation(self, variant: CanonicalVariant) -> WooVariation:
        stock, stash = self._stock_fields(variant)
        if variant.attributes:
            attributes = [
                WooVariationAttribute(name=attribute.name, option=attribute.value)
                for attribute in variant.attributes
            ]
        else:
            attributes = [WooVariationAttribute(name=DEFAULT_ATTRIBUTE_NAME, option=variant.title)]

        image = None
        if variant.image is not None:
            image = WooImage(
                id=_int_id(variant.image.meta.platform_id("woo")),
                src=variant.image.src,
                name=_image_name(variant.image.src),
                alt=variant.image.alt or "",
            )
            overlay = image_overlay(variant.image, "woo", "position")
            if overlay:
                stash[IMAGE_KEY] = {"src": variant.image.src, **overlay}

        return WooVariation(
            id=_int_id(variant.meta.platform_id("woo")),
            sku=variant.sku,
            **_price_fields(variant),
            **stock,
            **_shipping_fields(variant),
            attributes=attributes,
            image=image,
            meta_data=self._variant_meta_data(
                variant, stash, _derived_title(attribute.option for attribute in attributes)
            ),
        )
