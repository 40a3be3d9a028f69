import itertools
import json
from decimal import Decimal

from catalog_bridge.adapters import Converted, ShopifyAdapter
from catalog_bridge.adapters.shopify import (
    METAFIELD_NAMESPACE,
    PRODUCT_META_KEY,
    VARIANT_ID_KEY,
    VARIANT_META_KEY,
)
from catalog_bridge.models.canonical import CanonicalProduct, CanonicalVariant
from catalog_bridge.models.shopify_models import ShopifyMetafield, ShopifyProduct


def sequential_ids(prefix="cid"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def make_adapter(prefix="cid"):
    return ShopifyAdapter(id_factory=sequential_ids(prefix))


def sample_product():
    return ShopifyProduct.model_validate(
        {
            "id": 101,
            "title": "Hoodie",
            "body_html": "<p>Warm</p>",
            "product_type": "Apparel",
            "status": "active",
            "tags": "winter, cotton",
            "images": [
                {"id": 11, "src": "https://cdn.example.com/hoodie.jpg", "alt": "Front", "position": 1},
                {"id": 12, "src": "https://cdn.example.com/hoodie-blue.jpg", "position": 2},
            ],
            "options": [
                {"name": "Size", "position": 2, "values": ["M", "L"]},
                {"name": "Color", "position": 1, "values": ["Blue", "Red"]},
            ],
            "variants": [
                {
                    "id": 201,
                    "title": "Blue / M",
                    "price": "45.00",
                    "compare_at_price": "50.00",
                    "sku": "HOOD-BLUE-M",
                    "inventory_quantity": 4,
                    "inventory_management": "shopify",
                    "option1": "Blue",
                    "option2": "M",
                    "image_id": 12,
                },
                {
                    "id": 202,
                    "title": "Red / L",
                    "price": "39.50",
                    "sku": "HOOD-RED-L",
                    "inventory_quantity": 0,
                    "option1": "Red",
                    "option2": "L",
                },
            ],
        }
    )


def to_canonical(adapter, record) -> CanonicalProduct:
    result = adapter.from_platform(record)
    assert isinstance(result, Converted)
    return result.value


def test_from_platform_maps_product_and_variants():
    product = to_canonical(make_adapter(), sample_product())

    assert product.id == "101"
    assert product.title == "Hoodie"
    assert product.description == "<p>Warm</p>"
    assert product.tags == ["winter", "cotton"]
    assert product.meta.shopify.id == 101
    assert [option.name for option in product.options] == ["Color", "Size"]

    blue, red = product.variants
    assert blue.canonical_id == "cid-1"
    assert red.canonical_id == "cid-2"
    assert blue.price == Decimal("45.00")
    assert blue.compare_at_price == Decimal("50.00")
    assert blue.inventory == 4
    assert blue.manage_stock is True
    assert [(a.name, a.value) for a in blue.attributes] == [("Color", "Blue"), ("Size", "M")]
    assert blue.image.src == "https://cdn.example.com/hoodie-blue.jpg"
    assert blue.meta.shopify.id == 201
    assert red.inventory == 0
    assert red.manage_stock is False


def test_default_title_option_is_not_surfaced():
    record = ShopifyProduct.model_validate(
        {
            "id": 5,
            "title": "Mug",
            "options": [{"name": "Title", "position": 1, "values": ["Default Title"]}],
            "variants": [{"id": 9, "title": "Default Title", "price": "12.00", "sku": "MUG", "option1": "Default Title"}],
        }
    )
    product = to_canonical(make_adapter(), record)
    assert product.options is None
    assert product.variants[0].attributes is None


def test_canonical_ids_survive_round_trip():
    first = to_canonical(make_adapter("first"), sample_product())
    record = make_adapter().to_platform(first)

    keys = {(field.namespace, field.key) for field in record.variants[0].metafields}
    assert keys == {(METAFIELD_NAMESPACE, VARIANT_ID_KEY), (METAFIELD_NAMESPACE, VARIANT_META_KEY)}
    assert record.metafields[0].key == PRODUCT_META_KEY

    second = to_canonical(make_adapter("second"), record)
    assert [v.canonical_id for v in second.variants] == ["first-1", "first-2"]
    assert [v.sku for v in second.variants] == ["HOOD-BLUE-M", "HOOD-RED-L"]
    assert [v.price for v in second.variants] == [Decimal("45.00"), Decimal("39.50")]


def test_to_platform_fills_option_slots_by_name():
    product = to_canonical(make_adapter(), sample_product())
    record = make_adapter().to_platform(product)

    assert [(o.name, o.position) for o in record.options] == [("Color", 1), ("Size", 2)]
    assert record.variants[0].option_values() == ["Blue", "M", None]
    assert record.variants[1].option_values() == ["Red", "L", None]
    assert record.variants[0].image_id == 12
    assert record.tags == "winter, cotton"
    assert record.id == 101


def test_missing_attribute_falls_back_to_first_option_value():
    product = CanonicalProduct(
        title="Cap",
        options=[{"name": "Color", "values": ["Black", "White"]}],
        variants=[CanonicalVariant(canonical_id="c", title="Cap", price=Decimal("10"), sku="CAP")],
    )
    record = make_adapter().to_platform(product)
    assert record.variants[0].option1 == "Black"


def test_variant_title_fills_first_slot_without_options():
    product = CanonicalProduct(
        title="Cap",
        variants=[CanonicalVariant(canonical_id="c", title="One size", price=Decimal("10"), sku="CAP")],
    )
    record = make_adapter().to_platform(product)
    assert record.variants[0].option_values() == ["One size", None, None]


def test_untracked_inventory_round_trips():
    product = CanonicalProduct(
        title="Gift card",
        variants=[CanonicalVariant(canonical_id="gift", title="Card", price=Decimal("25"), sku="GIFT")],
    )
    record = make_adapter().to_platform(product)
    variant = record.variants[0]
    assert variant.inventory_quantity == 0
    assert variant.inventory_management is None
    persisted = json.loads(next(f.value for f in variant.metafields if f.key == VARIANT_META_KEY))
    assert persisted == {"shopify": {"untracked": True, "unsetFlags": ["manageStock"]}}

    restored = to_canonical(make_adapter(), record)
    assert restored.variants[0].inventory is None
    assert restored.variants[0].meta.shopify is None


def test_untracked_marker_ignored_once_quantity_changes():
    product = CanonicalProduct(
        title="Gift card",
        variants=[CanonicalVariant(canonical_id="gift", title="Card", price=Decimal("25"), sku="GIFT")],
    )
    record = make_adapter().to_platform(product)
    record.variants[0].inventory_quantity = 3

    restored = to_canonical(make_adapter(), record)
    assert restored.variants[0].inventory == 3


def test_unknown_status_becomes_draft():
    product = CanonicalProduct(
        title="Cap",
        status="publish",
        variants=[CanonicalVariant(canonical_id="c", title="Cap", price=Decimal("10"), sku="CAP", inventory=1)],
    )
    assert make_adapter().to_platform(product).status == "draft"


def test_malformed_metafield_degrades_to_new_ids():
    record = sample_product()
    record.variants[0].metafields = [
        ShopifyMetafield(namespace=METAFIELD_NAMESPACE, key=VARIANT_META_KEY, value="{not json")
    ]
    product = to_canonical(make_adapter(), record)
    assert product.variants[0].canonical_id == "cid-1"
    assert product.variants[0].meta.shopify.id == 201


def test_image_without_shopify_id_and_foreign_image_meta_survive():
    gallery = {"src": "https://cdn.example.com/tee.jpg", "position": 1, "meta": {"woo": {"id": 9}}}
    swatch = {"src": "https://cdn.example.com/swatch.jpg", "alt": "Swatch"}
    product = CanonicalProduct(
        title="Tee",
        images=[gallery],
        variants=[
            CanonicalVariant(canonical_id="t", title="Tee", price=Decimal("10"), sku="TEE", inventory=2, image=swatch)
        ],
    )
    record = make_adapter().to_platform(product)
    assert record.variants[0].image_id is None

    restored = to_canonical(make_adapter(), record)

    assert restored.images[0].meta.woo.id == 9
    assert restored.meta.shopify is None
    variant = restored.variants[0]
    assert (variant.image.src, variant.image.alt) == (swatch["src"], "Swatch")
    assert variant.manage_stock is None
    assert variant.meta.shopify is None
