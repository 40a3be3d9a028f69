import itertools
import json
import logging
from decimal import Decimal

import pytest

from catalog_bridge.adapters import Converted, Skipped, WooAdapter, infer_inventory
from catalog_bridge.adapters.woo import (
    CANONICAL_ID_KEY,
    CANONICAL_META_KEY,
    CANONICAL_VARIANT_META_KEY,
)
from catalog_bridge.models.canonical import CanonicalProduct, CanonicalVariant, PlatformMeta
from catalog_bridge.models.woo_models import WooSimpleProduct, WooVariableProduct


def sequential_ids(prefix="cid"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def make_adapter(prefix="cid", logger=None):
    return WooAdapter(logger=logger, id_factory=sequential_ids(prefix))


def variable_payload():
    return {
        "id": 77,
        "name": "Hoodie",
        "type": "variable",
        "sku": "woo-hoodie",
        "status": "publish",
        "description": "<p>Warm</p>",
        "short_description": "Warm hoodie",
        "images": [{"id": 5, "src": "https://shop.example.com/hoodie.jpg", "alt": "Front"}],
        "categories": [{"id": 1, "name": "Clothing"}],
        "tags": [{"id": 2, "name": "winter"}],
        "attributes": [
            {"id": 0, "name": "Color", "variation": True, "options": ["Blue", "Green"]},
            {"id": 0, "name": "Material", "variation": False, "options": ["Cotton"]},
        ],
        "variations": [
            {
                "id": 78,
                "sku": "woo-hoodie-blue",
                "price": "42",
                "regular_price": "45",
                "sale_price": "42",
                "manage_stock": True,
                "stock_quantity": 8,
                "stock_status": "instock",
                "attributes": [{"id": 0, "name": "Color", "option": "Blue"}],
            },
            {
                "id": 79,
                "sku": "woo-hoodie-green",
                "price": "45",
                "regular_price": "45",
                "sale_price": "",
                "manage_stock": False,
                "stock_quantity": None,
                "stock_status": "instock",
                "attributes": [{"id": 0, "name": "Color", "option": "Green"}],
            },
        ],
    }


def simple_payload(**overrides):
    payload = {
        "id": 90,
        "name": "Beanie",
        "type": "simple",
        "sku": "BEANIE",
        "status": "draft",
        "regular_price": "15.00",
        "sale_price": "",
        "manage_stock": True,
        "stock_quantity": 3,
        "stock_status": "instock",
    }
    payload.update(overrides)
    return payload


def single_variant_product(meta=None):
    return CanonicalProduct(
        title="Beanie",
        meta=meta or PlatformMeta(),
        variants=[CanonicalVariant(canonical_id="b-1", title="Beanie", price=Decimal("15"), sku="BEANIE", inventory=2)],
    )


def to_canonical(adapter, payload) -> CanonicalProduct:
    result = adapter.from_platform(adapter.parse_record(payload))
    assert isinstance(result, Converted)
    return result.value


def test_variable_product_from_platform():
    product = to_canonical(make_adapter(), variable_payload())

    assert product.title == "Hoodie"
    assert product.status == "active"
    assert product.product_type == "Clothing"
    assert product.tags == ["winter"]
    assert [(o.name, o.values) for o in product.options] == [("Color", ["Blue", "Green"])]
    assert product.meta.woo.id == 77
    assert product.meta.woo.product_type == "variable"
    assert product.meta.woo.parent_sku == "woo-hoodie"
    assert product.meta.woo.extra == {"shortDescription": "Warm hoodie"}

    blue, green = product.variants
    assert blue.price == Decimal("42")
    assert blue.compare_at_price == Decimal("45")
    assert blue.inventory == 8
    assert blue.title == "Blue"
    assert blue.meta.woo.id == 78
    assert green.price == Decimal("45")
    assert green.compare_at_price is None
    # Unmanaged but in stock counts as one unit.
    assert green.inventory == 1


@pytest.mark.parametrize(
    "quantity,status,expected",
    [
        (None, "instock", 1),
        (None, "outofstock", None),
        (None, "onbackorder", None),
        (5, "outofstock", 5),
        (0, "instock", 0),
    ],
)
def test_stock_inference(quantity, status, expected):
    assert infer_inventory(quantity, status) == expected


def test_single_variant_becomes_simple_product():
    adapter = make_adapter()
    product = single_variant_product()
    assert adapter.choose_representation(product) == "simple"
    record = adapter.to_platform(product)
    assert isinstance(record, WooSimpleProduct)
    assert record.sku == "BEANIE"
    assert record.manage_stock is True
    assert record.stock_quantity == 2


def test_single_variant_seen_as_variable_stays_variable():
    adapter = make_adapter()
    product = single_variant_product(PlatformMeta.model_validate({"woo": {"productType": "variable"}}))
    assert adapter.choose_representation(product) == "variable"
    record = adapter.to_platform(product)
    assert isinstance(record, WooVariableProduct)
    assert len(record.variations) == 1


def test_representation_is_deterministic():
    adapter = make_adapter()
    product = to_canonical(adapter, variable_payload())
    first = adapter.dump_record(adapter.to_platform(product))
    second = adapter.dump_record(adapter.to_platform(product))
    assert first == second


def test_variable_product_writes_meta_keys():
    adapter = make_adapter()
    product = to_canonical(adapter, variable_payload())
    record = adapter.to_platform(product)

    assert isinstance(record, WooVariableProduct)
    assert [entry.key for entry in record.meta_data] == [CANONICAL_META_KEY]
    assert record.meta_data[0].value["woo"]["id"] == 77
    assert record.sku == "woo-hoodie"
    assert record.status == "publish"
    assert record.short_description == "Warm hoodie"

    variation = record.variations[0]
    assert [entry.key for entry in variation.meta_data] == [CANONICAL_ID_KEY, CANONICAL_VARIANT_META_KEY]
    assert variation.meta_data[0].value == "cid-1"
    assert variation.id == 78
    assert variation.regular_price == "45"
    assert variation.sale_price == "42"
    assert [(a.name, a.option) for a in variation.attributes] == [("Color", "Blue")]


def test_meta_values_stored_as_json_strings_are_read():
    payload = simple_payload(
        meta_data=[
            {"key": CANONICAL_ID_KEY, "value": "kept-id"},
            {"key": CANONICAL_META_KEY, "value": json.dumps({"shopify": {"id": 555}})},
        ]
    )
    product = to_canonical(make_adapter(), payload)
    assert product.variants[0].canonical_id == "kept-id"
    assert product.meta.shopify.id == 555
    assert product.meta.woo.id == 90
    assert product.meta.woo.product_type == "simple"


def test_unmanaged_quantity_is_remembered():
    adapter = make_adapter()
    product = CanonicalProduct(
        title="Poster",
        variants=[
            CanonicalVariant(
                canonical_id="p-1", title="Poster", price=Decimal("9"), sku="POSTER", inventory=3, manage_stock=False
            )
        ],
    )
    record = adapter.to_platform(product)
    assert record.manage_stock is False
    assert record.stock_quantity is None

    restored = to_canonical(adapter, adapter.dump_record(record))
    assert restored.variants[0].inventory == 3
    assert restored.variants[0].canonical_id == "p-1"


def test_untracked_inventory_round_trips():
    adapter = make_adapter()
    product = CanonicalProduct(
        title="Gift card",
        variants=[CanonicalVariant(canonical_id="g-1", title="Card", price=Decimal("25"), sku="GIFT")],
    )
    restored = to_canonical(adapter, adapter.dump_record(adapter.to_platform(product)))
    assert restored.variants[0].inventory is None


def test_status_mapping():
    adapter = make_adapter()
    for status, expected in [("active", "publish"), ("archived", "private"), ("draft", "draft"), (None, "draft")]:
        product = single_variant_product().model_copy(update={"status": status})
        assert adapter.to_platform(product).status == expected
    assert to_canonical(adapter, simple_payload(status="private")).status == "archived"
    assert to_canonical(adapter, simple_payload(status="pending")).status == "draft"


def test_grouped_product_is_skipped(caplog):
    adapter = make_adapter(logger=logging.getLogger("tests.woo"))
    payload = simple_payload(type="grouped", id=12, name="Bundle")

    with caplog.at_level(logging.WARNING, logger="tests.woo"):
        result = adapter.from_platform(adapter.parse_record(payload))

    assert isinstance(result, Skipped)
    assert result.record_id == 12
    assert result.name == "Bundle"
    assert "record_skipped" in caplog.text


def test_variations_without_attributes_get_option_axis():
    adapter = make_adapter()
    product = CanonicalProduct(
        title="Print",
        variants=[
            CanonicalVariant(canonical_id="a", title="Small", price=Decimal("5"), sku="P-S", inventory=1),
            CanonicalVariant(canonical_id="b", title="Large", price=Decimal("8"), sku="P-L", inventory=1),
        ],
    )
    record = adapter.to_platform(product)
    assert [(a.name, a.options, a.variation) for a in record.attributes] == [("Option", ["Small", "Large"], True)]
    assert [v.attributes[0].option for v in record.variations] == ["Small", "Large"]

    restored = to_canonical(adapter, adapter.dump_record(record))
    assert restored.options is None
    assert [(v.title, v.attributes) for v in restored.variants] == [("Small", None), ("Large", None)]


def test_flags_are_written_per_variation():
    adapter = make_adapter()
    product = CanonicalProduct(
        title="Tee",
        options=[{"name": "Size", "values": ["S", "M"]}],
        variants=[
            CanonicalVariant(canonical_id="s", title="S", price=Decimal("5"), sku="TEE-S", inventory=1,
                             taxable=True, requires_shipping=True, attributes=[{"name": "Size", "value": "S"}]),
            CanonicalVariant(canonical_id="m", title="M", price=Decimal("5"), sku="TEE-M", inventory=1,
                             taxable=False, requires_shipping=False, attributes=[{"name": "Size", "value": "M"}]),
        ],
    )
    record = adapter.to_platform(product)
    assert [(v.tax_status, v.virtual) for v in record.variations] == [("taxable", False), ("none", True)]

    small, medium = to_canonical(adapter, adapter.dump_record(record)).variants
    assert (small.taxable, small.requires_shipping, small.manage_stock) == (True, True, None)
    assert (medium.taxable, medium.requires_shipping, medium.manage_stock) == (False, False, None)


def test_flag_edited_in_store_wins_over_stash():
    adapter = make_adapter()
    wire = adapter.dump_record(adapter.to_platform(single_variant_product()))
    assert to_canonical(adapter, wire).variants[0].taxable is None

    wire["tax_status"] = "none"
    assert to_canonical(adapter, wire).variants[0].taxable is False


def test_image_meta_and_variant_image_survive():
    adapter = make_adapter()
    front = {"src": "https://cdn.example.com/front.jpg", "alt": "Front", "position": 3, "meta": {"shopify": {"id": 555}}}
    product = CanonicalProduct(
        title="Tee",
        images=[front],
        variants=[
            CanonicalVariant(canonical_id="s", title="S", price=Decimal("5"), sku="TEE-S", inventory=1, image=front,
                             attributes=[{"name": "Size", "value": "S"}]),
            CanonicalVariant(canonical_id="m", title="Medium", price=Decimal("5"), sku="TEE-M", inventory=1,
                             attributes=[{"name": "Size", "value": "M"}]),
        ],
    )
    restored = to_canonical(adapter, adapter.dump_record(adapter.to_platform(product)))

    assert restored.images[0].meta.shopify.id == 555
    assert restored.images[0].position == 3
    small, medium = restored.variants
    assert small.image == restored.images[0]
    assert medium.title == "Medium"
    assert restored.status is None
    assert restored.meta.woo.extra == {}


def test_simple_product_keeps_variant_title_and_image():
    adapter = make_adapter()
    image = {"src": "https://cdn.example.com/beanie.jpg", "alt": "Knit"}
    product = CanonicalProduct(
        title="Beanie",
        variants=[
            CanonicalVariant(canonical_id="b-1", title="Beanie", price=Decimal("15"), sku="BEANIE", inventory=2, image=image)
        ],
    )

    variant = to_canonical(adapter, adapter.dump_record(adapter.to_platform(product))).variants[0]

    assert variant.title == "Beanie"
    assert variant.image.src == image["src"]
    assert variant.image.alt == "Knit"
    assert variant.meta.entry("woo").extra == {}
