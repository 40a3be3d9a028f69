import logging

import pytest

from catalog_bridge.adapters import Converted, Skipped, get_adapter
from catalog_bridge.convert import convert, convert_batch, convert_payloads
from catalog_bridge.errors import ConfigurationError
from catalog_bridge.models.ebay_models import EbayInventoryItemGroup
from catalog_bridge.models.woo_models import WooSimpleProduct


def shopify_payload(**overrides):
    payload = {
        "id": 101,
        "title": "Hoodie",
        "status": "active",
        "options": [{"name": "Color", "position": 1, "values": ["Blue", "Red"]}],
        "variants": [
            {"id": 201, "title": "Blue", "price": "45.00", "sku": "HOOD-BLUE", "inventory_quantity": 4,
             "inventory_management": "shopify", "option1": "Blue"},
            {"id": 202, "title": "Red", "price": "40.00", "sku": "HOOD-RED", "inventory_quantity": 2,
             "inventory_management": "shopify", "option1": "Red"},
        ],
    }
    payload.update(overrides)
    return payload


def test_convert_shopify_to_ebay():
    source, target = get_adapter("shopify"), get_adapter("ebay")
    result = convert(source.parse_record(shopify_payload()), source, target)

    assert isinstance(result, Converted)
    assert isinstance(result.value, EbayInventoryItemGroup)
    assert [offer.sku.split("::meta=")[0] for offer in result.value.offers] == ["HOOD-BLUE", "HOOD-RED"]


def test_skipped_source_record_is_passed_through():
    source, target = get_adapter("woo"), get_adapter("shopify")
    record = source.parse_record({"id": 5, "name": "Bundle", "type": "grouped"})

    result = convert(record, source, target)

    assert isinstance(result, Skipped)
    assert result.name == "Bundle"


def test_batch_drops_skipped_records(caplog):
    source, target = get_adapter("woo"), get_adapter("shopify")
    records = [
        source.parse_record({"id": 5, "name": "Bundle", "type": "grouped"}),
        source.parse_record({"id": 6, "name": "Beanie", "type": "simple", "sku": "BEANIE", "regular_price": "15"}),
    ]

    with caplog.at_level(logging.INFO, logger="catalog_bridge.convert"):
        converted = convert_batch(records, source, target)

    assert [record.title for record in converted] == ["Beanie"]
    assert "batch_converted" in caplog.text


def test_convert_payloads_returns_wire_dicts():
    [record] = convert_payloads([shopify_payload(variants=shopify_payload()["variants"][:1])], "shopify", "woo")

    parsed = get_adapter("woo").parse_record(record)
    assert isinstance(parsed, WooSimpleProduct)
    assert record["sku"] == "HOOD-BLUE"
    assert record["regular_price"] == "45.00"
    assert record["stock_quantity"] == 4


def test_unknown_platform_is_a_configuration_error():
    with pytest.raises(ConfigurationError, match="Unsupported platform"):
        convert_payloads([], "shopify", "etsy")
