from decimal import Decimal

import pytest

from catalog_bridge.clients import ShopifyClient, WooClient
from catalog_bridge.clients.base import DesiredVariant, RemoteVariant, diff_variant
from catalog_bridge.config import SyncConfig
from catalog_bridge.errors import RemoteOperationError, UnresolvableParentError
from catalog_bridge.mock_client import InMemoryCatalogClient
from catalog_bridge.models.shopify_models import ShopifyProduct, ShopifyVariant
from catalog_bridge.models.woo_models import WooSimpleProduct, WooVariableProduct, WooVariation
from catalog_bridge.reconciler import SyncReconciler
from catalog_bridge.telemetry import SyncInstruments

HOODIE_SKUS = ["woo-hoodie-blue-logo", "woo-hoodie-blue", "woo-hoodie-green", "woo-hoodie-red"]


def shopify_record(title, variants):
    return ShopifyProduct(
        title=title,
        variants=[
            ShopifyVariant(
                title=sku,
                sku=sku,
                price=price,
                inventory_quantity=quantity,
                inventory_management="shopify",
            )
            for sku, price, quantity in variants
        ],
    )


def hoodie(price="45.00", quantity=10):
    return shopify_record("Hoodie", [(sku, price, quantity) for sku in HOODIE_SKUS])


def make_client():
    return InMemoryCatalogClient(ShopifyClient)


def make_reconciler(client, **sync):
    return SyncReconciler(client, SyncConfig(**sync))


@pytest.mark.asyncio
async def test_unknown_skus_create_one_product():
    client = make_client()
    report = await make_reconciler(client).sync([hoodie()])

    assert client.calls[0] == ("find_variants_by_skus", tuple(HOODIE_SKUS))
    assert client.calls_named("create_product") == [("create_product", "Hoodie")]
    assert client.calls_named("update_variants") == []
    assert [r.action for r in report.results] == ["created"]
    assert report.created[0].remote_id is not None
    assert set(client.remote_variants) == set(HOODIE_SKUS)


@pytest.mark.asyncio
async def test_inventory_only_change_sends_only_that_variant():
    client = make_client()
    client.seed(500, hoodie())
    desired = hoodie()
    desired.variants[1].inventory_quantity = 3

    report = await make_reconciler(client).sync([desired])

    assert client.calls_named("update_variants") == [("update_variants", 500, ["woo-hoodie-blue"])]
    assert client.calls_named("add_variants") == []
    assert client.calls_named("create_product") == []
    assert report.updated[0].updated_skus == ["woo-hoodie-blue"]
    assert client.remote_variants["woo-hoodie-blue"].inventory == 3
    assert client.remote_variants["woo-hoodie-blue"].price == Decimal("45.00")


def test_diff_flags_only_changed_fields():
    existing = RemoteVariant(sku="A", product_id=1, variant_id=2, price=Decimal("45.00"), inventory=10)

    inventory_only = diff_variant(existing, DesiredVariant(sku="A", price=Decimal("45"), inventory=3))
    assert (inventory_only.price_changed, inventory_only.inventory_changed) == (False, True)

    untracked = diff_variant(existing, DesiredVariant(sku="A", price=Decimal("45.00"), inventory=None))
    assert (untracked.price_changed, untracked.inventory_changed) == (False, False)

    unknown_price = diff_variant(
        RemoteVariant(sku="A", product_id=1, variant_id=2), DesiredVariant(sku="A", price=Decimal("1"), inventory=None)
    )
    assert unknown_price.price_changed is True


@pytest.mark.asyncio
async def test_partial_match_updates_and_appends():
    client = make_client()
    client.seed(500, shopify_record("Hoodie", [("woo-hoodie-blue", "40.00", 10)]))

    report = await make_reconciler(client).sync([hoodie()])

    assert client.calls_named("create_product") == []
    assert client.calls_named("update_variants") == [("update_variants", 500, ["woo-hoodie-blue"])]
    assert client.calls_named("add_variants") == [
        ("add_variants", 500, ["woo-hoodie-blue-logo", "woo-hoodie-green", "woo-hoodie-red"])
    ]
    result = report.updated[0]
    assert result.remote_id == 500
    assert result.updated_skus == ["woo-hoodie-blue"]
    assert len(result.appended_skus) == 3
    assert client.remote_variants["woo-hoodie-green"].product_id == 500


@pytest.mark.asyncio
async def test_matching_product_without_changes_is_unchanged():
    client = make_client()
    client.seed(500, hoodie())

    report = await make_reconciler(client).sync([hoodie()])

    assert [r.action for r in report.results] == ["unchanged"]
    assert client.calls_named("update_variants") == []
    assert client.calls_named("add_variants") == []


@pytest.mark.asyncio
async def test_missing_parent_id_fails_that_product():
    client = make_client()
    client.remote_variants["woo-hoodie-blue"] = RemoteVariant(
        sku="woo-hoodie-blue", product_id=None, variant_id=9, price=Decimal("1"), inventory=1
    )

    report = await make_reconciler(client).sync([hoodie()])

    assert [r.action for r in report.results] == ["failed"]
    assert report.failed[0].error == 'Could not determine parent product ID for "Hoodie"'


@pytest.mark.asyncio
async def test_missing_parent_id_raises_without_isolation():
    client = make_client()
    client.remote_variants["woo-hoodie-blue"] = RemoteVariant(
        sku="woo-hoodie-blue", product_id=None, variant_id=9, price=Decimal("1"), inventory=1
    )

    with pytest.raises(UnresolvableParentError):
        await make_reconciler(client, isolate_failures=False).sync([hoodie()])


@pytest.mark.asyncio
async def test_one_failure_does_not_abort_batch():
    client = make_client()
    client.fail_on("Broken", RemoteOperationError("shopify", "create_product", 422, "bad"))
    records = [hoodie(), shopify_record("Broken", [("BROKEN-1", "5.00", 1)])]

    report = await make_reconciler(client).sync(records)

    assert report.counts() == {"created": 1, "updated": 0, "unchanged": 0, "failed": 1}
    assert report.failed[0].title == "Broken"
    assert "422" in report.failed[0].error


@pytest.mark.asyncio
async def test_unexpected_errors_always_propagate():
    client = make_client()
    client.fail_on("Hoodie", RuntimeError("boom"))

    with pytest.raises(RuntimeError):
        await make_reconciler(client).sync([hoodie()])


@pytest.mark.asyncio
async def test_empty_batch_makes_no_calls():
    client = make_client()
    report = await make_reconciler(client).sync([])
    assert report.results == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_woo_simple_product_update():
    client = InMemoryCatalogClient(WooClient)
    client.seed(90, WooSimpleProduct(name="Beanie", sku="BEANIE", regular_price="15.00", manage_stock=True, stock_quantity=3))
    desired = WooSimpleProduct(name="Beanie", sku="BEANIE", regular_price="12.00", manage_stock=True, stock_quantity=3)

    report = await make_reconciler(client).sync([desired])

    assert client.calls_named("update_variants") == [("update_variants", 90, ["BEANIE"])]
    assert client.remote_variants["BEANIE"].price == Decimal("12.00")
    assert report.updated[0].title == "Beanie"



@pytest.mark.asyncio
async def test_woo_variable_record_replaces_simple_product():
    client = InMemoryCatalogClient(WooClient)
    client.seed(90, WooSimpleProduct(name="Tee", sku="TEE-S", regular_price="10", manage_stock=True, stock_quantity=2))
    assert client.remote_variants["TEE-S"].extra == {"product_type": "simple"}
    desired = WooVariableProduct(
        name="Tee",
        variations=[
            WooVariation(sku="TEE-S", regular_price="10", manage_stock=True, stock_quantity=2),
            WooVariation(sku="TEE-M", regular_price="12", manage_stock=True, stock_quantity=5),
        ],
    )

    report = await make_reconciler(client).sync([desired])

    assert client.calls_named("restructure_product") == [("restructure_product", 90, ["TEE-S", "TEE-M"])]
    assert client.calls_named("add_variants") == []
    assert client.calls_named("update_variants") == []
    assert isinstance(client.products[90], WooVariableProduct)
    assert {sku: remote.product_id for sku, remote in client.remote_variants.items()} == {"TEE-S": 90, "TEE-M": 90}
    assert client.remote_variants["TEE-M"].extra == {"product_type": "variable"}
    result = report.updated[0]
    assert (result.updated_skus, result.appended_skus) == (["TEE-S"], ["TEE-M"])

    again = await make_reconciler(client).sync([desired])
    assert [r.action for r in again.results] == ["unchanged"]

class RecordingInstrument:
    def __init__(self):
        self.points = []

    def record(self, value, attributes):
        self.points.append((value, attributes))

    def add(self, value, attributes):
        self.points.append((value, attributes))


@pytest.mark.asyncio
async def test_instruments_record_each_product():
    duration, outcomes = RecordingInstrument(), RecordingInstrument()
    client = make_client()
    reconciler = SyncReconciler(client, instruments=SyncInstruments(duration=duration, outcomes=outcomes))

    await reconciler.sync([hoodie()])

    assert outcomes.points == [(1, {"platform": "shopify", "action": "created"})]
    assert len(duration.points) == 1
    assert duration.points[0][0] >= 0
