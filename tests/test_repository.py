from datetime import datetime, timezone

import pytest
from pymongo.errors import OperationFailure

from errors import BackendError, RecordNotFoundError
from repository import (
    EVENT_PLACEHOLDER_IMAGE, EVENTS, ORDER_ITEMS, ORDERS, PRODUCTS, SAMPLE_REQUESTS,
    TRADE_PLACEHOLDER_IMAGE, StoreRepository,
)
from schemas import ProductType


def test_legacy_product_columns_are_mapped(db, repo):
    pid = db[PRODUCTS].insert_one({
        "type": "green_export", "name": "Old Lot", "origin": "Ethiopia",
        "price": 120, "original_price_kes": 150, "created_at": datetime(2025, 3, 1),
    }).inserted_id

    product = repo.get_product(str(pid))

    assert product.type == ProductType.GREEN_EXPORT
    assert product.region == "Ethiopia"
    assert product.price == 120
    assert product.original_price == 150
    assert (product.species, product.grade, product.process) == ("Arabica", "AA", "Washed")
    assert product.image_url == TRADE_PLACEHOLDER_IMAGE
    assert product.is_active is False
    assert product.created_at == datetime(2025, 3, 1, tzinfo=timezone.utc)


def test_region_falls_back_to_configured_origin(db):
    db[PRODUCTS].insert_one({"type": "green_export", "name": "Unknown Lot"})
    assert StoreRepository(db, default_origin="Uganda").list_products()[0].region == "Uganda"


def test_order_fallbacks_and_status_case(db, repo):
    oid = db[ORDERS].insert_one({
        "customer_name": "Kamau", "mpesa_receipt_number": "QXY", "total_amount_kes": 450, "status": "Processing",
    }).inserted_id

    order = repo.get_order(str(oid))
    assert order.payment_reference == "QXY"
    assert order.total_amount == 450
    assert order.status == "processing"


def test_sample_request_fallbacks(db, repo):
    rid = db[SAMPLE_REQUESTS].insert_one({"company": "Acme", "name": "Ann", "product_name": "Kiambu AB",
                                          "shipping_method": "DHL", "notes": "Rush"}).inserted_id
    req = repo.get_sample_request(str(rid))
    assert (req.company_name, req.contact_name, req.coffee_name) == ("Acme", "Ann", "Kiambu AB")
    assert req.courier == "DHL"
    assert req.courier_account == "No Account Provided"
    assert req.email == "No Email"
    assert req.notes == "Rush"
    assert req.status == "pending"


def test_event_defaults(db, repo):
    eid = db[EVENTS].insert_one({"title": "Cupping", "event_date": datetime(2026, 7, 1)}).inserted_id
    event = repo.get_event(str(eid))
    assert event.tag == "Event"
    assert event.image_url == EVENT_PLACEHOLDER_IMAGE
    assert event.status == "upcoming"


def test_integer_ids_from_other_tools(db, repo):
    db[PRODUCTS].insert_one({"_id": 42, "type": "roasted_retail", "name": "Legacy Roast"})
    db[ORDER_ITEMS].insert_one({"order_id": "o1", "product_id": 42, "quantity": 1})

    assert repo.get_product("42").name == "Legacy Roast"
    assert repo.list_order_items(["o1"])[0].product_id == "42"


def test_missing_record(repo):
    with pytest.raises(RecordNotFoundError):
        repo.get_order("does-not-exist")
    with pytest.raises(RecordNotFoundError):
        repo.update_status(ORDERS, "65f1c0ffee0000000000beef", "processing")


def test_list_order_items_with_no_orders_skips_query(repo):
    assert repo.list_order_items([]) == []


def test_driver_errors_become_backend_errors():
    class BrokenCollection:
        def find(self, *args, **kwargs):
            raise OperationFailure("permission denied for table products")

    class BrokenDb:
        def __getitem__(self, name):
            return BrokenCollection()

    with pytest.raises(BackendError, match="permission denied"):
        StoreRepository(BrokenDb()).list_products()


def test_create_product_drops_empty_fields(db, repo):
    product = repo.create_product({"type": "roasted_retail", "name": "New Roast", "roast_level": None,
                                   "price": 900, "is_active": True})
    raw = db[PRODUCTS].find_one({"name": "New Roast"})
    assert "roast_level" not in raw
    assert product.roast_level == "Medium"
    assert product.created_at is not None


def test_items_found_for_integer_order_ids(db, repo):
    db[ORDERS].insert_one({"_id": 7, "status": "pending", "total_amount": 1500})
    db[ORDER_ITEMS].insert_many([
        {"order_id": 7, "product_id": "p1", "quantity": 3},
        {"order_id": "7", "product_id": "p2", "quantity": 1},
    ])

    order = repo.get_order("7")
    items = repo.list_order_items([order.id])
    assert sorted(i.product_id for i in items) == ["p1", "p2"]
    assert all(i.order_id == "7" for i in items)


def test_delete_order_items_only_touches_that_order(db, repo):
    db[ORDER_ITEMS].insert_many([
        {"order_id": "o1", "product_id": "p1", "quantity": 1},
        {"order_id": "o2", "product_id": "p1", "quantity": 1},
    ])
    repo.delete_order_items("o1")
    assert [d["order_id"] for d in db[ORDER_ITEMS].find({})] == ["o2"]


def test_unknown_product_type_is_left_out_of_listings(db, repo, seed_product):
    good = seed_product(name="House Blend")
    bad = seed_product(name="Gift Card", type="voucher")

    assert [p.id for p in repo.list_products()] == [good]
    with pytest.raises(BackendError, match="voucher"):
        repo.get_product(bad)
