import json

import pytest

from cart import CartManager, open_cart
from config import CART_STORAGE_KEY
from storage import LocalStorage, MemoryStorage, get_theme, set_theme

KENYA_AA = {"id": "1", "name": "Kenya AA", "price": "500"}
SIDAMO = {"id": "2", "name": "Sidamo", "price": 650.5}


def persisted(storage):
    return json.loads(storage.get_item(CART_STORAGE_KEY))


def test_add_appends_new_line_with_quantity_one(storage):
    cart = CartManager(storage)
    cart.add(KENYA_AA)

    lines = cart.get_all()
    assert len(lines) == 1
    assert lines[0].product_id == "1"
    assert lines[0].unit_price == 500.0
    assert lines[0].quantity == 1


def test_add_existing_increments_without_duplicate(storage):
    cart = CartManager(storage)
    cart.add(KENYA_AA)
    cart.add(SIDAMO)
    cart.add(KENYA_AA)

    lines = cart.get_all()
    assert [l.product_id for l in lines] == ["1", "2"]
    assert lines[0].quantity == 2
    assert lines[1].quantity == 1


def test_unparseable_price_becomes_zero(storage):
    cart = CartManager(storage)
    line = cart.add({"id": "9", "name": "Mystery", "price": "n/a"})
    assert line.unit_price == 0.0


def test_remove_absent_is_noop(storage):
    cart = CartManager(storage)
    cart.add(KENYA_AA)
    before = storage.get_item(CART_STORAGE_KEY)
    calls = []
    cart.subscribe(calls.append)

    assert cart.remove("404") is False
    assert cart.get_all()[0].quantity == 1
    assert storage.get_item(CART_STORAGE_KEY) == before
    assert calls == []


def test_remove_compares_ids_as_strings(storage):
    cart = CartManager(storage)
    cart.add({"id": 7, "name": "Nyeri", "price": 100})

    assert cart.remove("7") is True
    assert cart.get_all() == []
    assert persisted(storage) == []


def test_persisted_total_tracks_every_mutation(storage):
    cart = CartManager(storage)
    ops = [
        ("add", KENYA_AA), ("add", SIDAMO), ("add", KENYA_AA),
        ("remove", "2"), ("add", SIDAMO), ("remove", "99"), ("add", SIDAMO),
    ]
    for op, arg in ops:
        getattr(cart, op)(arg)
        stored = persisted(storage)
        expected = sum(l["unit_price"] * l["quantity"] for l in stored)
        assert cart.total() == round(expected, 2)

    assert cart.total() == 500 * 2 + 650.5 * 2


def test_listeners_receive_snapshot(storage):
    cart = CartManager(storage)
    counts = []
    cart.subscribe(lambda lines: counts.append(sum(l.quantity for l in lines)))

    cart.add(KENYA_AA)
    cart.add(KENYA_AA)
    cart.clear()

    assert counts == [1, 2, 0]


@pytest.mark.parametrize("raw", [
    "not json",
    '{"product_id": "1"}',
    '[{"product_id": "1"}]',
    '[{"product_id": "1", "name": "x", "quantity": 0}]',
    "null",
])
def test_malformed_persisted_cart_loads_empty(raw):
    cart = CartManager(MemoryStorage({CART_STORAGE_KEY: raw}))
    assert cart.get_all() == []
    assert cart.is_empty()


def test_restore_merges_duplicate_lines():
    raw = json.dumps([
        {"product_id": "1", "name": "Kenya AA", "unit_price": 500, "quantity": 1},
        {"product_id": 1, "name": "Kenya AA", "unit_price": 500, "quantity": 2},
    ])
    cart = CartManager(MemoryStorage({CART_STORAGE_KEY: raw}))

    assert len(cart) == 1
    assert cart.count() == 3


def test_file_backed_cart_survives_reload(tmp_path):
    path = str(tmp_path / "store.json")
    cart = open_cart(path)
    cart.add(KENYA_AA)
    cart.add(KENYA_AA)

    reloaded = open_cart(path)
    assert reloaded.count() == 2
    assert reloaded.total() == 1000


def test_corrupt_storage_file_is_ignored(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{{{", encoding="utf-8")
    assert open_cart(str(path)).get_all() == []


def test_theme_preference(tmp_path):
    store = LocalStorage(str(tmp_path / "store.json"))
    assert get_theme(store) == "light"
    set_theme(store, "dark")
    assert get_theme(LocalStorage(str(tmp_path / "store.json"))) == "dark"
    with pytest.raises(ValueError):
        set_theme(store, "sepia")
