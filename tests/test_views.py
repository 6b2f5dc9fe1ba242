from datetime import datetime, timezone

import pytest

import views
from schemas import CartLine, Event, Order, OrderItem, Product, ProductType, SampleRequest


def ts(day, hour=10, minute=0):
    return datetime(2026, 5, day, hour, minute, tzinfo=timezone.utc)


ORDERS = [
    Order(id="o1", customer_name="Wanjiru Kamau", payment_reference="QAB123", total_amount=1000,
          status="pending", items_summary="2 x Kenya AA", created_at=ts(3, 9, 5)),
    Order(id="o2", customer_name="Brian Otieno", payment_reference="QZZ999", total_amount=650,
          status="processing", created_at=ts(4)),
    Order(id="o3", customer_name="Achieng", payment_reference="QCD456", total_amount=300,
          status="completed", items_summary="1 x Sidamo", created_at=ts(5)),
    Order(id="o4", status="cancelled", created_at=ts(6)),
]
ITEMS = [
    OrderItem(order_id="o2", product_id="p1", quantity=1, price_at_purchase=500),
    OrderItem(order_id="o2", product_id="p9", quantity=3, price_at_purchase=50),
]
PRODUCTS = [Product(id="p1", type=ProductType.ROASTED_RETAIL, name="Kenya AA", image_url="x", region="Kenya")]


def ids(rows):
    return [r.id for r in rows]


@pytest.mark.parametrize("status_filter, expected", [
    ("all", ["o1", "o2", "o3", "o4"]),
    ("active", ["o1", "o2", "o4"]),
    ("processing", ["o2"]),
    ("completed", ["o3"]),
])
def test_order_status_filters(status_filter, expected):
    assert ids(views.order_rows(ORDERS, ITEMS, PRODUCTS, status_filter=status_filter)) == expected


def test_unknown_status_filter_rejected():
    with pytest.raises(ValueError):
        views.order_rows(ORDERS, ITEMS, PRODUCTS, status_filter="shipped")


def test_search_matches_name_or_payment_code_case_insensitively():
    assert ids(views.order_rows(ORDERS, ITEMS, PRODUCTS, search="kamau")) == ["o1"]
    assert ids(views.order_rows(ORDERS, ITEMS, PRODUCTS, search="qzz")) == ["o2"]
    assert ids(views.order_rows(ORDERS, ITEMS, PRODUCTS, search="wanjiru", status_filter="completed")) == []


def test_order_row_display_fields():
    rows = {r.id: r for r in views.order_rows(ORDERS, ITEMS, PRODUCTS)}

    first = rows["o1"]
    assert (first.date, first.time) == ("03/05/2026", "09:05")
    assert first.action.label == "Verify Payment"
    assert first.action.next_status == "processing"
    assert first.status_class == "status-pending"

    assert rows["o2"].items == "1 x Kenya AA, 3 x Coffee"
    assert rows["o2"].action.label == "Mark Dispatched"
    assert rows["o3"].action.label == "Archived"
    assert rows["o3"].action.next_status is None

    blank = rows["o4"]
    assert blank.customer_name == "Unknown Customer"
    assert blank.customer_phone == "No phone"
    assert blank.shipping_address == "Not provided"
    assert blank.payment_reference == "Pending"
    assert blank.items == "No items found"


def test_sample_rows_treat_shipped_as_processing():
    requests = [
        SampleRequest(id="s1", coffee_name="Kiambu AB", company_name="Acme Roasters", contact_name="Ann",
                      email="ann@acmeroasters.com", courier="DHL", courier_account="123", status="shipped"),
        SampleRequest(id="s2", coffee_name="Nyeri AA", company_name="Beta Imports", contact_name="Ben",
                      email="ben@betaimports.com", courier="Local", courier_account="No Account Provided"),
    ]
    processing = views.sample_rows(requests, status_filter="processing")
    assert ids(processing) == ["s1"]
    assert processing[0].action.label == "Mark Completed"
    assert processing[0].status_class == "status-processing"

    assert ids(views.sample_rows(requests, search="BETA")) == ["s2"]
    assert views.sample_rows(requests, search="ben@")[0].action.label == "Approve & Ship"


def event(eid, day, status):
    return Event(id=eid, title=f"Event {eid}", event_date=ts(day), image_url="x", status=status)


def test_public_events_split_and_ordered():
    events = [event("a", 20, "upcoming"), event("b", 2, "past"), event("c", 12, "upcoming"), event("d", 9, "past")]
    listing = views.public_events(events)
    assert ids(listing.upcoming) == ["c", "a"]
    assert ids(listing.past) == ["d", "b"]


def test_event_rows_toggle_labels():
    rows = views.event_rows([event("a", 20, "upcoming"), event("b", 2, "past")])
    assert rows[0].date == "20 May 2026"
    assert rows[0].action.label == "Mark as Past"
    assert rows[1].action.label == "Set as Upcoming"
    assert rows[1].status_class == "status-completed"


def test_catalog_rows_per_channel():
    rows = views.catalog_rows([
        Product(id="1", type=ProductType.ROASTED_RETAIL, name="Kenya AA", image_url="x", region="Kenya",
                price=800, retail_stock=12, is_active=True),
        Product(id="2", type=ProductType.GREEN_EXPORT, name="Kirinyaga", image_url="x", region="Kenya",
                available_bags=40),
    ])
    assert rows[0].type_label == "B2C Roasted"
    assert rows[0].stock_info == "KSh 800 | 12 in stock"
    assert (rows[0].status_text, rows[0].toggle_label) == ("Active (Live)", "Hide")
    assert rows[1].type_label == "B2B Green"
    assert rows[1].stock_info == "40 Bags (60kg)"
    assert (rows[1].status_text, rows[1].toggle_label) == ("Hidden", "Publish")


def test_cart_view_disables_submit_when_empty():
    assert views.cart_view([]).can_submit is False
    view = views.cart_view([CartLine(product_id=1, name="Kenya AA", unit_price=500, quantity=2)])
    assert view.can_submit is True
    assert (view.count, view.total) == (2, 1000)


def test_cancelled_orders_are_not_styled_as_pending():
    rows = {r.id: r for r in views.order_rows(ORDERS, ITEMS, PRODUCTS)}
    assert rows["o4"].status_class == "status-cancelled"
    assert rows["o1"].status_class == "status-pending"
