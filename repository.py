"""
Data access boundary.

Every read goes through a normaliser that turns a raw MongoDB document into
one canonical, frozen record. Older rows written with other column names or
with optional fields left empty are mapped here, once, by these rules:

Product
    type            type | "roasted_retail"; rows with an unknown type are
                    left out of listings and rejected on direct lookup
    region          region | origin | DEFAULT_ORIGIN
    species         species | "Arabica"
    grade           grade | "AA"
    process         process | "Washed"
    roast_level     roast_level | "Medium"
    price           price_kes | price | 0
    original_price  original_price_kes | original_price
    image_url       image_url | placeholder for the product's channel
Order
    payment_ref     payment_reference | mpesa_receipt_number
    total_amount    total_amount | total_amount_kes | 0
    status          lowercased status | "pending"
SampleRequest
    company_name    company_name | company | "Unknown Company"
    contact_name    contact_name | name | "No Name"
    email           email | contact_email | "No Email"
    coffee_name     coffee_name | product_name | coffee_requested | "Unknown Coffee"
    courier         shipping_carrier | courier_name | shipping_method | "Courier"
    courier_account courier_account | account_number | "No Account Provided"
    notes           buyer_notes | notes
Event
    tag             tag | "Event"
    image_url       image_url | event placeholder
    status          lowercased status | "upcoming"
"""
import functools
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import settings
from errors import BackendError, RecordNotFoundError
from schemas import (
    Event, EventStatus, Order, OrderItem, OrderStatus, Product, ProductType,
    SampleRequest, SampleStatus,
)

logger = logging.getLogger(__name__)

PRODUCTS = "products"
ORDERS = "b2c_orders"
ORDER_ITEMS = "b2c_order_items"
SAMPLE_REQUESTS = "b2b_sample_requests"
EVENTS = "events"

RETAIL_PLACEHOLDER_IMAGE = "https://images.unsplash.com/photo-1559056199-641a0ac8b55e?q=80&w=800&auto=format&fit=crop"
TRADE_PLACEHOLDER_IMAGE = "https://images.unsplash.com/photo-1559525839-b184a4d698c7?q=80&w=800&auto=format&fit=crop"
EVENT_PLACEHOLDER_IMAGE = "https://images.unsplash.com/photo-1541167760496-1628856ab772?q=80&w=800&auto=format&fit=crop"


# ------------------ Helpers ------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_storage_time(value: Optional[datetime]) -> Optional[datetime]:
    """BSON dates are naive UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_storage_time(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _first(doc: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = doc.get(key)
        if value is not None and value != "":
            return value
    return default


def _status(doc: Dict[str, Any], default: str) -> str:
    raw = doc.get("status")
    if raw is None or str(raw).strip() == "":
        return default
    return str(raw).strip().lower()


def _id_values(record_id: Any) -> List[Any]:
    """Both spellings of an id that other tools may have written as an integer."""
    text = str(record_id)
    if text.isdigit():
        return [text, int(text)]
    return [text]


def _id_filter(record_id: str) -> Dict[str, Any]:
    # Rows written by other tools may carry plain string or integer ids
    try:
        return {"_id": ObjectId(record_id)}
    except (InvalidId, TypeError):
        if str(record_id).isdigit():
            return {"_id": {"$in": _id_values(record_id)}}
        return {"_id": record_id}


def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def backend_call(func):
    """Re-raise driver failures as BackendError with the raw message."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PyMongoError as e:
            logger.exception("Backend call %s failed", func.__name__)
            raise BackendError(str(e)) from e
    return wrapper


# ------------------ Normalisers ------------------

def normalize_product(doc: Dict[str, Any], default_origin: str = settings.DEFAULT_ORIGIN) -> Product:
    raw_type = _first(doc, "type", default=ProductType.ROASTED_RETAIL.value)
    try:
        product_type = ProductType(raw_type)
    except ValueError:
        raise BackendError(f"{PRODUCTS} record {doc['_id']} has unknown type {raw_type!r}")
    placeholder = TRADE_PLACEHOLDER_IMAGE if product_type == ProductType.GREEN_EXPORT else RETAIL_PLACEHOLDER_IMAGE
    return Product(
        id=str(doc["_id"]),
        type=product_type,
        name=doc.get("name") or "",
        description=doc.get("description") or "",
        image_url=_first(doc, "image_url", default=placeholder),
        is_active=bool(doc.get("is_active", False)),
        created_at=from_storage_time(doc.get("created_at")),
        price=float(_first(doc, "price_kes", "price", default=0)),
        original_price=_first(doc, "original_price_kes", "original_price"),
        retail_stock=int(_first(doc, "retail_stock", default=0)),
        roast_level=_first(doc, "roast_level", default="Medium"),
        species=_first(doc, "species", default="Arabica"),
        region=_first(doc, "region", "origin", default=default_origin),
        grade=_first(doc, "grade", default="AA"),
        process=_first(doc, "process", default="Washed"),
        cupping_score=_first(doc, "cupping_score"),
        available_bags=int(_first(doc, "available_bags", default=0)),
    )


def normalize_order(doc: Dict[str, Any]) -> Order:
    return Order(
        id=str(doc["_id"]),
        customer_name=doc.get("customer_name") or "",
        customer_phone=doc.get("customer_phone") or "",
        shipping_address=doc.get("shipping_address") or "",
        payment_reference=_first(doc, "payment_reference", "mpesa_receipt_number", default=""),
        total_amount=float(_first(doc, "total_amount", "total_amount_kes", default=0)),
        status=_status(doc, OrderStatus.PENDING.value),
        items_summary=doc.get("items_summary") or "",
        created_at=from_storage_time(doc.get("created_at")),
    )


def normalize_order_item(doc: Dict[str, Any]) -> OrderItem:
    return OrderItem(
        id=str(doc["_id"]) if "_id" in doc else None,
        order_id=str(doc.get("order_id")),
        product_id=str(doc.get("product_id")),
        quantity=int(doc.get("quantity") or 0),
        price_at_purchase=float(doc.get("price_at_purchase") or 0),
        grind_type=_first(doc, "grind_type", default="Whole Bean"),
    )


def normalize_sample_request(doc: Dict[str, Any]) -> SampleRequest:
    product_id = doc.get("product_id")
    return SampleRequest(
        id=str(doc["_id"]),
        product_id=str(product_id) if product_id is not None else None,
        coffee_name=_first(doc, "coffee_name", "product_name", "coffee_requested", default="Unknown Coffee"),
        company_name=_first(doc, "company_name", "company", default="Unknown Company"),
        contact_name=_first(doc, "contact_name", "name", default="No Name"),
        email=_first(doc, "email", "contact_email", default="No Email"),
        courier=_first(doc, "shipping_carrier", "courier_name", "shipping_method", default="Courier"),
        courier_account=_first(doc, "courier_account", "account_number", default="No Account Provided"),
        notes=_first(doc, "buyer_notes", "notes"),
        status=_status(doc, SampleStatus.PENDING.value),
        created_at=from_storage_time(doc.get("created_at")),
    )


def normalize_event(doc: Dict[str, Any]) -> Event:
    return Event(
        id=str(doc["_id"]),
        title=doc.get("title") or "",
        event_date=from_storage_time(doc.get("event_date")),
        tag=_first(doc, "tag", default="Event"),
        location=doc.get("location") or "",
        description=doc.get("description") or "",
        image_url=_first(doc, "image_url", default=EVENT_PLACEHOLDER_IMAGE),
        status=_status(doc, EventStatus.UPCOMING.value),
        created_at=from_storage_time(doc.get("created_at")),
    )


# ------------------ Repository ------------------

class StoreRepository:
    """Row-level select/insert/update against the store's collections."""

    def __init__(self, db: Database, default_origin: str = settings.DEFAULT_ORIGIN):
        self.db = db
        self.default_origin = default_origin

    def _create(self, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
        now = to_storage_time(utcnow())
        doc = {"created_at": now, **data, "updated_at": now}
        result = self.db[collection_name].insert_one(doc)
        return self.db[collection_name].find_one({"_id": result.inserted_id})

    def _find_one(self, collection_name: str, record_id: str) -> Dict[str, Any]:
        doc = self.db[collection_name].find_one(_id_filter(record_id))
        if not doc:
            raise RecordNotFoundError(collection_name, record_id)
        return doc

    def _update(self, collection_name: str, record_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        updates = {**updates, "updated_at": to_storage_time(utcnow())}
        res = self.db[collection_name].update_one(_id_filter(record_id), {"$set": updates})
        if res.matched_count == 0:
            raise RecordNotFoundError(collection_name, record_id)
        return self._find_one(collection_name, record_id)

    @staticmethod
    def _range(start: Optional[datetime], end: Optional[datetime]) -> Dict[str, Any]:
        bounds = {}
        if start is not None:
            bounds["$gte"] = to_storage_time(start)
        if end is not None:
            bounds["$lte"] = to_storage_time(end)
        return {"created_at": bounds} if bounds else {}

    # ---- generic ----

    @backend_call
    def update_status(self, collection_name: str, record_id: str, status: str) -> None:
        """Write one row's status. No version check: the last writer wins."""
        self._update(collection_name, record_id, {"status": status})

    # ---- products ----

    @backend_call
    def list_products(self, product_type: Optional[ProductType] = None, active_only: bool = False) -> List[Product]:
        query: Dict[str, Any] = {}
        if product_type is not None:
            query["type"] = product_type.value
        if active_only:
            query["is_active"] = True
        cursor = self.db[PRODUCTS].find(query).sort("created_at", DESCENDING)
        products = []
        for doc in cursor:
            try:
                products.append(normalize_product(doc, self.default_origin))
            except BackendError as e:
                logger.warning("Skipping product: %s", e)
        return products

    @backend_call
    def get_product(self, product_id: str) -> Product:
        return normalize_product(self._find_one(PRODUCTS, product_id), self.default_origin)

    @backend_call
    def create_product(self, data: Dict[str, Any]) -> Product:
        return normalize_product(self._create(PRODUCTS, _clean(data)), self.default_origin)

    @backend_call
    def update_product(self, product_id: str, updates: Dict[str, Any]) -> Product:
        return normalize_product(self._update(PRODUCTS, product_id, updates), self.default_origin)

    # ---- orders ----

    @backend_call
    def list_orders(self, start: Optional[datetime] = None, end: Optional[datetime] = None,
                    ascending: bool = False) -> List[Order]:
        cursor = self.db[ORDERS].find(self._range(start, end)).sort(
            "created_at", ASCENDING if ascending else DESCENDING)
        return [normalize_order(d) for d in cursor]

    @backend_call
    def get_order(self, order_id: str) -> Order:
        return normalize_order(self._find_one(ORDERS, order_id))

    @backend_call
    def insert_order(self, data: Dict[str, Any]) -> Order:
        return normalize_order(self._create(ORDERS, data))

    @backend_call
    def delete_order(self, order_id: str) -> None:
        self.db[ORDERS].delete_one(_id_filter(order_id))

    @backend_call
    def delete_order_items(self, order_id: str) -> None:
        self.db[ORDER_ITEMS].delete_many({"order_id": {"$in": _id_values(order_id)}})

    @backend_call
    def list_order_items(self, order_ids: Iterable[str]) -> List[OrderItem]:
        ids = [v for i in order_ids for v in _id_values(i)]
        if not ids:
            return []
        cursor = self.db[ORDER_ITEMS].find({"order_id": {"$in": ids}})
        return [normalize_order_item(d) for d in cursor]

    @backend_call
    def insert_order_items(self, items: List[Dict[str, Any]]) -> List[OrderItem]:
        now = to_storage_time(utcnow())
        docs = [{**item, "created_at": now} for item in items]
        self.db[ORDER_ITEMS].insert_many(docs)
        return [normalize_order_item(d) for d in docs]

    # ---- sample requests ----

    @backend_call
    def list_sample_requests(self) -> List[SampleRequest]:
        cursor = self.db[SAMPLE_REQUESTS].find({}).sort("created_at", DESCENDING)
        return [normalize_sample_request(d) for d in cursor]

    @backend_call
    def get_sample_request(self, request_id: str) -> SampleRequest:
        return normalize_sample_request(self._find_one(SAMPLE_REQUESTS, request_id))

    @backend_call
    def create_sample_request(self, data: Dict[str, Any]) -> SampleRequest:
        return normalize_sample_request(self._create(SAMPLE_REQUESTS, data))

    @backend_call
    def count_sample_requests(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
        return self.db[SAMPLE_REQUESTS].count_documents(self._range(start, end))

    # ---- events ----

    @backend_call
    def list_events(self) -> List[Event]:
        cursor = self.db[EVENTS].find({}).sort("event_date", DESCENDING)
        return [normalize_event(d) for d in cursor]

    @backend_call
    def get_event(self, event_id: str) -> Event:
        return normalize_event(self._find_one(EVENTS, event_id))

    @backend_call
    def create_event(self, data: Dict[str, Any]) -> Event:
        return normalize_event(self._create(EVENTS, data))
