"""
View models for the admin panels and public pages.

Everything here is a pure function of records already fetched by the
repository: filtering and searching never trigger another query.
"""
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from config import settings
from schemas import CartLine, Event, EventStatus, Order, OrderItem, Product, ProductType, SampleRequest
from workflow import EVENT_WORKFLOW, ORDER_WORKFLOW, SAMPLE_WORKFLOW, Workflow

STATUS_FILTERS = ("all", "active", "processing", "completed")

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)
_FAR_PAST = datetime.min.replace(tzinfo=timezone.utc)


class RowAction(BaseModel):
    label: str
    next_status: Optional[str] = None


class OrderRow(BaseModel):
    id: str
    date: str
    time: str
    customer_name: str
    customer_phone: str
    shipping_address: str
    items: str
    total_amount: float
    payment_reference: str
    status: str
    status_class: str
    action: RowAction


class SampleRow(BaseModel):
    id: str
    date: str
    company_name: str
    contact_name: str
    email: str
    coffee_name: str
    notes: Optional[str] = None
    courier: str
    courier_account: str
    status: str
    status_class: str
    action: RowAction


class EventRow(BaseModel):
    id: str
    date: str
    title: str
    tag: str
    location: str
    status: str
    status_class: str
    action: RowAction


class PublicEvents(BaseModel):
    upcoming: List[Event]
    past: List[Event]


class CatalogRow(BaseModel):
    id: str
    name: str
    type_label: str
    stock_info: str
    is_active: bool
    status_class: str
    status_text: str
    toggle_label: str


class CartView(BaseModel):
    lines: List[CartLine]
    count: int
    total: float
    can_submit: bool


def _status_class(status: str) -> str:
    if status in ("processing", "shipped"):
        return "status-processing"
    if status == "completed":
        return "status-completed"
    if status == "cancelled":
        return "status-cancelled"
    return "status-pending"


def _row_action(workflow: Workflow, status: str) -> RowAction:
    action = workflow.next_action(status)
    if action is None:
        return RowAction(label=workflow.terminal_label or "")
    return RowAction(label=action.label, next_status=action.next_status)


def _passes_status_filter(status: str, status_filter: str) -> bool:
    completed = status == "completed"
    processing = status in ("processing", "shipped")
    if status_filter == "active":
        return not completed
    if status_filter == "processing":
        return processing
    if status_filter == "completed":
        return completed
    if status_filter == "all":
        return True
    raise ValueError(f"Unknown status filter: {status_filter}")


def _matches(term: str, *fields: str) -> bool:
    term = term.lower()
    return any(term in (f or "").lower() for f in fields)


# ------------------ Orders ------------------

def reconstruct_summary(order: Order, items: Iterable[OrderItem], names: Dict[str, str]) -> str:
    """Rebuild '<qty> x <name>' for older orders saved without a summary."""
    mine = [i for i in items if str(i.order_id) == str(order.id)]
    return ", ".join(f"{i.quantity} x {names.get(str(i.product_id), 'Coffee')}" for i in mine)


def order_rows(orders: Iterable[Order], items: Iterable[OrderItem], products: Iterable[Product],
               search: str = "", status_filter: str = "all") -> List[OrderRow]:
    items = list(items)
    names = {str(p.id): p.name for p in products}
    rows = []
    for order in orders:
        if not _passes_status_filter(order.status, status_filter):
            continue
        if not _matches(search, order.customer_name, order.payment_reference):
            continue
        summary = order.items_summary or reconstruct_summary(order, items, names) or "No items found"
        rows.append(OrderRow(
            id=order.id,
            date=order.created_at.strftime("%d/%m/%Y") if order.created_at else "",
            time=order.created_at.strftime("%H:%M") if order.created_at else "",
            customer_name=order.customer_name or "Unknown Customer",
            customer_phone=order.customer_phone or "No phone",
            shipping_address=order.shipping_address or "Not provided",
            items=summary,
            total_amount=order.total_amount,
            payment_reference=order.payment_reference or "Pending",
            status=order.status,
            status_class=_status_class(order.status),
            action=_row_action(ORDER_WORKFLOW, order.status),
        ))
    return rows


# ------------------ Sample requests ------------------

def sample_rows(requests: Iterable[SampleRequest], search: str = "", status_filter: str = "all") -> List[SampleRow]:
    rows = []
    for req in requests:
        if not _passes_status_filter(req.status, status_filter):
            continue
        if not _matches(search, req.company_name, req.contact_name, req.email):
            continue
        rows.append(SampleRow(
            id=req.id,
            date=req.created_at.strftime("%d/%m/%Y") if req.created_at else "",
            company_name=req.company_name,
            contact_name=req.contact_name,
            email=req.email,
            coffee_name=req.coffee_name,
            notes=req.notes,
            courier=req.courier,
            courier_account=req.courier_account,
            status=req.status,
            status_class=_status_class(req.status),
            action=_row_action(SAMPLE_WORKFLOW, req.status),
        ))
    return rows


# ------------------ Events ------------------

def event_rows(events: Iterable[Event]) -> List[EventRow]:
    rows = []
    for ev in events:
        upcoming = ev.status == EventStatus.UPCOMING.value
        rows.append(EventRow(
            id=ev.id,
            date=f"{ev.event_date.day} {ev.event_date:%b %Y}" if ev.event_date else "",
            title=ev.title,
            tag=ev.tag,
            location=ev.location,
            status=ev.status,
            status_class="status-processing" if upcoming else "status-completed",
            action=_row_action(EVENT_WORKFLOW, ev.status),
        ))
    return rows


def public_events(events: Iterable[Event]) -> PublicEvents:
    events = list(events)
    upcoming = sorted((e for e in events if e.status == EventStatus.UPCOMING.value),
                      key=lambda e: e.event_date or _FAR_FUTURE)
    past = sorted((e for e in events if e.status == EventStatus.PAST.value),
                  key=lambda e: e.event_date or _FAR_PAST, reverse=True)
    return PublicEvents(upcoming=upcoming, past=past)


# ------------------ Catalog ------------------

def catalog_rows(products: Iterable[Product]) -> List[CatalogRow]:
    rows = []
    for p in products:
        if p.type == ProductType.GREEN_EXPORT:
            type_label = "B2B Green"
            stock_info = f"{p.available_bags} Bags (60kg)"
        else:
            type_label = "B2C Roasted"
            price = int(p.price) if float(p.price).is_integer() else p.price
            stock_info = f"{settings.CURRENCY_LABEL} {price} | {p.retail_stock} in stock"
        rows.append(CatalogRow(
            id=p.id,
            name=p.name,
            type_label=type_label,
            stock_info=stock_info,
            is_active=p.is_active,
            status_class="status-active" if p.is_active else "status-inactive",
            status_text="Active (Live)" if p.is_active else "Hidden",
            toggle_label="Hide" if p.is_active else "Publish",
        ))
    return rows


# ------------------ Cart ------------------

def cart_view(lines: List[CartLine]) -> CartView:
    """Checkout page state; submission is disabled while the cart is empty."""
    return CartView(
        lines=list(lines),
        count=sum(line.quantity for line in lines),
        total=round(sum(line.line_total for line in lines), 2),
        can_submit=bool(lines),
    )
