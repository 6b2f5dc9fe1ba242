import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from config import settings
from repository import StoreRepository, utcnow
from schemas import Order, OrderItem, OrderStatus, Product, ProductType

logger = logging.getLogger(__name__)

HOURLY = "Hourly"
DAILY = "Daily"
MONTHLY = "Monthly"

# a mean month; shorter custom ranges chart by day
CUSTOM_DAILY_LIMIT = timedelta(milliseconds=2629800000)

CHART_TITLES = {
    "today": "Revenue Performance (Today)",
    "week": "Revenue Performance (Last 7 Days)",
    "month": "Revenue Performance (This Month)",
    "year": "Revenue Performance (This Year)",
    "custom": "Revenue Performance (Custom Range)",
    "all": "Revenue Performance (All Time)",
}

ACTIVE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value)


@dataclass(frozen=True)
class TimeWindow:
    kind: str
    start: Optional[datetime]
    end: Optional[datetime]
    granularity: str

    @property
    def title(self) -> str:
        return CHART_TITLES.get(self.kind, "Revenue Performance")


def resolve_window(kind: str = "all", now: Optional[datetime] = None,
                   custom_start: Optional[date] = None, custom_end: Optional[date] = None) -> TimeWindow:
    if kind not in CHART_TITLES:
        raise ValueError(f"Unknown dashboard window: {kind}")
    now = now or utcnow()
    midnight = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo or timezone.utc)
    start = end = None
    granularity = MONTHLY

    if kind == "today":
        start, granularity = midnight, HOURLY
    elif kind == "week":
        start, granularity = now - timedelta(days=7), DAILY
    elif kind == "month":
        start, granularity = midnight.replace(day=1), DAILY
    elif kind == "year":
        start = midnight.replace(month=1, day=1)
    elif kind == "custom" and custom_start:
        start = datetime.combine(custom_start, time.min, tzinfo=timezone.utc)
        end = datetime.combine(custom_end, time.max, tzinfo=timezone.utc) if custom_end else now
        if end - start < CUSTOM_DAILY_LIMIT:
            granularity = DAILY
    return TimeWindow(kind=kind, start=start, end=end, granularity=granularity)


class RevenuePoint(BaseModel):
    label: str
    revenue: float


class ProductSales(BaseModel):
    name: str
    quantity: int


class DashboardSummary(BaseModel):
    window: str
    title: str
    granularity: str
    total_revenue: float
    active_orders: int
    b2b_leads: int
    low_stock: int
    status_counts: Dict[str, int]
    revenue_trend: List[RevenuePoint]
    top_products: List[ProductSales]


def bucket_key(moment: datetime, granularity: str) -> str:
    if granularity == HOURLY:
        return f"{moment.hour}:00"
    if granularity == DAILY:
        return f"{moment:%b} {moment.day}"
    return f"{moment:%b %Y}"


def total_revenue(orders: Iterable[Order]) -> float:
    return round(sum(o.total_amount for o in orders if o.status != OrderStatus.CANCELLED.value), 2)


def status_counts(orders: Iterable[Order]) -> Dict[str, int]:
    counts = {s.value: 0 for s in OrderStatus}
    for order in orders:
        if order.status in counts:
            counts[order.status] += 1
        else:
            counts["other"] = counts.get("other", 0) + 1
    return counts


def revenue_trend(orders: Iterable[Order], granularity: str) -> List[RevenuePoint]:
    buckets: "OrderedDict[str, float]" = OrderedDict()
    for order in orders:
        if order.created_at is None:
            continue
        key = bucket_key(order.created_at, granularity)
        buckets.setdefault(key, 0.0)
        if order.status != OrderStatus.CANCELLED.value:
            buckets[key] += order.total_amount
    return [RevenuePoint(label=k, revenue=round(v, 2)) for k, v in buckets.items()]


def low_stock_count(products: Iterable[Product], threshold: int) -> int:
    return sum(1 for p in products if p.type == ProductType.ROASTED_RETAIL and p.retail_stock < threshold)


def top_products(items: Iterable[OrderItem], products: Iterable[Product], limit: int) -> List[ProductSales]:
    # ids are compared as strings: legacy rows mix ints and strings
    names = {str(p.id): p.name for p in products}
    sold: Dict[str, int] = {}
    for item in items:
        name = names.get(str(item.product_id), f"Unknown Item ({item.product_id})")
        sold[name] = sold.get(name, 0) + (item.quantity or 0)
    ranked = sorted(sold.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    return [ProductSales(name=n, quantity=q) for n, q in ranked]


def summarize(window: TimeWindow, orders: List[Order], items: List[OrderItem], products: List[Product],
              b2b_leads: int, low_stock_threshold: int = settings.LOW_STOCK_THRESHOLD,
              top_n: int = settings.TOP_PRODUCTS_LIMIT) -> DashboardSummary:
    return DashboardSummary(
        window=window.kind,
        title=window.title,
        granularity=window.granularity,
        total_revenue=total_revenue(orders),
        active_orders=sum(1 for o in orders if o.status in ACTIVE_STATUSES),
        b2b_leads=b2b_leads,
        low_stock=low_stock_count(products, low_stock_threshold),
        status_counts=status_counts(orders),
        revenue_trend=revenue_trend(orders, window.granularity),
        top_products=top_products(items, products, top_n),
    )


@dataclass(frozen=True)
class DashboardSnapshot:
    summary: DashboardSummary
    orders: List[Order]


def load_dashboard(repo: StoreRepository, window: TimeWindow) -> DashboardSnapshot:
    """Fetch everything the window needs and recompute from scratch."""
    orders = repo.list_orders(start=window.start, end=window.end, ascending=True)
    logger.debug("Dashboard: fetched %d orders", len(orders))
    items = repo.list_order_items(o.id for o in orders)
    logger.debug("Dashboard: fetched %d order items", len(items))
    if orders and not items:
        logger.warning("Orders exist in window %s but no order items were returned", window.kind)
    products = repo.list_products()
    leads = repo.count_sample_requests(start=window.start, end=window.end)
    summary = summarize(window, orders, items, products, leads)
    return DashboardSnapshot(summary=summary, orders=orders)
