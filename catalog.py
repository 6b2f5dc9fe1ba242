from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from repository import RETAIL_PLACEHOLDER_IMAGE, TRADE_PLACEHOLDER_IMAGE, StoreRepository
from schemas import Product, ProductAdminUpdate, ProductCreate, ProductType

# facet name -> Product attribute
FACET_FIELDS: Dict[str, str] = {
    "origin": "region",
    "species": "species",
    "grade": "grade",
    "process": "process",
    "roast": "roast_level",
}
RETAIL_FACETS = ("roast",)
TRADE_FACETS = ("origin", "species", "grade", "process")

ROAST_ORDER = ("light", "medium-light", "medium", "medium-dark", "dark")

SORT_KEYS = ("price_asc", "price_desc", "roast", "newest", "score")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def roast_rank(level: Optional[str]) -> int:
    try:
        return ROAST_ORDER.index((level or "").strip().lower().replace(" ", "-"))
    except ValueError:
        return len(ROAST_ORDER)


def filter_products(products: Iterable[Product], selections: Mapping[str, Iterable[str]]) -> List[Product]:
    """
    AND across facets, OR within one facet. A facet with nothing selected
    does not restrict the result.
    """
    active = {}
    for facet, values in selections.items():
        if facet not in FACET_FIELDS:
            raise ValueError(f"Unknown facet: {facet}")
        chosen = set(values or ())
        if chosen:
            active[FACET_FIELDS[facet]] = chosen
    return [p for p in products if all(getattr(p, attr) in chosen for attr, chosen in active.items())]


def sort_products(products: Iterable[Product], key: str) -> List[Product]:
    items = list(products)
    if key == "price_asc":
        return sorted(items, key=lambda p: p.price)
    if key == "price_desc":
        return sorted(items, key=lambda p: p.price, reverse=True)
    if key == "roast":
        return sorted(items, key=lambda p: roast_rank(p.roast_level))
    if key == "newest":
        return sorted(items, key=lambda p: p.created_at or _EPOCH, reverse=True)
    if key == "score":
        # unscored lots last
        return sorted(items, key=lambda p: (p.cupping_score is None, -(p.cupping_score or 0)))
    raise ValueError(f"Unknown sort key: {key}")


def browse(products: Iterable[Product], selections: Optional[Mapping[str, Iterable[str]]] = None,
           sort: str = "newest") -> List[Product]:
    return sort_products(filter_products(products, selections or {}), sort)


def fetch_retail(repo: StoreRepository) -> List[Product]:
    return repo.list_products(ProductType.ROASTED_RETAIL, active_only=True)


def fetch_trade(repo: StoreRepository) -> List[Product]:
    return repo.list_products(ProductType.GREEN_EXPORT, active_only=True)


def facet_options(products: Iterable[Product], facets: Iterable[str]) -> Dict[str, List[str]]:
    """Distinct values per facet present in the fetched set, for the filter sidebar."""
    products = list(products)
    return {f: sorted({getattr(p, FACET_FIELDS[f]) for p in products}) for f in facets}


RETAIL_FIELDS = ("price", "original_price", "retail_stock", "roast_level")
TRADE_FIELDS = ("species", "region", "grade", "process", "cupping_score", "available_bags")


def product_document(payload: ProductCreate) -> Dict[str, object]:
    """New products go live immediately; only the fields of their channel are stored."""
    data = payload.model_dump()
    doc: Dict[str, object] = {
        "type": payload.type.value,
        "name": payload.name,
        "description": payload.description,
        "image_url": payload.image_url or (
            TRADE_PLACEHOLDER_IMAGE if payload.type == ProductType.GREEN_EXPORT else RETAIL_PLACEHOLDER_IMAGE),
        "is_active": True,
    }
    if payload.type == ProductType.GREEN_EXPORT:
        doc.update({k: data[k] for k in TRADE_FIELDS})
        doc["available_bags"] = payload.available_bags or 0
    else:
        doc.update({k: data[k] for k in RETAIL_FIELDS})
        doc["retail_stock"] = payload.retail_stock or 0
        doc["price"] = payload.price or 0
    return doc


def product_updates(payload: ProductAdminUpdate) -> Dict[str, object]:
    """Partial edit. Visibility is only ever changed through the toggle."""
    updates = payload.model_dump(exclude_unset=True)
    if "type" in updates and updates["type"] is not None:
        updates["type"] = updates["type"].value
    return updates
