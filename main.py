import json
import logging
import os
from datetime import date, datetime
from typing import List, Optional

import jwt
from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

import catalog
from cart import CartManager
from checkout import submit_order
from config import CART_STORAGE_KEY, settings
from dashboard import DashboardSummary, load_dashboard, resolve_window
from database import get_db
from errors import (
    BackendError, CheckoutError, EmptyCartError, InvalidTransitionError,
    RecordNotFoundError, StorefrontError,
)
from reports import orders_csv, packing_slip_html, report_filename
from repository import EVENT_PLACEHOLDER_IMAGE, StoreRepository, utcnow
from schemas import (
    CheckoutRequest, EventCreate, EventStatus, ProductAdminUpdate, ProductCreate,
    SampleRequestCreate, SampleStatus, StatusUpdate,
)
from storage import MemoryStorage
from views import (
    CatalogRow, EventRow, OrderRow, PublicEvents, SampleRow, catalog_rows,
    event_rows, order_rows, public_events, sample_rows,
)
from workflow import EVENT_WORKFLOW, ORDER_WORKFLOW, SAMPLE_WORKFLOW, advance

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ------------------ App Init ------------------
app = FastAPI(title="Coffee World API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"message": "Coffee World Backend Running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    db = get_db()
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = db.name
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


# ------------------ Dependencies ------------------

def get_repository() -> StoreRepository:
    db = get_db()
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return StoreRepository(db)


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)):
    """Claims of a session token issued by the external auth provider."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except InvalidTokenError:
        raise credentials_exception
    if payload.get("sub") is None:
        raise credentials_exception
    return payload


async def require_admin(user=Depends(get_current_user)):
    if user.get("role") not in settings.ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def _http_error(e: StorefrontError) -> HTTPException:
    if isinstance(e, RecordNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, EmptyCartError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


# ------------------ Storefront ------------------

@app.get("/api/products/retail")
def list_retail_products(
    roast: List[str] = Query([]),
    sort: str = Query("newest"),
    repo: StoreRepository = Depends(get_repository),
):
    try:
        products = catalog.fetch_retail(repo)
        shown = catalog.browse(products, {"roast": roast}, sort)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BackendError as e:
        raise _http_error(e)
    return {
        "results_count": len(shown),
        "facets": catalog.facet_options(products, catalog.RETAIL_FACETS),
        "products": shown,
    }


@app.get("/api/products/trade")
def list_trade_products(
    origin: List[str] = Query([]),
    species: List[str] = Query([]),
    grade: List[str] = Query([]),
    process: List[str] = Query([]),
    sort: str = Query("score"),
    repo: StoreRepository = Depends(get_repository),
):
    try:
        products = catalog.fetch_trade(repo)
        selections = {"origin": origin, "species": species, "grade": grade, "process": process}
        shown = catalog.browse(products, selections, sort)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BackendError as e:
        raise _http_error(e)
    return {
        "results_count": len(shown),
        "facets": catalog.facet_options(products, catalog.TRADE_FACETS),
        "products": shown,
    }


@app.post("/api/checkout", status_code=201)
def checkout(payload: CheckoutRequest, repo: StoreRepository = Depends(get_repository)):
    # The browser's cart arrives as a snapshot; rebuild it through the same restore path
    storage = MemoryStorage({CART_STORAGE_KEY: json.dumps([line.model_dump() for line in payload.items])})
    cart = CartManager(storage)
    try:
        order = submit_order(repo, cart, payload)
    except (EmptyCartError, CheckoutError) as e:
        logger.error("Checkout Error: %s", e)
        raise _http_error(e)
    return {
        "order_id": order.id,
        "total_amount": order.total_amount,
        "status": order.status,
        "items_summary": order.items_summary,
    }


@app.post("/api/samples", status_code=201)
def request_sample(payload: SampleRequestCreate, repo: StoreRepository = Depends(get_repository)):
    try:
        req = repo.create_sample_request({
            "product_id": payload.product_id,
            "coffee_name": payload.coffee_name,
            "company_name": payload.company_name,
            "contact_name": payload.contact_name,
            "email": payload.email,
            "shipping_carrier": payload.courier,
            "courier_account": payload.courier_account,
            "buyer_notes": payload.notes,
            "status": SampleStatus.PENDING.value,
        })
    except BackendError as e:
        raise _http_error(e)
    return {"id": req.id, "status": req.status, "coffee_name": req.coffee_name, "courier": req.courier}


@app.get("/api/events", response_model=PublicEvents)
def list_public_events(repo: StoreRepository = Depends(get_repository)):
    try:
        return public_events(repo.list_events())
    except BackendError as e:
        raise _http_error(e)


# ------------------ Admin: Orders ------------------

def _order_listing(repo: StoreRepository, search: str = "", status_filter: str = "all") -> List[OrderRow]:
    orders = repo.list_orders()
    items = repo.list_order_items(o.id for o in orders)
    products = repo.list_products()
    return order_rows(orders, items, products, search=search, status_filter=status_filter)


@app.get("/api/admin/orders", response_model=List[OrderRow], dependencies=[Depends(require_admin)])
def admin_list_orders(
    search: str = "",
    status_filter: str = Query("all", alias="status"),
    repo: StoreRepository = Depends(get_repository),
):
    try:
        return _order_listing(repo, search, status_filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorefrontError as e:
        raise _http_error(e)


@app.patch("/api/admin/orders/{order_id}/status", response_model=List[OrderRow], dependencies=[Depends(require_admin)])
def admin_update_order_status(order_id: str, payload: StatusUpdate, repo: StoreRepository = Depends(get_repository)):
    try:
        advance(repo, ORDER_WORKFLOW, order_id, payload.status)
        return _order_listing(repo)
    except StorefrontError as e:
        logger.error("Update Error: %s", e)
        raise _http_error(e)


@app.get("/api/admin/orders/{order_id}/packing-slip", response_class=HTMLResponse,
         dependencies=[Depends(require_admin)])
def admin_packing_slip(order_id: str, repo: StoreRepository = Depends(get_repository)):
    try:
        order = repo.get_order(order_id)
        items = repo.list_order_items([order.id])
        products = repo.list_products()
    except StorefrontError as e:
        raise _http_error(e)
    return HTMLResponse(packing_slip_html(order, items, products))


# ------------------ Admin: B2B Sample Requests ------------------

@app.get("/api/admin/samples", response_model=List[SampleRow], dependencies=[Depends(require_admin)])
def admin_list_samples(
    search: str = "",
    status_filter: str = Query("all", alias="status"),
    repo: StoreRepository = Depends(get_repository),
):
    try:
        return sample_rows(repo.list_sample_requests(), search=search, status_filter=status_filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorefrontError as e:
        raise _http_error(e)


@app.patch("/api/admin/samples/{request_id}/status", response_model=List[SampleRow],
           dependencies=[Depends(require_admin)])
def admin_update_sample_status(request_id: str, payload: StatusUpdate, repo: StoreRepository = Depends(get_repository)):
    try:
        advance(repo, SAMPLE_WORKFLOW, request_id, payload.status)
        return sample_rows(repo.list_sample_requests())
    except StorefrontError as e:
        logger.error("Update Error: %s", e)
        raise _http_error(e)


# ------------------ Admin: Events ------------------

@app.get("/api/admin/events", response_model=List[EventRow], dependencies=[Depends(require_admin)])
def admin_list_events(repo: StoreRepository = Depends(get_repository)):
    try:
        return event_rows(repo.list_events())
    except StorefrontError as e:
        raise _http_error(e)


@app.post("/api/admin/events", status_code=201, dependencies=[Depends(require_admin)])
def admin_create_event(payload: EventCreate, repo: StoreRepository = Depends(get_repository)):
    try:
        event = repo.create_event({
            "title": payload.title,
            "event_date": _midnight(payload.event_date),
            "tag": payload.tag,
            "location": payload.location,
            "description": payload.description,
            "image_url": payload.image_url or EVENT_PLACEHOLDER_IMAGE,
            "status": EventStatus.UPCOMING.value,
        })
    except StorefrontError as e:
        raise _http_error(e)
    return event


@app.patch("/api/admin/events/{event_id}/status", response_model=List[EventRow], dependencies=[Depends(require_admin)])
def admin_update_event_status(event_id: str, payload: StatusUpdate, repo: StoreRepository = Depends(get_repository)):
    try:
        advance(repo, EVENT_WORKFLOW, event_id, payload.status)
        return event_rows(repo.list_events())
    except StorefrontError as e:
        logger.error("Update Error: %s", e)
        raise _http_error(e)


def _midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)


# ------------------ Admin: Catalog ------------------

@app.get("/api/admin/products", response_model=List[CatalogRow], dependencies=[Depends(require_admin)])
def admin_list_products(repo: StoreRepository = Depends(get_repository)):
    try:
        return catalog_rows(repo.list_products())
    except StorefrontError as e:
        raise _http_error(e)


@app.post("/api/admin/products", status_code=201, dependencies=[Depends(require_admin)])
def admin_create_product(payload: ProductCreate, repo: StoreRepository = Depends(get_repository)):
    try:
        return repo.create_product(catalog.product_document(payload))
    except StorefrontError as e:
        raise _http_error(e)


@app.patch("/api/admin/products/{product_id}", dependencies=[Depends(require_admin)])
def admin_update_product(product_id: str, payload: ProductAdminUpdate, repo: StoreRepository = Depends(get_repository)):
    updates = catalog.product_updates(payload)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    try:
        return repo.update_product(product_id, updates)
    except StorefrontError as e:
        raise _http_error(e)


@app.post("/api/admin/products/{product_id}/toggle", response_model=List[CatalogRow],
          dependencies=[Depends(require_admin)])
def admin_toggle_product(product_id: str, repo: StoreRepository = Depends(get_repository)):
    try:
        product = repo.get_product(product_id)
        repo.update_product(product_id, {"is_active": not product.is_active})
        return catalog_rows(repo.list_products())
    except StorefrontError as e:
        logger.error("Update Error: %s", e)
        raise _http_error(e)


# ------------------ Admin: Dashboard & Reports ------------------

@app.get("/api/admin/dashboard", response_model=DashboardSummary, dependencies=[Depends(require_admin)])
def admin_dashboard(
    window: str = "all",
    start: Optional[date] = None,
    end: Optional[date] = None,
    repo: StoreRepository = Depends(get_repository),
):
    try:
        span = resolve_window(window, custom_start=start, custom_end=end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        return load_dashboard(repo, span).summary
    except StorefrontError as e:
        logger.error("Dashboard Error: %s", e)
        raise _http_error(e)


@app.get("/api/admin/reports/orders.csv", dependencies=[Depends(require_admin)])
def admin_orders_report(
    window: str = "all",
    start: Optional[date] = None,
    end: Optional[date] = None,
    repo: StoreRepository = Depends(get_repository),
):
    try:
        span = resolve_window(window, custom_start=start, custom_end=end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        snapshot = load_dashboard(repo, span)
    except StorefrontError as e:
        raise _http_error(e)
    now = utcnow()
    try:
        content = orders_csv(snapshot.orders, snapshot.summary, now)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(now.date())}"'},
    )


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
