"""HTTP endpoint implementations for the SaveAI backend.

Every authenticated endpoint is wrapped by ``endpoint_wrapper``: by the time a
handler body runs, ``request.state.identity`` holds the caller and all store
calls below are scoped to that identity.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any
from urllib.parse import quote

import prometheus_client
from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from saveai.agent.affiliate import build_affiliate_url
from saveai.agent.analysis import ProductForAnalysis
from saveai.agent.product_lookup import find_cheapest
from saveai.db.base import (
    AFFILIATE_CLICKS,
    AUDIT_LOG,
    NOTIFICATIONS,
    SAVED_PRODUCTS,
    SEARCH_HISTORY,
    RecordStore,
    Row,
)
from saveai.models.schemas import (
    AffiliateResponse,
    Notification,
    RetryResponse,
    SavedProduct,
    SavedProductCreate,
    SearchRecord,
    SearchResponse,
)
from saveai.validation import (
    classify_store,
    is_number,
    is_positive_number,
    is_url,
    is_valid_currency,
    is_valid_identifier,
    require_fields,
    sanitize,
)

from .bootstrap import LOG_ERROR, LOG_INFO, METRICS, health_check
from .errors import RecordNotFound, RequestValidationFailed, missing_field
from .middleware import endpoint_wrapper, error_response, generate_request_id, internal_error_response
from .services import Services


def _services(request: Request) -> Services:
    return request.app.state.services


def _user_id(request: Request) -> str:
    return request.state.identity.user_id


async def _read_json_object(request: Request) -> dict[str, Any]:
    """Parse the body as a JSON object; parser errors are never echoed back."""

    try:
        data = await request.json()
    except Exception:
        raise RequestValidationFailed("Invalid request") from None
    if not isinstance(data, dict):
        raise RequestValidationFailed("Invalid request")
    return data


def _require(data: dict[str, Any], fields: list[str]) -> None:
    missing = require_fields(data, fields)
    if missing is not None:
        raise missing_field(missing)


def _require_identifier(value: Any, field: str) -> str:
    if not is_valid_identifier(value):
        raise RequestValidationFailed(f"Invalid identifier: {field}")
    return value


def _query_identifier(request: Request, field: str = "id") -> str:
    value = request.query_params.get(field)
    if not value:
        raise missing_field(field)
    return _require_identifier(value, field)


async def record_search_history(store: RecordStore, user_id: str, values: Row) -> Row | None:
    """Non-critical: a failed history insert is logged and the search still succeeds."""

    try:
        return await asyncio.to_thread(store.insert, SEARCH_HISTORY, user_id, values)
    except Exception as exc:
        LOG_ERROR("Search history insert failed", user_id=user_id, error=str(exc))
        METRICS.increment("persistence.swallowed", table=SEARCH_HISTORY)
        return None


async def record_affiliate_click(store: RecordStore, user_id: str, values: Row) -> bool:
    """Non-critical: returns whether the click was tracked."""

    try:
        await asyncio.to_thread(store.insert, AFFILIATE_CLICKS, user_id, values)
    except Exception as exc:
        LOG_ERROR("Affiliate click insert failed", user_id=user_id, error=str(exc))
        METRICS.increment("persistence.swallowed", table=AFFILIATE_CLICKS)
        return False
    return True


async def record_audit(store: RecordStore, user_id: str, action: str, table: str, record_id: str | None) -> None:
    try:
        await asyncio.to_thread(
            store.insert,
            AUDIT_LOG,
            user_id,
            {"action": action, "table_name": table, "record_id": record_id},
        )
    except Exception as exc:
        LOG_ERROR("Audit log insert failed", user_id=user_id, action=action, table=table, error=str(exc))
        METRICS.increment("persistence.swallowed", table=AUDIT_LOG)


@endpoint_wrapper
async def search_endpoint(request: Request) -> SearchResponse:
    """POST /api/search: classify the query, look up products and record history."""

    data = await _read_json_object(request)
    _require(data, ["query"])

    query = sanitize(data["query"])
    if not query:
        raise RequestValidationFailed("Invalid query")

    services = _services(request)
    user_id = _user_id(request)
    url_input = is_url(query)
    url_type = classify_store(query) if url_input else None

    products = services.product_lookup.lookup(query, is_url=url_input, store=url_type)
    cheapest = find_cheapest(products)
    input_type = "url" if url_input else "keyword"

    record = await record_search_history(
        services.store,
        user_id,
        {
            "query": query,
            "type": input_type,
            "url_type": url_type,
            "result_count": len(products),
            "cheapest_price": cheapest.price,
        },
    )
    search_id = str(record["id"]) if record else f"search_{int(time.time() * 1000)}"

    LOG_INFO("Search completed", user_id=user_id, type=input_type, results=len(products), recorded=record is not None)
    return SearchResponse(
        query=query,
        type=input_type,
        urlType=url_type,
        product=products[0],
        alternatives=products[1:],
        cheapest=cheapest,
        searchId=search_id,
    )


@endpoint_wrapper
async def analyze_endpoint(request: Request) -> Any:
    """POST /api/analyze: AI pros/cons analysis with provider fallback."""

    data = await _read_json_object(request)
    _require(data, ["productName", "productPrice", "productUrl"])

    if not is_number(data["productPrice"]):
        raise RequestValidationFailed("productPrice must be a number")

    name = sanitize(data["productName"])
    if not name:
        raise RequestValidationFailed("Invalid productName")

    product = ProductForAnalysis(
        name=name,
        price=float(data["productPrice"]),
        url=str(data["productUrl"]).strip(),
        description=sanitize(data.get("productDescription")) or None,
    )
    return await _services(request).analyzer.analyze(product)


@endpoint_wrapper
async def affiliate_endpoint(request: Request) -> AffiliateResponse:
    """POST /api/affiliate: build a tracked link and record the click."""

    data = await _read_json_object(request)
    _require(data, ["productUrl", "store"])

    original_url = str(data["productUrl"]).strip()
    if not is_url(original_url):
        raise RequestValidationFailed("productUrl must be a valid http(s) URL")
    store_name = sanitize(data["store"])
    if not store_name:
        raise RequestValidationFailed("Invalid store")
    product_id = sanitize(data.get("productId")) or None

    services = _services(request)
    settings = request.app.state.settings
    affiliate_url = build_affiliate_url(original_url, store_name, settings, product_id)
    tracked = await record_affiliate_click(
        services.store,
        _user_id(request),
        {
            "store": store_name,
            "original_url": original_url,
            "affiliate_url": affiliate_url,
            "product_id": product_id,
        },
    )
    return AffiliateResponse(affiliateUrl=affiliate_url, originalUrl=original_url, store=store_name, tracked=tracked)


@endpoint_wrapper
async def list_history_endpoint(request: Request) -> list[SearchRecord]:
    rows = await asyncio.to_thread(_services(request).store.select, SEARCH_HISTORY, _user_id(request))
    return [SearchRecord.model_validate(row) for row in rows]


@endpoint_wrapper
async def delete_history_endpoint(request: Request) -> dict[str, int]:
    """DELETE /api/history[?id=]: one owned record, or all of the caller's records."""

    store = _services(request).store
    user_id = _user_id(request)

    record_id: str | None = None
    if "id" in request.query_params:
        record_id = _query_identifier(request)

    deleted = await asyncio.to_thread(store.delete, SEARCH_HISTORY, user_id, record_id=record_id)
    if record_id is not None and deleted == 0:
        raise RecordNotFound("Search history record not found")

    await record_audit(store, user_id, "delete" if record_id else "delete_all", SEARCH_HISTORY, record_id)
    LOG_INFO("Search history deleted", user_id=user_id, deleted=deleted, bulk=record_id is None)
    return {"deleted": deleted}


@endpoint_wrapper
async def retry_history_endpoint(request: Request) -> RetryResponse:
    """POST /api/history/retry: hand back the original query for the client to resubmit."""

    data = await _read_json_object(request)
    _require(data, ["historyId"])
    history_id = _require_identifier(data["historyId"], "historyId")

    rows = await asyncio.to_thread(
        _services(request).store.select,
        SEARCH_HISTORY,
        _user_id(request),
        record_id=history_id,
    )
    if not rows:
        raise RecordNotFound("Search history record not found")

    query = rows[0]["query"]
    return RetryResponse(query=query, redirectUrl=f"/search?q={quote(query, safe='')}")


@endpoint_wrapper
async def list_saved_endpoint(request: Request) -> list[SavedProduct]:
    rows = await asyncio.to_thread(_services(request).store.select, SAVED_PRODUCTS, _user_id(request))
    return [SavedProduct.model_validate(row) for row in rows]


def _saved_product_values(data: dict[str, Any]) -> SavedProductCreate:
    _require(data, ["productName", "productUrl", "productPrice", "store"])

    if not is_positive_number(data["productPrice"]):
        raise RequestValidationFailed("productPrice must be a positive number")

    currency = str(data.get("productCurrency") or "USD").strip().upper()
    if not is_valid_currency(currency):
        raise RequestValidationFailed("productCurrency must be a 3-letter currency code")

    product_url = str(data["productUrl"]).strip()
    if not is_url(product_url):
        raise RequestValidationFailed("productUrl must be a valid http(s) URL")

    name = sanitize(data["productName"])
    if not name:
        raise RequestValidationFailed("Invalid productName")
    store_name = sanitize(data["store"])
    if not store_name:
        raise RequestValidationFailed("Invalid store")

    try:
        return SavedProductCreate(
            product_name=name,
            product_url=product_url,
            product_price=float(data["productPrice"]),
            product_currency=currency,
            product_image=sanitize(data.get("productImage")) or None,
            store=store_name,
            notes=sanitize(data.get("notes")) or None,
        )
    except ValidationError as exc:
        field = ".".join(str(part) for part in exc.errors()[0]["loc"])
        raise RequestValidationFailed(f"Invalid field: {field}") from None


@endpoint_wrapper
async def create_saved_endpoint(request: Request) -> SavedProduct:
    """POST /api/saved: validate fully before anything reaches the store."""

    data = await _read_json_object(request)
    values = _saved_product_values(data)

    user_id = _user_id(request)
    row = await asyncio.to_thread(
        _services(request).store.insert,
        SAVED_PRODUCTS,
        user_id,
        values.model_dump(),
    )
    LOG_INFO("Product saved", user_id=user_id, record_id=row["id"])
    return SavedProduct.model_validate(row)


@endpoint_wrapper
async def update_saved_endpoint(request: Request) -> SavedProduct:
    """PATCH /api/saved: only ``notes`` is mutable.

    An absent ``notes`` key leaves the stored note alone; ``null`` or ``""``
    clears it.
    """

    data = await _read_json_object(request)
    _require(data, ["id"])
    record_id = _require_identifier(data["id"], "id")
    store = _services(request).store
    user_id = _user_id(request)

    if "notes" not in data:
        rows = await asyncio.to_thread(store.select, SAVED_PRODUCTS, user_id, record_id=record_id)
        if not rows:
            raise RecordNotFound("Saved product not found")
        return SavedProduct.model_validate(rows[0])

    notes = data["notes"]
    if notes is not None and not isinstance(notes, str):
        raise RequestValidationFailed("notes must be a string")

    row = await asyncio.to_thread(
        store.update,
        SAVED_PRODUCTS,
        user_id,
        record_id,
        {"notes": sanitize(notes) or None},
    )
    if row is None:
        raise RecordNotFound("Saved product not found")
    return SavedProduct.model_validate(row)


@endpoint_wrapper
async def delete_saved_endpoint(request: Request) -> dict[str, bool]:
    record_id = _query_identifier(request)
    store = _services(request).store
    user_id = _user_id(request)

    deleted = await asyncio.to_thread(store.delete, SAVED_PRODUCTS, user_id, record_id=record_id)
    if deleted == 0:
        raise RecordNotFound("Saved product not found")

    await record_audit(store, user_id, "delete", SAVED_PRODUCTS, record_id)
    return {"deleted": True}


@endpoint_wrapper
async def list_notifications_endpoint(request: Request) -> list[Notification]:
    unread_only = request.query_params.get("unread", "").lower() in {"1", "true", "yes"}
    rows = await asyncio.to_thread(
        _services(request).store.select,
        NOTIFICATIONS,
        _user_id(request),
        filters={"read": False} if unread_only else None,
    )
    return [Notification.model_validate(row) for row in rows]


@endpoint_wrapper
async def mark_notification_read_endpoint(request: Request) -> Notification:
    data = await _read_json_object(request)
    _require(data, ["id"])
    record_id = _require_identifier(data["id"], "id")

    row = await asyncio.to_thread(
        _services(request).store.update,
        NOTIFICATIONS,
        _user_id(request),
        record_id,
        {"read": True},
    )
    if row is None:
        raise RecordNotFound("Notification not found")
    return Notification.model_validate(row)


async def health_endpoint(request: Request) -> JSONResponse:
    """GET /health: lightweight health signal for load balancers."""

    payload, status_code = await asyncio.to_thread(health_check, _services(request), request.app.state.settings)
    return JSONResponse(content={"success": status_code < 400, "data": payload}, status_code=status_code)


async def metrics_endpoint(request: Request) -> Response:
    """GET /metrics: Prometheus scrape endpoint."""

    content = prometheus_client.generate_latest().decode("utf-8")
    return PlainTextResponse(content=content, media_type="text/plain; version=0.0.4; charset=utf-8")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        error = "Endpoint not found"
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        error = "Method not allowed"
    else:
        error = str(exc.detail) if exc.detail else "HTTP error"
    return error_response(exc.status_code, error, request_id=generate_request_id())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", request_id=generate_request_id())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = generate_request_id()
    LOG_ERROR("Unhandled exception", request_id=request_id, error=str(exc))
    return internal_error_response(exc, request_id=request_id, production=request.app.state.settings.is_production)


__all__ = [
    "affiliate_endpoint",
    "analyze_endpoint",
    "create_saved_endpoint",
    "delete_history_endpoint",
    "delete_saved_endpoint",
    "health_endpoint",
    "http_exception_handler",
    "list_history_endpoint",
    "list_notifications_endpoint",
    "list_saved_endpoint",
    "mark_notification_read_endpoint",
    "metrics_endpoint",
    "record_affiliate_click",
    "record_audit",
    "record_search_history",
    "retry_history_endpoint",
    "search_endpoint",
    "unhandled_exception_handler",
    "update_saved_endpoint",
    "validation_exception_handler",
]
