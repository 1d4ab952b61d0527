"""Sales webhook route."""

import time

from fastapi import APIRouter, Depends, Request

from app.core.config import Settings, get_settings
from app.core.database import get_session_maker
from app.core.logging import get_logger
from app.features.sales_webhook.repository import SalesRepository, SalesStore
from app.features.sales_webhook.schemas import DuplicateSaleResponse, SaleInsertedResponse
from app.features.sales_webhook.service import IngestResult, SaleIngestService

logger = get_logger(__name__)

router = APIRouter(tags=["sales"])

# Every method is routed here so non-POST requests get the webhook's own 405 body
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_sales_store() -> SalesStore:
    """Dependency providing the PostgreSQL-backed store."""
    return SalesRepository(get_session_maker)


def get_ingest_service(
    settings: Settings = Depends(get_settings),
    store: SalesStore = Depends(get_sales_store),
) -> SaleIngestService:
    """Dependency wiring settings and store into the pipeline."""
    return SaleIngestService(settings=settings, store=store)


@router.api_route(
    "/sale",
    methods=ALL_METHODS,
    response_model=SaleInsertedResponse | DuplicateSaleResponse,
    summary="Record a vending sale",
    description="""
Record one point-of-sale transaction reported by a vending device.

Requires `X-Webhook-Secret`. The device is resolved to its tenant through
`device_key` (preferred) or `device`.

**Idempotency:** `(tenant, txn)` is unique. Re-delivering a txn returns
200 with `"Duplicate txn ignored"` and writes nothing.
""",
)
@router.api_route("/.netlify/functions/sale", methods=ALL_METHODS, include_in_schema=False)
async def receive_sale(
    request: Request,
    service: SaleIngestService = Depends(get_ingest_service),
) -> IngestResult:
    """Run the ingest pipeline for one webhook delivery.

    Args:
        request: Incoming request (method, headers, raw body).
        service: Ingest pipeline from dependency.

    Returns:
        Inserted or duplicate response.

    Raises:
        LedgerError: Rendered by the application exception handler.
    """
    start_time = time.perf_counter()
    body = await request.body()

    result = await service.ingest(request.method, request.headers, body)

    logger.info(
        "sales_webhook.request_completed",
        outcome="inserted" if isinstance(result, SaleInsertedResponse) else "duplicate",
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )
    return result
