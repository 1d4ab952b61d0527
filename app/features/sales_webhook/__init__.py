"""Sales webhook feature: authenticated, idempotent vending sale ingest."""

from app.features.sales_webhook.repository import (
    DuplicateTransactionError,
    SalesRepository,
    SalesStore,
    StorageError,
)
from app.features.sales_webhook.routes import router
from app.features.sales_webhook.schemas import (
    DuplicateSaleResponse,
    SaleInsertedResponse,
    SalePayload,
    SaleRecord,
)
from app.features.sales_webhook.service import SaleIngestService

__all__ = [
    "DuplicateSaleResponse",
    "DuplicateTransactionError",
    "SaleIngestService",
    "SaleInsertedResponse",
    "SalePayload",
    "SaleRecord",
    "SalesRepository",
    "SalesStore",
    "StorageError",
    "router",
]
