"""Sale ingest pipeline.

One webhook delivery flows through a fixed sequence of stages; each stage
either hands its result to the next or ends the request with a LedgerError:

    method gate -> secret check -> JSON parse -> field extraction
        -> tenant resolution -> record construction -> idempotent insert

Authentication and payload validation happen before any storage access.
The insert is attempted at most once and duplicates are detected by the
storage constraint, so concurrent deliveries of the same txn are safe.
"""

from __future__ import annotations

import hmac
import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from app.core.config import Settings
from app.core.exceptions import (
    AmbiguousDeviceError,
    DeviceLookupFailedError,
    InsertFailedError,
    InternalServerError,
    InvalidFieldsError,
    InvalidPayloadError,
    LedgerError,
    MethodNotAllowedError,
    MissingFieldsError,
    UnauthorizedError,
    UnknownDeviceError,
)
from app.core.logging import get_logger
from app.features.sales_webhook.repository import (
    DuplicateTransactionError,
    SalesStore,
    StorageError,
)
from app.features.sales_webhook.schemas import (
    DeviceEntry,
    DuplicateSaleResponse,
    SaleInsertedResponse,
    SalePayload,
    SaleRecord,
    utc_now_iso,
)

logger = get_logger(__name__)

WEBHOOK_SECRET_HEADER = "x-webhook-secret"

IngestResult = SaleInsertedResponse | DuplicateSaleResponse


def check_method(method: str) -> None:
    """Reject anything but POST."""
    if method.upper() != "POST":
        raise MethodNotAllowedError()


def check_secret(headers: Mapping[str, str], expected: str) -> None:
    """Compare the webhook secret header against the configured secret.

    Header name matching is case-insensitive. An unconfigured secret rejects
    every request.
    """
    provided = next(
        (value for name, value in headers.items() if name.lower() == WEBHOOK_SECRET_HEADER),
        None,
    )
    if not expected or not provided:
        raise UnauthorizedError()
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError()


def parse_body(body: bytes) -> dict[str, Any]:
    """Decode the JSON body. Empty bodies are ``{}``; non-objects carry no fields."""
    try:
        parsed = json.loads(body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidPayloadError() from e
    return parsed if isinstance(parsed, dict) else {}


def extract_payload(raw: dict[str, Any]) -> SalePayload:
    """Check required fields and validate field shapes.

    vendo and txn must be present and non-empty; amount must be present and
    non-null (0 is valid).
    """
    if not raw.get("vendo") or raw.get("amount") is None or not raw.get("txn"):
        raise MissingFieldsError()

    try:
        return SalePayload.model_validate(raw)
    except ValidationError as e:
        fields = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in e.errors()
        ]
        raise InvalidFieldsError(fields) from e


def select_device(identifier: str, entries: list[DeviceEntry]) -> DeviceEntry:
    """Pick the registry entry an identifier refers to.

    A device_key match wins. Otherwise exactly one device_name match is
    required; several are reported rather than guessed between.
    """
    for entry in entries:
        if entry.device_key == identifier:
            return entry
    if len(entries) > 1:
        raise AmbiguousDeviceError(identifier)
    if not entries:
        raise UnknownDeviceError()
    return entries[0]


class SaleIngestService:
    """Turns one webhook request into at most one new sales row.

    Args:
        settings: Immutable application settings (webhook secret).
        store: Device directory and sales ledger.
    """

    def __init__(self, settings: Settings, store: SalesStore) -> None:
        self._settings = settings
        self._store = store

    async def ingest(self, method: str, headers: Mapping[str, str], body: bytes) -> IngestResult:
        """Run the full pipeline for one request.

        Args:
            method: HTTP method.
            headers: Request headers.
            body: Raw request body.

        Returns:
            Inserted or duplicate response body.

        Raises:
            LedgerError: For every rejected request, including unexpected
                faults (as InternalServerError).
        """
        try:
            check_method(method)
            check_secret(headers, self._settings.webhook_secret)
            payload = extract_payload(parse_body(body))
            tenant_id = await self.resolve_tenant(payload.device_identifier)
            record = self.build_record(tenant_id, payload)
            return await self.record_sale(record)
        except LedgerError:
            raise
        except Exception as e:
            logger.error(
                "sales_webhook.unhandled_error",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise InternalServerError() from e

    async def resolve_tenant(self, identifier: str | None) -> str:
        """Resolve the owning tenant of a device identifier.

        Raises:
            UnknownDeviceError: No identifier, no match, or no tenant on the match.
            AmbiguousDeviceError: Several device_name matches, no device_key match.
            DeviceLookupFailedError: The lookup itself failed.
        """
        if not identifier:
            logger.info("sales_webhook.device_missing")
            raise UnknownDeviceError()

        try:
            entries = await self._store.find_devices(identifier)
        except StorageError as e:
            logger.error(
                "sales_webhook.device_lookup_failed",
                device=identifier,
                error=e.detail,
                exc_info=True,
            )
            raise DeviceLookupFailedError(e.detail) from e

        try:
            entry = select_device(identifier, entries)
        except AmbiguousDeviceError:
            logger.warning(
                "sales_webhook.device_ambiguous",
                device=identifier,
                tenant_ids=[e.tenant_id for e in entries],
            )
            raise

        if not entry.tenant_id:
            logger.info("sales_webhook.device_without_tenant", device=identifier)
            raise UnknownDeviceError()
        return entry.tenant_id

    @staticmethod
    def build_record(tenant_id: str, payload: SalePayload) -> SaleRecord:
        """Build the sale candidate; the caller's identifier string is kept as-is."""
        return SaleRecord(
            tenant_id=tenant_id,
            device=payload.device_identifier or "",
            vendo=payload.vendo or "",
            amount=payload.amount if payload.amount is not None else 0,
            txn=payload.txn or "",
            ts=payload.ts or utc_now_iso(),
            metadata=payload.metadata or {},
        )

    async def record_sale(self, record: SaleRecord) -> IngestResult:
        """Insert the sale once, folding a duplicate txn into success."""
        try:
            inserted = await self._store.insert_sale(record)
        except DuplicateTransactionError:
            logger.info(
                "sales_webhook.duplicate_ignored",
                tenant_id=record.tenant_id,
                txn=record.txn,
            )
            return DuplicateSaleResponse(txn=record.txn)
        except StorageError as e:
            logger.error(
                "sales_webhook.insert_failed",
                tenant_id=record.tenant_id,
                txn=record.txn,
                error=e.detail,
                exc_info=True,
            )
            raise InsertFailedError(e.detail) from e

        logger.info(
            "sales_webhook.sale_inserted",
            tenant_id=record.tenant_id,
            device=record.device,
            vendo=record.vendo,
            txn=record.txn,
        )
        return SaleInsertedResponse(inserted=inserted)
