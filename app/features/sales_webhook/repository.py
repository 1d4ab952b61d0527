"""Storage collaborator for the sales webhook.

Reads the device directory and performs the idempotent sales insert. All
storage failures leave this module as ``StorageError`` (or its subclass
``DuplicateTransactionError``) so the service never inspects driver errors.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from sqlalchemy import case, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.features.sales_webhook.models import DeviceRegistry, Sale
from app.features.sales_webhook.schemas import DeviceEntry, SaleRead, SaleRecord, parse_ts

logger = get_logger(__name__)

# One device_key match, or two device_name matches, is enough to decide
DEVICE_MATCH_LIMIT = 2

UNIQUE_VIOLATION_SQLSTATE = "23505"

# Connection refused/timeouts surface as OSError; a missing DSN as ValueError
STORAGE_ERRORS = (SQLAlchemyError, OSError, ValueError)


class StorageError(Exception):
    """Storage could not execute a query or insert."""

    def __init__(self, message: str, detail: str) -> None:
        super().__init__(message)
        self.detail = detail


class DuplicateTransactionError(StorageError):
    """(tenant_id, txn) already exists in the sales ledger."""

    def __init__(self, tenant_id: str, txn: str) -> None:
        super().__init__(
            "Duplicate transaction",
            detail=f"txn '{txn}' already recorded for tenant '{tenant_id}'",
        )
        self.tenant_id = tenant_id
        self.txn = txn


def error_detail(exc: BaseException) -> str:
    """Driver-level message of a storage error, without SQL or params."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc) or type(exc).__name__


def is_unique_violation(exc: IntegrityError) -> bool:
    """Check whether an IntegrityError is a unique-constraint violation.

    Prefers the SQLSTATE code; falls back to the driver message mentioning
    "duplicate" or "unique".
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    message = error_detail(exc).lower()
    return "duplicate" in message or "unique" in message


@runtime_checkable
class SalesStore(Protocol):
    """Protocol for the device directory + sales ledger."""

    async def find_devices(self, identifier: str) -> list[DeviceEntry]:
        """Find registry entries matching identifier by key or name."""
        ...

    async def insert_sale(self, record: SaleRecord) -> list[SaleRead]:
        """Insert a sale once, raising DuplicateTransactionError on conflict."""
        ...


class SalesRepository:
    """PostgreSQL implementation of SalesStore.

    Holds a factory for the shared session maker rather than a session, so
    nothing touches the database until a lookup is actually made.
    """

    def __init__(
        self,
        session_maker_factory: Callable[[], async_sessionmaker[AsyncSession]],
    ) -> None:
        self._session_maker_factory = session_maker_factory

    async def find_devices(self, identifier: str) -> list[DeviceEntry]:
        """Find device registry entries whose device_key or device_name equals identifier.

        Matching is exact and case-sensitive. A device_key match sorts first.

        Args:
            identifier: Device identifier from the payload.

        Returns:
            Up to DEVICE_MATCH_LIMIT entries, device_key matches first.

        Raises:
            StorageError: If the query cannot be executed.
        """
        stmt = (
            select(
                DeviceRegistry.tenant_id,
                DeviceRegistry.device_key,
                DeviceRegistry.device_name,
            )
            .where(
                or_(
                    DeviceRegistry.device_key == identifier,
                    DeviceRegistry.device_name == identifier,
                )
            )
            .order_by(
                case((DeviceRegistry.device_key == identifier, 0), else_=1),
                DeviceRegistry.id,
            )
            .limit(DEVICE_MATCH_LIMIT)
        )

        try:
            async with self._session_maker_factory()() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except STORAGE_ERRORS as e:
            raise StorageError("Device lookup failed", detail=error_detail(e)) from e

        return [DeviceEntry.model_validate(row) for row in rows]

    async def insert_sale(self, record: SaleRecord) -> list[SaleRead]:
        """Insert a sale row, relying on the (tenant_id, txn) constraint for dedup.

        Uses INSERT ... ON CONFLICT DO NOTHING RETURNING: an empty result
        means the constraint rejected the row.

        Args:
            record: Sale candidate.

        Returns:
            The persisted row(s).

        Raises:
            DuplicateTransactionError: If (tenant_id, txn) already exists.
            StorageError: If the insert fails for any other reason.
        """
        stmt = (
            pg_insert(Sale)
            .values(
                {
                    Sale.tenant_id: record.tenant_id,
                    Sale.device: record.device,
                    Sale.vendo: record.vendo,
                    Sale.amount: record.amount,
                    Sale.txn: record.txn,
                    Sale.ts: record.ts,
                    Sale.ts_at: parse_ts(record.ts),
                    Sale.sale_metadata: record.metadata,
                }
            )
            .on_conflict_do_nothing(constraint="uq_sales_tenant_txn")
            .returning(Sale)
        )

        try:
            async with self._session_maker_factory()() as session:
                result = await session.execute(stmt)
                rows = list(result.scalars().all())
                await session.commit()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicateTransactionError(record.tenant_id, record.txn) from e
            raise StorageError("Sale insert failed", detail=error_detail(e)) from e
        except STORAGE_ERRORS as e:
            raise StorageError("Sale insert failed", detail=error_detail(e)) from e

        if not rows:
            raise DuplicateTransactionError(record.tenant_id, record.txn)

        logger.debug("sales_webhook.sale_row_written", tenant_id=record.tenant_id, txn=record.txn)
        return [SaleRead.model_validate(row) for row in rows]
