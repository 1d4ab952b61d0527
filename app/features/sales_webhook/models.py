"""ORM models for the device directory and the sales ledger.

- DeviceRegistry: maps a device_key / device_name to its owning tenant.
  Provisioned out of band; this service only reads it.
- Sale: one observed vending transaction.

Grain: Sale uniquely keyed by (tenant_id, txn).
"""

import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import CreatedAtMixin, TimestampMixin


class DeviceRegistry(TimestampMixin, Base):
    """Device directory table.

    Attributes:
        id: Primary key.
        tenant_id: Owning tenant (opaque). NULL means not yet associated.
        device_key: Machine-issued identifier (unique).
        device_name: Human-assigned identifier (not unique).
    """

    __tablename__ = "device_registry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    device_key: Mapped[str | None] = mapped_column(
        String(128), unique=True, index=True, nullable=True
    )
    device_name: Mapped[str | None] = mapped_column(String(128), index=True, nullable=True)


class Sale(CreatedAtMixin, Base):
    """Sales ledger table.

    CRITICAL: (tenant_id, txn) is unique. Deduplication of repeated webhook
    deliveries relies on this constraint, never on an in-process check.

    Attributes:
        id: Surrogate primary key.
        tenant_id: Tenant resolved from the reporting device.
        device: Identifier string as supplied by the caller.
        vendo: Machine/location identifier.
        amount: Sale amount (currency unspecified).
        txn: Caller-supplied transaction id (idempotency key).
        ts: Transaction timestamp exactly as the caller sent it (ISO-8601).
        ts_at: The same instant parsed to timestamptz, for ordering and range queries.
        sale_metadata: Free-form JSON object (column ``metadata``).
    """

    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64))
    device: Mapped[str] = mapped_column(String(128))
    vendo: Mapped[str] = mapped_column(String(128))
    amount: Mapped[Decimal] = mapped_column(Numeric)
    txn: Mapped[str] = mapped_column(String(128))
    ts: Mapped[str] = mapped_column(String(64))
    ts_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    # "metadata" is reserved on declarative classes
    sale_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONB, nullable=False, default=dict
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "txn", name="uq_sales_tenant_txn"),
        Index("ix_sales_tenant_ts_at", "tenant_id", "ts_at"),
    )
