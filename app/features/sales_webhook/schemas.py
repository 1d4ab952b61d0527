"""Pydantic schemas for the sales webhook."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def utc_now_iso() -> str:
    """Current instant as an ISO-8601 UTC string."""
    return datetime.now(UTC).isoformat()


def parse_ts(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class SalePayload(BaseModel):
    """Webhook body sent by a vending device.

    Presence of vendo/amount/txn is checked on the raw JSON before this model
    is built; here every field is optional and only its shape is validated.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    device_key: str | None = Field(None, description="Machine-issued device identifier")
    device: str | None = Field(None, description="Legacy/alternate device identifier")
    vendo: str | None = Field(None, description="Machine/location identifier")
    amount: Decimal | None = Field(None, allow_inf_nan=False, description="Sale amount")
    txn: str | None = Field(None, description="Transaction id (idempotency key)")
    ts: str | None = Field(None, max_length=64, description="ISO-8601 transaction instant")
    metadata: dict[str, Any] | None = Field(None, description="Free-form key/value data")

    @field_validator("ts")
    @classmethod
    def validate_ts(cls, v: str | None) -> str | None:
        """Require ISO-8601 but keep the caller's string verbatim."""
        if v is not None:
            try:
                parse_ts(v)
            except ValueError as e:
                raise ValueError(f"'{v}' is not an ISO-8601 timestamp") from e
        return v

    @property
    def device_identifier(self) -> str | None:
        """Identifier used for tenant lookup: device_key, else device."""
        return self.device_key or self.device or None


class DeviceEntry(BaseModel):
    """Device registry row as returned by a lookup."""

    model_config = ConfigDict(from_attributes=True)

    tenant_id: str | None
    device_key: str | None = None
    device_name: str | None = None


class SaleRecord(BaseModel):
    """Sale candidate handed to the store for insertion."""

    tenant_id: str
    device: str
    vendo: str
    amount: Decimal
    txn: str
    ts: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SaleRead(BaseModel):
    """Persisted sales row returned to the caller."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    tenant_id: str
    device: str
    vendo: str
    amount: Decimal
    txn: str
    ts: str
    ts_at: datetime | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("sale_metadata", "metadata"),
    )
    created_at: datetime | None = None


class SaleInsertedResponse(BaseModel):
    """200 body when the sale was recorded."""

    ok: Literal[True] = True
    inserted: list[SaleRead]


class DuplicateSaleResponse(BaseModel):
    """200 body when the txn was already recorded for the tenant."""

    ok: Literal[True] = True
    message: str = "Duplicate txn ignored"
    txn: str
