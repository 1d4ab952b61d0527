"""Feature-specific test fixtures for the sales webhook."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings, get_settings
from app.features.sales_webhook.repository import DuplicateTransactionError, StorageError
from app.features.sales_webhook.routes import get_sales_store
from app.features.sales_webhook.schemas import DeviceEntry, SaleRead, SaleRecord, parse_ts
from app.features.sales_webhook.service import SaleIngestService
from app.main import app

WEBHOOK_SECRET = "test-webhook-secret"


class FakeSalesStore:
    """In-memory SalesStore enforcing (tenant_id, txn) uniqueness."""

    def __init__(
        self,
        devices: list[DeviceEntry] | None = None,
        lookup_error: Exception | None = None,
        insert_error: Exception | None = None,
    ) -> None:
        self.devices = devices if devices is not None else default_devices()
        self.lookup_error = lookup_error
        self.insert_error = insert_error
        self.lookups: list[str] = []
        self.insert_attempts: list[SaleRecord] = []
        self.records: list[SaleRecord] = []

    async def find_devices(self, identifier: str) -> list[DeviceEntry]:
        self.lookups.append(identifier)
        if self.lookup_error is not None:
            raise self.lookup_error
        by_key = [d for d in self.devices if d.device_key == identifier]
        by_name = [d for d in self.devices if d.device_name == identifier and d not in by_key]
        return (by_key + by_name)[:2]

    async def insert_sale(self, record: SaleRecord) -> list[SaleRead]:
        self.insert_attempts.append(record)
        if self.insert_error is not None:
            raise self.insert_error
        if any(r.tenant_id == record.tenant_id and r.txn == record.txn for r in self.records):
            raise DuplicateTransactionError(record.tenant_id, record.txn)
        self.records.append(record)
        return [
            SaleRead(
                id=len(self.records),
                tenant_id=record.tenant_id,
                device=record.device,
                vendo=record.vendo,
                amount=record.amount,
                txn=record.txn,
                ts=record.ts,
                ts_at=parse_ts(record.ts),
                metadata=record.metadata,
            )
        ]


def default_devices() -> list[DeviceEntry]:
    """Registry fixture data.

    "hallway" is a device_name shared by two entries; "KEY-B1" is both a
    device_key and another entry's device_name.
    """
    return [
        DeviceEntry(tenant_id="tenant-a", device_key="KEY-A1", device_name="lobby-vendo"),
        DeviceEntry(tenant_id="tenant-b", device_key="KEY-B1", device_name="gym-vendo"),
        DeviceEntry(tenant_id=None, device_key="KEY-ORPHAN", device_name="orphan-vendo"),
        DeviceEntry(tenant_id="tenant-a", device_key="KEY-A2", device_name="hallway"),
        DeviceEntry(tenant_id="tenant-b", device_key="KEY-B2", device_name="hallway"),
        DeviceEntry(tenant_id="tenant-c", device_key="KEY-C1", device_name="KEY-B1"),
    ]


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a known webhook secret."""
    return Settings(
        app_env="testing",
        database_url="postgresql+asyncpg://ledger@localhost:5432/ledger",
        database_password="pw",
        webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def fake_store() -> FakeSalesStore:
    """Fresh in-memory store with the default registry."""
    return FakeSalesStore()


@pytest.fixture
def service(test_settings: Settings, fake_store: FakeSalesStore) -> SaleIngestService:
    """Ingest service wired to the fake store."""
    return SaleIngestService(settings=test_settings, store=fake_store)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Headers carrying the correct webhook secret."""
    return {"X-Webhook-Secret": WEBHOOK_SECRET}


@pytest.fixture
def sale_payload() -> dict[str, Any]:
    """A complete, valid webhook payload."""
    return {
        "device_key": "KEY-A1",
        "vendo": "VENDO-7",
        "amount": 20,
        "txn": "TXN-0001",
        "ts": "2024-05-01T08:30:00+00:00",
        "metadata": {"coins": [5, 5, 10], "slot": "B3"},
    }


@pytest.fixture
async def client(
    test_settings: Settings, fake_store: FakeSalesStore
) -> AsyncGenerator[AsyncClient, None]:
    """Test client with settings and store dependency overrides."""
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_sales_store] = lambda: fake_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def lookup_failure() -> StorageError:
    """Storage error raised by a failing device query."""
    return StorageError("Device lookup failed", detail="connection refused")


@pytest.fixture
def make_service(test_settings: Settings):
    """Factory for a service over a custom FakeSalesStore."""

    def _make(**store_kwargs: Any) -> tuple[SaleIngestService, FakeSalesStore]:
        store = FakeSalesStore(**store_kwargs)
        return SaleIngestService(settings=test_settings, store=store), store

    return _make
