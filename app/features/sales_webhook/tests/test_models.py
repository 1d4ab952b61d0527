"""Tests for sales webhook ORM models."""

from sqlalchemy import String, UniqueConstraint

from app.features.sales_webhook.models import DeviceRegistry, Sale


class TestDeviceRegistryModel:
    """Tests for DeviceRegistry model."""

    def test_tablename(self):
        assert DeviceRegistry.__tablename__ == "device_registry"

    def test_has_required_columns(self):
        columns = {c.name for c in DeviceRegistry.__table__.columns}
        assert {"id", "tenant_id", "device_key", "device_name"}.issubset(columns)

    def test_device_key_is_unique(self):
        assert DeviceRegistry.__table__.columns["device_key"].unique is True

    def test_device_name_is_not_unique(self):
        assert not DeviceRegistry.__table__.columns["device_name"].unique


class TestSaleModel:
    """Tests for Sale model."""

    def test_tablename(self):
        assert Sale.__tablename__ == "sales"

    def test_has_required_columns(self):
        columns = {c.name for c in Sale.__table__.columns}
        required = {
            "id",
            "tenant_id",
            "device",
            "vendo",
            "amount",
            "txn",
            "ts",
            "ts_at",
            "metadata",
            "created_at",
        }
        assert required.issubset(columns)
        assert "updated_at" not in columns

    def test_tenant_txn_unique_constraint(self):
        constraints = [
            c for c in Sale.__table__.constraints if isinstance(c, UniqueConstraint)
        ]
        grains = {(c.name, tuple(col.name for col in c.columns)) for c in constraints}
        assert ("uq_sales_tenant_txn", ("tenant_id", "txn")) in grains

    def test_ts_kept_as_text(self):
        assert isinstance(Sale.__table__.columns["ts"].type, String)

    def test_ts_at_is_timezone_aware(self):
        assert Sale.__table__.columns["ts_at"].type.timezone is True

    def test_metadata_column_not_nullable(self):
        assert Sale.__table__.columns["metadata"].nullable is False
