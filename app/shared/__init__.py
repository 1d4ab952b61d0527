"""Shared model mixins used by every table."""

from app.shared.models import CreatedAtMixin, TimestampMixin

__all__ = [
    "CreatedAtMixin",
    "TimestampMixin",
]
