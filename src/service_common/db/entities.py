"""
SQLAlchemy mixins for audit and soft-delete support.

    class Transaction(Base, SoftDeletableMixin):
        __tablename__ = "transactions"
        id = mapped_column(Integer, primary_key=True)

Audit columns are filled by mapper events on insert and update; the acting
user comes from the security context unless another provider is installed
with ``set_auditor_provider``. Soft-deletable entities refuse ORM hard
deletes.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

import structlog
from sqlalchemy import Boolean, DateTime, String, event
from sqlalchemy.orm import Mapped, mapped_column

from ..core.exceptions import HardDeleteNotAllowedError
from ..security.context import get_authentication

logger = structlog.get_logger(__name__)

ANONYMOUS_USER = "anonymousUser"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def security_context_auditor() -> Optional[str]:
    """Name of the authenticated principal, or None."""
    authentication = get_authentication()
    if authentication is None or not authentication.is_authenticated:
        return None

    name = authentication.name
    if not name or name == ANONYMOUS_USER:
        return None
    return name


_auditor_provider: Callable[[], Optional[str]] = security_context_auditor


def current_auditor() -> Optional[str]:
    return _auditor_provider()


def set_auditor_provider(provider: Callable[[], Optional[str]]) -> None:
    """Replace the function used to resolve the acting user."""
    global _auditor_provider
    _auditor_provider = provider


def reset_auditor_provider() -> None:
    global _auditor_provider
    _auditor_provider = security_context_auditor


class AuditableMixin:
    """
    Mixin for creation and modification tracking.

    created_at and created_by are written once on insert; updated_at and
    updated_by change on every update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Record creation timestamp (UTC)",
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Record last update timestamp (UTC)",
    )
    created_by: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="User who created the record",
    )
    updated_by: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="User who last updated the record",
    )


class SoftDeletableMixin(AuditableMixin):
    """
    Mixin for logical deletion.

    Rows are flagged instead of removed. Use SoftDeleteOperations to query
    only active rows.
    """

    deleted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
        comment="Soft delete flag",
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Deletion timestamp (UTC)",
    )
    deleted_by: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="User who deleted the record",
    )

    def mark_deleted(self, deleted_by: Optional[str] = None) -> None:
        self.deleted = True
        self.deleted_at = _utcnow()
        self.deleted_by = deleted_by

    def restore(self) -> None:
        self.deleted = False
        self.deleted_at = None
        self.deleted_by = None

    @property
    def is_deleted(self) -> bool:
        return bool(self.deleted)


@event.listens_for(AuditableMixin, "before_insert", propagate=True)
def _set_audit_fields_on_insert(mapper, connection, target) -> None:
    now = _utcnow()
    auditor = current_auditor()
    target.created_at = now
    target.updated_at = now
    target.created_by = auditor
    target.updated_by = auditor


@event.listens_for(AuditableMixin, "before_update", propagate=True)
def _set_audit_fields_on_update(mapper, connection, target) -> None:
    target.updated_at = _utcnow()
    target.updated_by = current_auditor()


@event.listens_for(SoftDeletableMixin, "before_delete", propagate=True)
def _prevent_hard_delete(mapper, connection, target) -> None:
    entity_name = type(target).__name__
    logger.warning("Hard delete attempt blocked", entity=entity_name)
    raise HardDeleteNotAllowedError(
        f"Hard delete not allowed for {entity_name}. Use mark_deleted(deleted_by) instead."
    )
