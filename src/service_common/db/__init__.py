"""
SQLAlchemy support for audited and soft-deletable entities.
"""

from .entities import (
    AuditableMixin,
    SoftDeletableMixin,
    current_auditor,
    reset_auditor_provider,
    set_auditor_provider,
)
from .repository import Page, Pageable, SoftDeleteOperations

__all__ = [
    "AuditableMixin",
    "SoftDeletableMixin",
    "current_auditor",
    "set_auditor_provider",
    "reset_auditor_provider",
    "Page",
    "Pageable",
    "SoftDeleteOperations",
]
