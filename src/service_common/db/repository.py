"""
Query helpers that exclude soft-deleted rows.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import ColumnElement, and_, func, select
from sqlalchemy.orm import Session

from .entities import SoftDeletableMixin

T = TypeVar("T", bound=SoftDeletableMixin)


@dataclass
class Pageable:
    """Zero-based page request. sort holds (column name, "asc" | "desc") pairs."""

    page: int = 0
    size: int = 20
    sort: List[Tuple[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.page < 0:
            raise ValueError("page must not be negative")
        if self.size < 1:
            raise ValueError("size must be at least 1")

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass
class Page(Generic[T]):
    content: List[T]
    total_elements: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size) if self.size else 0

    @property
    def is_first(self) -> bool:
        return self.page == 0

    @property
    def is_last(self) -> bool:
        return self.page + 1 >= self.total_pages


class SoftDeleteOperations(Generic[T]):
    """
    Repository operations for a SoftDeletableMixin model.

    criteria is any SQLAlchemy boolean clause, e.g. ``Transaction.amount > 0``;
    it is combined with the not-deleted filter.
    """

    def __init__(self, session: Session, model: Type[T]) -> None:
        self.session = session
        self.model = model

    def not_deleted(self) -> ColumnElement[bool]:
        return self.model.deleted.is_(False)

    def _where(self, criteria: Optional[ColumnElement[bool]] = None) -> ColumnElement[bool]:
        if criteria is None:
            return self.not_deleted()
        return and_(self.not_deleted(), criteria)

    def find_all_active(self, criteria: Optional[ColumnElement[bool]] = None) -> List[T]:
        statement = select(self.model).where(self._where(criteria))
        return list(self.session.scalars(statement).all())

    def find_all_active_page(
        self,
        pageable: Pageable,
        criteria: Optional[ColumnElement[bool]] = None,
    ) -> Page[T]:
        statement = select(self.model).where(self._where(criteria))
        for column_name, direction in pageable.sort:
            column = getattr(self.model, column_name)
            statement = statement.order_by(column.desc() if direction.lower() == "desc" else column.asc())
        statement = statement.offset(pageable.offset).limit(pageable.size)

        content = list(self.session.scalars(statement).all())
        return Page(
            content=content,
            total_elements=self.count_active(criteria),
            page=pageable.page,
            size=pageable.size,
        )

    def find_by_id_active(self, id: Any) -> Optional[T]:
        entity = self.session.get(self.model, id)
        if entity is None or entity.is_deleted:
            return None
        return entity

    def find_one_active(self, criteria: ColumnElement[bool]) -> Optional[T]:
        """Single active match or None; raises MultipleResultsFound on ambiguity."""
        statement = select(self.model).where(self._where(criteria))
        return self.session.scalars(statement).one_or_none()

    def count_active(self, criteria: Optional[ColumnElement[bool]] = None) -> int:
        statement = select(func.count()).select_from(self.model).where(self._where(criteria))
        return int(self.session.scalar(statement) or 0)

