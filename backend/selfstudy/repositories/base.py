"""Generic repository base and query utilities for SQLAlchemy 2.x.

Repositories are persistence-only:

* They never call commit/rollback; the Unit of Work owns the transaction.
* Sorting and filtering go through per-repository whitelists so public
  query parameters cannot reach arbitrary columns.
* Updates are restricted to the names in ``updatable`` to prevent
  mass-assignment.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

E = TypeVar("E")  # SQLAlchemy mapped entity type


@dataclass(slots=True)
class Pagination:
    """Pagination input parameters.

    :param page: 1-based page number.
    :type page: int
    :param limit: Page size.
    :type limit: int
    :param sort: Public sort tokens (e.g. ``["-created_at", "email"]``).
    :type sort: list[str]
    """

    page: int
    limit: int
    sort: list[str]


@dataclass(slots=True)
class Page(Generic[E]):
    """One page of results plus the total row count for the query."""

    items: Sequence[E]
    total: int
    page: int
    limit: int

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total


def parse_sort_tokens(raw: Iterable[str]) -> list[tuple[str, bool]]:
    """Parse ``["-created_at", "email"]`` into ``[("created_at", True), ("email", False)]``."""
    parsed: list[tuple[str, bool]] = []
    for token in raw:
        is_desc = token.startswith("-")
        field = (token[1:] if is_desc else token).strip()
        if field:
            parsed.append((field, is_desc))
    return parsed


def apply_sorting(
    stmt: Select[Any],
    sortable_fields: Mapping[str, InstrumentedAttribute[Any]],
    tokens: Iterable[str],
    *,
    pk_attr: InstrumentedAttribute[Any] | None,
) -> Select[Any]:
    """Apply whitelisted ``ORDER BY`` clauses, then the PK as a tiebreaker.

    Unknown tokens are ignored.
    """
    orders = [
        col.desc() if is_desc else col.asc()
        for field, is_desc in parse_sort_tokens(tokens)
        if (col := sortable_fields.get(field)) is not None
    ]
    if orders:
        stmt = stmt.order_by(*orders)
    if pk_attr is not None:
        stmt = stmt.order_by(pk_attr.asc())
    return stmt


class BaseRepository(Generic[E]):
    """Generic, persistence-only repository for a single aggregate.

    Subclasses set ``model`` and whitelist public names per concern:

    ``sortable`` / ``filterable``
        Column attribute names accepted in sort tokens and equality filters.
    ``updatable``
        Attribute names :meth:`assign_updates` may set (may include
        non-column setters such as ``password``).
    """

    model: type[E]
    sortable: ClassVar[tuple[str, ...]] = ()
    filterable: ClassVar[tuple[str, ...]] = ()
    updatable: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, session: Session) -> None:
        self.session = session

    # ------------------------------ Whitelists -------------------------------

    def _pk_attr(self) -> InstrumentedAttribute[Any] | None:
        return getattr(self.model, "id", None)

    def _columns(self, names: Iterable[str]) -> dict[str, InstrumentedAttribute[Any]]:
        return {name: getattr(self.model, name) for name in names}

    def _apply_equality_filters(
        self, stmt: Select[Any], filters: Mapping[str, Any] | None
    ) -> Select[Any]:
        """Apply ``column == value`` for whitelisted keys; other keys are ignored."""
        if not filters:
            return stmt
        allowed = self._columns(self.filterable)
        clauses = [allowed[k] == v for k, v in filters.items() if k in allowed]
        return stmt.where(and_(*clauses)) if clauses else stmt

    # --------------------------------- CRUD ----------------------------------

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so the database assigns its PK.

        :raises sqlalchemy.exc.IntegrityError: On unique/foreign-key violations.
        """
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Retrieve a single entity by primary key, or ``None``."""
        return self.session.get(self.model, entity_id)

    def flush(self) -> None:
        self.session.flush()

    def assign_updates(self, instance: E, fields: Mapping[str, Any], *, flush: bool = True) -> E:
        """Assign whitelisted keys via ``setattr`` so ``@validates`` hooks run.

        :param instance: Entity to mutate.
        :param fields: Public mapping of fields to assign.
        :param flush: Flush the session afterwards.
        :returns: The mutated instance.
        :raises ValueError: If ``fields`` holds a key outside ``updatable``.
        """
        unknown = sorted(k for k in fields if k not in self.updatable)
        if unknown:
            raise ValueError(f"Unknown or non-updatable fields: {unknown}")
        for key, value in fields.items():
            setattr(instance, key, value)
        if flush:
            self.flush()
        return instance

    # ------------------------------- Listing ---------------------------------

    def paginate(
        self,
        pagination: Pagination,
        *,
        filters: Mapping[str, Any] | None = None,
    ) -> Page[E]:
        """Return one page with a deterministic order and the filtered total.

        The ``COUNT`` runs against the unordered statement to skip sorting.
        """
        page = max(int(pagination.page), 1)
        limit = max(int(pagination.limit), 1)

        stmt = self._apply_equality_filters(select(self.model), filters)
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = int(self.session.execute(count_stmt).scalar_one())

        stmt = apply_sorting(
            stmt, self._columns(self.sortable), pagination.sort, pk_attr=self._pk_attr()
        )
        items = list(self.session.execute(stmt.limit(limit).offset((page - 1) * limit)).scalars())
        return Page(items=items, total=total, page=page, limit=limit)
