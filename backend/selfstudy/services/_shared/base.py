# selfstudy/services/_shared/base.py
from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from selfstudy.core import errors as api_errors
from selfstudy.repositories.base import Pagination
from selfstudy.services._shared.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)
from selfstudy.services._shared.policies.common import is_admin, is_owner
from selfstudy.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)

MAX_PAGE_SIZE = 100

# Most specific first; ServiceError is the catch-all
_API_ERRORS: tuple[tuple[type[ServiceError], type[api_errors.APIError]], ...] = (
    (NotFoundError, api_errors.NotFound),
    (ConflictError, api_errors.Conflict),
    (UnauthorizedError, api_errors.Unauthorized),
    (ForbiddenError, api_errors.Forbidden),
    (InvalidInputError, api_errors.BadRequest),
    (ServiceError, api_errors.APIError),
)


@dataclass(slots=True)
class ServiceContext:
    """
    Request-scoped data carried into services.

    :param actor_id: Authenticated account id (from the bearer ``sub`` claim).
    :param actor_role: Role claim of the authenticated account.
    :param request_id: Correlation id for logging.
    """

    actor_id: int | None = None
    actor_role: str | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Open read-only and read-write units of work.
    * Translate service errors into API errors.
    * Shared validation (pagination) and ownership policy.

    Notes
    -----
    Services never touch the global session directly; they go through a Unit
    of Work. ``uow_factory``/``ro_uow_factory`` allow callers (CLI, tests) to
    bind a different session.
    """

    DEFAULT_READ_ISOLATION = "READ COMMITTED"

    def __init__(
        self,
        *,
        ctx: ServiceContext | None = None,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] | None = None,
        ro_uow_factory: Callable[[], SQLAlchemyReadOnlyUnitOfWork] | None = None,
    ) -> None:
        self.ctx = ctx or ServiceContext()
        self._uow_factory = uow_factory
        self._ro_uow_factory = ro_uow_factory

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :rtype: SQLAlchemyUnitOfWork
        """
        if self._uow_factory is not None:
            return self._uow_factory()
        return SQLAlchemyUnitOfWork()

    def ro_uow(self, *, isolation: str | None = None) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :param isolation: Transaction isolation level override.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        if self._ro_uow_factory is not None:
            return self._ro_uow_factory()
        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=isolation or self.DEFAULT_READ_ISOLATION
        )

    @staticmethod
    def now_utc() -> datetime:
        return datetime.now(UTC)

    # ----------------------- Validation utilities ---------------------------

    def ensure_pagination(
        self, *, page: int, limit: int, sort: Iterable[str] | None = None
    ) -> Pagination:
        """
        Build a Pagination value object, clamping ``limit`` to ``MAX_PAGE_SIZE``.

        :rtype: Pagination
        """
        page = max(1, int(page))
        limit = min(max(1, int(limit)), MAX_PAGE_SIZE)
        return Pagination(page=page, limit=limit, sort=list(sort or []))

    # --------------------------- AuthZ --------------------------------------

    def ensure_owner_or_admin(self, owner_id: int, *, msg: str | None = None) -> None:
        """
        Allow the owner of a resource or any administrator.

        :raises ForbiddenError: Otherwise.
        """
        if is_admin(self.ctx.actor_role):
            return
        if not is_owner(actor_id=self.ctx.actor_id, owner_id=owner_id):
            raise ForbiddenError(msg or "You can only access your own account.")

    def ensure_admin(self, *, msg: str | None = None) -> None:
        """:raises ForbiddenError: Unless the actor has the admin role."""
        if not is_admin(self.ctx.actor_role):
            raise ForbiddenError(msg or "Administrator role required.")

    # -------------------------- Error handling ------------------------------

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :returns: Translated exception ready to be re-raised; unknown
            exceptions are returned untouched.
        :rtype: Exception
        """
        for service_type, api_type in _API_ERRORS:
            if isinstance(exc, service_type):
                return api_type(str(exc))
        return exc
