"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

import logging
import re
from contextlib import suppress

from sqlalchemy import event, text
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session

from selfstudy.core.extensions import db
from selfstudy.repositories import RefreshTokenRepository, UserRepository
from selfstudy.uow.base import UnitOfWork

log = logging.getLogger(__name__)

# Dialects that understand ``SET TRANSACTION`` directives
_SET_TRANSACTION_DIALECTS = ("postgresql", "mysql", "mariadb")


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)
        self.refresh_tokens = RefreshTokenRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-write UoW over the Flask-scoped session.

    Commits on a clean exit; on failure (including a failed commit) the
    session is rolled back and the original exception propagates.
    """

    def __init__(self, session: Session | None = None) -> None:
        super().__init__(session=session if session is not None else db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # The session begins lazily on first use.
        return self

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only UoW: blocks writes and always rolls back on exit.

    When it opens the transaction itself on PostgreSQL or MySQL it also
    issues ``SET TRANSACTION ISOLATION LEVEL`` and ``READ ONLY``. Nested inside
    an open transaction (test fixtures, a caller's UoW) it attaches without
    touching the transaction and relies on the two in-process guards: one on
    ORM flushes and one on DML/DDL reaching the cursor.

    :param isolation_level: Isolation hint, ``None`` for the database default.
    :param session: Session override; defaults to ``db.session``.
    """

    _WRITE_STATEMENT = re.compile(
        r"^\s*(insert|update|delete|merge|alter|drop|truncate|create|replace)\b", re.IGNORECASE
    )

    def __init__(
        self, *, isolation_level: str | None = "READ COMMITTED", session: Session | None = None
    ) -> None:
        super().__init__(session=session if session is not None else db.session)
        self.isolation_level = isolation_level
        self._owns_transaction = False
        self._conn = None

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        try:
            self.session.begin()
            self._owns_transaction = True
        except InvalidRequestError:
            # Already inside a transaction: attach without SET TRANSACTION
            self._owns_transaction = False
        self._conn = self.session.connection()
        event.listen(self.session, "before_flush", self._block_flush)
        event.listen(self._conn, "before_cursor_execute", self._block_write)
        if self._owns_transaction and self._conn.dialect.name in _SET_TRANSACTION_DIALECTS:
            self._set_transaction_characteristics()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._owns_transaction:
                self.session.rollback()
        finally:
            self._owns_transaction = False
            with suppress(InvalidRequestError):
                event.remove(self.session, "before_flush", self._block_flush)
            if self._conn is not None:
                with suppress(InvalidRequestError):
                    event.remove(self._conn, "before_cursor_execute", self._block_write)
                self._conn = None

    def commit(self) -> None:
        """:raises RuntimeError: always, a read-only scope never commits."""
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    def _set_transaction_characteristics(self) -> None:
        statements = ["SET TRANSACTION READ ONLY"]
        if self.isolation_level:
            level = self.isolation_level.strip().upper()
            statements.insert(0, f"SET TRANSACTION ISOLATION LEVEL {level}")
        try:
            for statement in statements:
                self.session.execute(text(statement))
        except SQLAlchemyError as exc:
            log.warning("SET TRANSACTION failed (%s); relying on guards only.", exc)

    @staticmethod
    def _block_flush(session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError("Read-only UnitOfWork: ORM flush blocked.")

    def _block_write(self, conn, cursor, statement, parameters, context, executemany) -> None:
        match = self._WRITE_STATEMENT.match(statement or "")
        if match:
            raise RuntimeError(
                f"Read-only UnitOfWork: SQL statement blocked: {match.group(1).upper()}"
            )
