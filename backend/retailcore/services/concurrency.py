# Overview: Transaction scoping, row locking and retry helpers shared by every mutating service.

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import (
    ConcurrentUpdateError,
    ConflictError,
    PartialFailureRolledBack,
    PersistenceFailure,
    RetailError,
    UnitOfWorkTimeout,
)
from ..extensions import db
"""
Unit-of-work invariants (authoritative)

- Every multi-step mutation runs inside exactly one unit_of_work().
- Writes go through UnitOfWork.add()/flush() so the scope knows how many
  writes a rollback undoes.
- Leaving the scope normally commits; leaving it by exception rolls back
  everything before the failure is surfaced.
- A failure before the first write propagates as raised (storage errors are
  translated to the typed taxonomy). A failure after >= 1 write is reported
  as PartialFailureRolledBack with the original error on `cause`.
- A scope older than UNIT_OF_WORK_TIMEOUT_SECONDS refuses further writes and
  refuses to commit.
"""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; unit_of_work() takes the
    database write lock up front with BEGIN IMMEDIATE instead.
    """
    return query.with_for_update().populate_existing()


class UnitOfWork:
    """Handle yielded by unit_of_work(); counts writes and enforces the deadline."""

    def __init__(self, session, *, name: str, timeout_seconds: float):
        self.session = session
        self.name = name
        self.writes = 0
        self.timeout_seconds = timeout_seconds
        self.deadline = time.monotonic() + timeout_seconds

    def check_deadline(self) -> None:
        if time.monotonic() > self.deadline:
            raise UnitOfWorkTimeout(
                f"{self.name} exceeded its {self.timeout_seconds:g}s time limit",
                details={"operation": self.name},
            )

    def add(self, obj):
        """Insert obj and flush so storage-assigned ids are available."""
        self.check_deadline()
        self.session.add(obj)
        self.session.flush()
        self.writes += 1
        return obj

    def flush(self) -> None:
        """Flush pending updates to already-loaded rows."""
        self.check_deadline()
        self.session.flush()
        self.writes += 1

    def delete(self, obj) -> None:
        self.check_deadline()
        self.session.delete(obj)
        self.session.flush()
        self.writes += 1


def _begin_write_transaction(session) -> None:
    """
    Take the database write lock at the start of the unit of work on SQLite.

    Other backends rely on SELECT ... FOR UPDATE row locks taken by services.
    """
    conn = session.connection()
    if conn.dialect.name != "sqlite":
        return
    raw = conn.connection.dbapi_connection
    if not getattr(raw, "in_transaction", False):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _translate(exc: Exception, uow: UnitOfWork | None) -> Exception:
    if isinstance(exc, RetailError):
        translated = exc
    elif isinstance(exc, IntegrityError):
        translated = ConflictError(
            "Write rejected by a uniqueness or integrity constraint",
            details={"operation": uow.name if uow else None, "constraint": str(exc.orig)},
        )
    elif isinstance(exc, StaleDataError):
        translated = ConcurrentUpdateError(
            "Row was modified concurrently",
            details={"operation": uow.name if uow else None},
        )
    elif isinstance(exc, (SQLAlchemyError, OverflowError)):
        # The sqlite3 driver raises OverflowError itself for integers past 64 bits
        translated = PersistenceFailure(
            "Storage failure",
            details={"operation": uow.name if uow else None, "error": str(exc)},
        )
    else:
        translated = exc

    if uow is not None and uow.writes > 0:
        return PartialFailureRolledBack(uow.name, uow.writes, translated)
    return translated


@contextmanager
def unit_of_work(name: str, *, timeout_seconds: float | None = None) -> Iterator[UnitOfWork]:
    """
    Scoped all-or-nothing write transaction.

    Usage:
        with unit_of_work("adjust_stock") as uow:
            uow.add(...)
    """
    if timeout_seconds is None:
        timeout_seconds = current_app.config["UNIT_OF_WORK_TIMEOUT_SECONDS"]

    session = db.session
    uow: UnitOfWork | None = None
    try:
        _begin_write_transaction(session)
        uow = UnitOfWork(session, name=name, timeout_seconds=timeout_seconds)
        yield uow
        uow.check_deadline()
        session.commit()
    except Exception as exc:
        session.rollback()
        translated = _translate(exc, uow)
        current_app.logger.warning(
            "Rolled back %s after %d write(s): %s",
            name,
            uow.writes if uow else 0,
            exc,
        )
        if translated is exc:
            raise
        raise translated from exc
    except BaseException:
        session.rollback()
        raise


def run_with_retry(
    func,
    *,
    retry_on: tuple[type[BaseException], ...] = (ConcurrentUpdateError,),
    attempts: int = 3,
    backoff_base: float | None = None,
):
    """
    Execute a whole unit of work again when it lost a race.

    Only the exception types in retry_on are retried; the final attempt's
    failure is re-raised unchanged.
    """
    if backoff_base is None:
        backoff_base = current_app.config["RETRY_BACKOFF_SECONDS"]
    attempts = max(attempts, 1)

    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.info(
                "Retrying after %s (attempt %d of %d)", exc, attempt + 2, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))
