# Overview: Pytest coverage for unit-of-work scoping, error translation and retries.

import time

import pytest
from sqlalchemy.exc import IntegrityError

from retailcore.errors import (
    ConcurrentUpdateError,
    ConflictError,
    ItemNotFound,
    PartialFailureRolledBack,
    PersistenceFailure,
    RetailError,
    UnitOfWorkTimeout,
)
from retailcore.models import InventoryItem
from retailcore.services.concurrency import run_with_retry, unit_of_work
from retailcore.services.outcome import Outcome, attempt


def _item(sku="UOW-1"):
    return InventoryItem(
        sku=sku,
        name="Scoped Item",
        category="Test",
        price_cents=100,
        stock=1,
        reorder_point=0,
    )


class TestUnitOfWork:
    def test_commit_on_success(self, db_session):
        with unit_of_work("insert_item") as uow:
            uow.add(_item())
            assert uow.writes == 1

        assert db_session.query(InventoryItem).count() == 1

    def test_domain_error_before_write_propagates_unchanged(self, db_session):
        with pytest.raises(ItemNotFound):
            with unit_of_work("lookup"):
                raise ItemNotFound(7)

    def test_error_after_write_rolls_back(self, db_session):
        with pytest.raises(PartialFailureRolledBack) as exc_info:
            with unit_of_work("two_inserts") as uow:
                uow.add(_item("A"))
                uow.add(_item("B"))
                raise ItemNotFound(3)

        error = exc_info.value
        assert error.writes_undone == 2
        assert isinstance(error.cause, ItemNotFound)
        assert error.details["cause_kind"] == "not_found"
        assert db_session.query(InventoryItem).count() == 0

    def test_integrity_error_before_any_write_is_conflict(self, db_session):
        with pytest.raises(ConflictError):
            with unit_of_work("raw_conflict"):
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    def test_duplicate_insert_after_write_is_rolled_back(self, db_session):
        with pytest.raises(PartialFailureRolledBack) as exc_info:
            with unit_of_work("duplicate_skus") as uow:
                uow.add(_item("DUP"))
                uow.add(_item("DUP"))

        assert isinstance(exc_info.value.cause, ConflictError)
        assert db_session.query(InventoryItem).count() == 0

    def test_driver_overflow_is_persistence_failure(self, db_session):
        with pytest.raises(PersistenceFailure):
            with unit_of_work("overflow"):
                raise OverflowError("Python int too large to convert to SQLite INTEGER")

    def test_driver_overflow_after_write_is_rolled_back(self, db_session):
        with pytest.raises(PartialFailureRolledBack) as exc_info:
            with unit_of_work("overflow_after_write") as uow:
                uow.add(_item())
                raise OverflowError("Python int too large to convert to SQLite INTEGER")

        assert isinstance(exc_info.value.cause, PersistenceFailure)
        assert db_session.query(InventoryItem).count() == 0

    def test_expired_scope_refuses_writes(self, db_session):
        with pytest.raises(UnitOfWorkTimeout):
            with unit_of_work("slow", timeout_seconds=-1) as uow:
                uow.add(_item())

        assert db_session.query(InventoryItem).count() == 0

    def test_expired_scope_refuses_commit(self, db_session):
        with pytest.raises(PartialFailureRolledBack) as exc_info:
            with unit_of_work("slow_commit") as uow:
                uow.add(_item())
                uow.deadline = time.monotonic() - 1

        assert isinstance(exc_info.value.cause, UnitOfWorkTimeout)
        assert db_session.query(InventoryItem).count() == 0


class TestRunWithRetry:
    def test_retries_until_success(self, app, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConcurrentUpdateError("lost race")
            return "done"

        assert run_with_retry(flaky, attempts=3, backoff_base=0) == "done"
        assert len(calls) == 3

    def test_gives_up_after_attempts(self, app, db_session):
        calls = []

        def always_loses():
            calls.append(1)
            raise ConcurrentUpdateError("lost race")

        with pytest.raises(ConcurrentUpdateError):
            run_with_retry(always_loses, attempts=2, backoff_base=0)
        assert len(calls) == 2

    def test_other_errors_are_not_retried(self, app, db_session):
        calls = []

        def not_found():
            calls.append(1)
            raise ItemNotFound(1)

        with pytest.raises(ItemNotFound):
            run_with_retry(not_found, attempts=5, backoff_base=0)
        assert len(calls) == 1


class TestOutcome:
    def test_attempt_success(self):
        outcome = attempt(lambda x: x * 2, 21)
        assert outcome.ok is True
        assert outcome.unwrap() == 42

    def test_attempt_folds_retail_errors(self):
        def fails():
            raise ItemNotFound(5)

        outcome = attempt(fails)
        assert outcome.ok is False
        assert isinstance(outcome.error, RetailError)
        with pytest.raises(ItemNotFound):
            outcome.unwrap()

    def test_attempt_does_not_swallow_other_errors(self):
        def broken():
            raise KeyError("x")

        with pytest.raises(KeyError):
            attempt(broken)

    def test_failure_constructor(self):
        error = ConflictError("nope")
        assert Outcome.failure(error) == Outcome(ok=False, error=error)
