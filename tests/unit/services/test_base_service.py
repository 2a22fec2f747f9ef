from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from clubcourt.core.exceptions import (
    RepositoryException,
    ServiceException,
    StorageUnavailableException,
)
from clubcourt.monitoring.prometheus_metrics import REGISTRY, prometheus_metrics
from clubcourt.services.base import BaseService


class _TimedService(BaseService):
    @BaseService.measure_operation("ping")
    def ping(self, fail: bool = False) -> str:
        if fail:
            raise ValueError("boom")
        return "ok"


def _locked() -> OperationalError:
    return OperationalError("UPDATE accounts", {}, Exception("database is locked"))


@pytest.fixture
def session() -> Mock:
    return Mock()


def test_transaction_commits_on_success(session: Mock) -> None:
    service = BaseService(session)

    assert service.run_in_transaction("noop", lambda: 42) == 42
    session.commit.assert_called_once()
    session.rollback.assert_not_called()


def test_integrity_error_propagates_after_rollback(session: Mock) -> None:
    service = BaseService(session)
    error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    def explode():
        raise error

    with pytest.raises(IntegrityError):
        service.run_in_transaction("insert", explode)
    session.rollback.assert_called_once()


def test_repository_wrapped_integrity_error_is_unwrapped(session: Mock) -> None:
    service = BaseService(session)

    def explode():
        try:
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        except IntegrityError as exc:
            raise RepositoryException("insert failed") from exc

    with pytest.raises(IntegrityError):
        service.run_in_transaction("insert", explode)


def test_other_sqlalchemy_errors_become_service_exceptions(session: Mock) -> None:
    service = BaseService(session)

    def explode():
        raise SQLAlchemyError("driver exploded")

    with pytest.raises(ServiceException):
        service.run_in_transaction("explode", explode)


@patch("clubcourt.database.time.sleep")
def test_transient_lock_is_retried_then_succeeds(sleep: Mock, session: Mock) -> None:
    service = BaseService(session)
    attempts = {"n": 0}

    def flaky():
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise _locked()
        return "done"

    assert service.run_in_transaction("flaky", flaky) == "done"
    assert attempts["n"] == 2
    sleep.assert_called_once()


@patch("clubcourt.database.time.sleep")
def test_persistent_lock_surfaces_storage_unavailable(sleep: Mock, session: Mock) -> None:
    service = BaseService(session)

    def always_locked():
        raise _locked()

    with pytest.raises(StorageUnavailableException) as exc_info:
        service.run_in_transaction("locked", always_locked)

    assert exc_info.value.code == "STORAGE_UNAVAILABLE"
    assert exc_info.value.status_code == 503
    assert session.rollback.call_count == 3


def test_non_transient_operational_error_is_not_retried(session: Mock) -> None:
    service = BaseService(session)
    calls = {"n": 0}

    def broken_schema():
        calls["n"] += 1
        raise OperationalError("SELECT", {}, Exception("no such table: accounts"))

    with pytest.raises(StorageUnavailableException):
        service.run_query("read", broken_schema)
    assert calls["n"] == 1


def test_measure_operation_tracks_success_and_failure(session: Mock) -> None:
    service = _TimedService(session)
    service.reset_metrics()

    service.ping()
    with pytest.raises(ValueError):
        service.ping(fail=True)

    metrics = service.get_metrics()["ping"]
    assert metrics["count"] == 2
    assert metrics["success_count"] == 1
    assert metrics["failure_count"] == 1
    errors = REGISTRY.get_sample_value(
        "clubcourt_errors_total",
        {"service": "_TimedService", "operation": "ping", "error_type": "ValueError"},
    )
    assert errors and errors >= 1


def test_metrics_render_exposition_text() -> None:
    prometheus_metrics.record_booking_created(exempt=False)

    body = prometheus_metrics.get_metrics().decode()

    assert "clubcourt_bookings_created_total" in body
    assert prometheus_metrics.get_content_type().startswith("text/plain")
