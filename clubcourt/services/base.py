# clubcourt/services/base.py
"""
Shared plumbing for court services.

Every service gets a session, a class-named logger, a transaction
helper that retries transient storage faults, and the
``measure_operation`` decorator feeding both in-process stats and
Prometheus.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, TypeVar, cast

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import RepositoryException, ServiceException, StorageUnavailableException
from ..database import with_db_retry
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


def _storage_cause(exc: BaseException) -> BaseException:
    """Unwrap a RepositoryException to the driver error that caused it."""
    if isinstance(exc, RepositoryException) and isinstance(
        exc.__cause__, (OperationalError, IntegrityError)
    ):
        return exc.__cause__
    return exc


@dataclass
class OperationStats:
    """Running timings for one measured operation."""

    calls: int = 0
    succeeded: int = 0
    seconds: float = 0.0
    fastest: float = float("inf")
    slowest: float = 0.0

    def observe(self, elapsed: float, success: bool) -> None:
        self.calls += 1
        self.seconds += elapsed
        self.fastest = min(self.fastest, elapsed)
        self.slowest = max(self.slowest, elapsed)
        if success:
            self.succeeded += 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "count": self.calls,
            "success_count": self.succeeded,
            "failure_count": self.calls - self.succeeded,
            "success_rate": self.succeeded / self.calls,
            "total_time": self.seconds,
            "avg_time": self.seconds / self.calls,
            "min_time": self.fastest,
            "max_time": self.slowest,
        }


class BaseService:
    """
    Parent of every court service.

    Subclasses write through ``run_in_transaction`` and read through
    ``run_query``; both surface exhausted storage retries as
    StorageUnavailableException.
    """

    # service class name -> operation -> stats
    _stats: Dict[str, Dict[str, OperationStats]] = {}

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on a clean exit, roll back on any error.

        IntegrityError and OperationalError propagate unchanged (also when
        a repository wrapped them) so callers can map conflicts and the
        retry loop can see lock timeouts.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed")
        except (IntegrityError, OperationalError) as e:
            self.logger.warning(f"Transaction rolled back: {type(e).__name__}")
            self.db.rollback()
            raise
        except RepositoryException as e:
            self.db.rollback()
            cause = _storage_cause(e)
            if cause is not e:
                raise cause from e
            self.logger.error(f"Repository failure in transaction: {e}")
            raise ServiceException(f"Database operation failed: {e}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {e}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {e}") from e
        except Exception:
            self.db.rollback()
            raise

    def run_in_transaction(self, operation_name: str, func: Callable[[], T]) -> T:
        """
        Run ``func`` inside a fresh transaction, retrying transient storage faults.

        Each attempt starts from a rolled-back session. Once retries are
        exhausted the fault surfaces as StorageUnavailableException.
        """

        def attempt() -> T:
            with self.transaction():
                return func()

        try:
            return with_db_retry(operation_name, attempt, max_attempts=settings.db_retry_attempts)
        except OperationalError as exc:
            self.logger.error(
                "Storage unavailable",
                extra={"event": "storage_unavailable", "op": operation_name, "error": str(exc)},
            )
            raise StorageUnavailableException(operation_name, str(exc)) from exc

    def run_query(self, operation_name: str, func: Callable[[], T]) -> T:
        """Read-only counterpart of run_in_transaction."""

        def attempt() -> T:
            try:
                return func()
            except RepositoryException as exc:
                cause = _storage_cause(exc)
                if isinstance(cause, OperationalError):
                    raise cause from exc
                raise

        try:
            return with_db_retry(operation_name, attempt, max_attempts=settings.db_retry_attempts)
        except OperationalError as exc:
            self.db.rollback()
            raise StorageUnavailableException(operation_name, str(exc)) from exc

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method under ``operation_name``.

            @BaseService.measure_operation("booking_cancel")
            def cancel(self, booking_id, actor): ...

        Failures are counted with their exception type and re-raised.
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                started = time.perf_counter()
                error_type = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    self._observe(operation_name, elapsed, error_type is None)
                    if elapsed > settings.slow_operation_seconds:
                        self.logger.warning(
                            f"Slow operation: {operation_name} took {elapsed:.2f}s",
                            extra={"operation": operation_name, "elapsed": elapsed},
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="error" if error_type else "success",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context) -> None:
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _observe(self, operation: str, elapsed: float, success: bool) -> None:
        per_service = BaseService._stats.setdefault(self.__class__.__name__, {})
        per_service.setdefault(operation, OperationStats()).observe(elapsed, success)

    def get_metrics(self) -> Dict[str, Any]:
        """Stats per measured operation of this service class."""
        per_service = BaseService._stats.get(self.__class__.__name__, {})
        return {name: stats.as_dict() for name, stats in per_service.items() if stats.calls}

    def reset_metrics(self) -> None:
        BaseService._stats.pop(self.__class__.__name__, None)
        self.logger.info(f"Metrics reset for {self.__class__.__name__}")
