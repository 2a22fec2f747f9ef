"""
Prometheus metrics module for the club court engine.

Service timings are fed by ``@BaseService.measure_operation``; the
domain counters are incremented by the services that own each event.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "clubcourt_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "clubcourt_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "clubcourt_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Domain-specific custom counters
bookings_created_total = Counter(
    "clubcourt_bookings_created_total",
    "Bookings committed",
    ["exempt"],
    registry=REGISTRY,
)

bookings_cancelled_total = Counter(
    "clubcourt_bookings_cancelled_total",
    "Bookings cancelled",
    ["by"],  # owner | admin
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "clubcourt_booking_conflicts_total",
    "Rejected overlapping booking attempts",
    ["stage"],  # precheck | commit
    registry=REGISTRY,
)

coin_ledger_entries_total = Counter(
    "clubcourt_coin_ledger_entries_total",
    "Coin ledger entries appended",
    ["kind"],
    registry=REGISTRY,
)

payments_settled_total = Counter(
    "clubcourt_payments_settled_total",
    "Payment records created",
    ["play_type"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Helper class for recording metrics."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error":
            errors_total.labels(
                service=service, operation=operation, error_type=error_type or "unknown"
            ).inc()

    @staticmethod
    def record_booking_created(exempt: bool) -> None:
        bookings_created_total.labels(exempt="true" if exempt else "false").inc()

    @staticmethod
    def record_booking_cancelled(by_admin: bool) -> None:
        bookings_cancelled_total.labels(by="admin" if by_admin else "owner").inc()

    @staticmethod
    def record_booking_conflict(stage: str) -> None:
        booking_conflicts_total.labels(stage=stage).inc()

    @staticmethod
    def record_ledger_entry(kind: str) -> None:
        coin_ledger_entries_total.labels(kind=kind).inc()

    @staticmethod
    def record_payment_settled(play_type: str) -> None:
        payments_settled_total.labels(play_type=play_type).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Render the registry in Prometheus text exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
