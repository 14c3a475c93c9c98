"""Core infrastructure utilities shared across the backend: logging shortcuts,
metrics, background jobs and health reporting."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.background import BackgroundScheduler
from prometheus_client import Counter, Histogram

from config import Settings
from saveai.db.base import AUDIT_LOG, RecordStore
from saveai.logging_config import get_logger

if TYPE_CHECKING:
    from .services import Services

LOGGER = get_logger("saveai")


def LOG_DEBUG(message: str, **kwargs: Any) -> None:
    LOGGER.debug(message, **kwargs)


def LOG_INFO(message: str, **kwargs: Any) -> None:
    LOGGER.info(message, **kwargs)


def LOG_WARNING(message: str, **kwargs: Any) -> None:
    LOGGER.warning(message, **kwargs)


def LOG_ERROR(message: str, **kwargs: Any) -> None:
    LOGGER.error(message, **kwargs)


class MetricsCollector:
    """Lazy Prometheus collector that creates metrics on demand.

    A metric's label names are fixed by its first use.
    """

    def __init__(self) -> None:
        self.counters: dict[str, Counter] = {}
        self.histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def increment(self, name: str, value: float = 1.0, **labels: Any) -> None:
        with self._lock:
            counter = self.counters.get(name)
            if counter is None:
                counter = Counter(name.replace(".", "_"), f"Counter for {name}", labelnames=list(labels))
                self.counters[name] = counter
        if labels:
            counter.labels(**labels).inc(value)
        else:
            counter.inc(value)

    def histogram(self, name: str, value: float, **labels: Any) -> None:
        with self._lock:
            histogram = self.histograms.get(name)
            if histogram is None:
                histogram = Histogram(name.replace(".", "_"), f"Histogram for {name}", labelnames=list(labels))
                self.histograms[name] = histogram
        if labels:
            histogram.labels(**labels).observe(value)
        else:
            histogram.observe(value)


METRICS = MetricsCollector()

background_scheduler = BackgroundScheduler()


def purge_audit_log(store: RecordStore, retention_days: int) -> int:
    """Delete audit entries older than the retention window."""

    LOG_INFO("Audit cleanup job started", retention_days=retention_days)
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    try:
        removed = store.purge_older_than(AUDIT_LOG, cutoff)
    except Exception as error:
        LOG_ERROR("Audit cleanup job failed", error=str(error))
        METRICS.increment("jobs.audit_cleanup.failed")
        return 0
    LOG_INFO("Audit cleanup job finished", removed=removed)
    METRICS.increment("jobs.audit_cleanup.completed")
    return removed


def start_background_jobs(store: RecordStore, settings: Settings) -> None:
    if not settings.enable_background_jobs:
        LOG_INFO("Background jobs disabled")
        return

    if background_scheduler.running:
        LOG_INFO("Background jobs already running")
        return

    background_scheduler.add_job(
        func=purge_audit_log,
        args=(store, settings.audit_retention_days),
        trigger="cron",
        hour=settings.cleanup_hour,
        minute=0,
        id="audit_cleanup",
        replace_existing=True,
        max_instances=1,
    )
    background_scheduler.start()
    LOG_INFO("Background jobs started", jobs=len(background_scheduler.get_jobs()))


def stop_background_jobs() -> None:
    if background_scheduler.running:
        background_scheduler.shutdown(wait=True)
        LOG_INFO("Background jobs stopped")


def health_check(services: "Services", settings: Settings) -> tuple[dict[str, Any], int]:
    """Lightweight health check consumed by load balancers."""

    store_ok = services.store.ping()
    payload: dict[str, Any] = {
        "status": "healthy" if store_ok else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.env,
        "checks": {
            "store": {"status": "ok" if store_ok else "error", "backend": type(services.store).__name__},
            "identity": type(services.identity_provider).__name__,
            "ai_providers": services.analyzer.provider_names or ["mock"],
            "rate_limiter": type(services.rate_limiter).__name__ if services.rate_limiter else "disabled",
        },
    }
    return payload, 200 if store_ok else 503


def startup(services: "Services", settings: Settings) -> None:
    LOG_INFO("=== SAVEAI BACKEND STARTING ===", env=settings.env)
    start_background_jobs(services.store, settings)
    LOG_INFO("=== STARTUP COMPLETE ===")
    METRICS.increment("app.startup")


def shutdown() -> None:
    LOG_INFO("=== SAVEAI BACKEND SHUTTING DOWN ===")
    stop_background_jobs()
    METRICS.increment("app.shutdown")


__all__ = [
    "LOG_DEBUG",
    "LOG_ERROR",
    "LOG_INFO",
    "LOG_WARNING",
    "METRICS",
    "background_scheduler",
    "health_check",
    "purge_audit_log",
    "shutdown",
    "start_background_jobs",
    "startup",
    "stop_background_jobs",
]
