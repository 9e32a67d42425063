import threading
from typing import Mapping, Optional, Sequence

from prometheus_client import CollectorRegistry, Gauge, Summary, generate_latest
from prometheus_client.metrics import MetricWrapperBase

from .models import LibraryKey, Rollups

PREFIX = "audiobookshelf"


class MetricSink:
    """Prometheus registry holding the latest scrape snapshot.

    Written by the scrape loop, read by the /metrics endpoint. Labeled series are
    replaced wholesale under a lock, so a render never sees a half-rebuilt set.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()

        self.up = self._gauge("up", "1 if exporter successfully scraped Audiobookshelf")
        self.users = self._gauge("users_total", "Number of users in Audiobookshelf")
        self.library_items = self._gauge(
            "library_items_total",
            "Total items per library",
            ["library_id", "library_name"],
        )
        self.last_success = self._gauge(
            "last_scrape_success", "1 if last scrape was successful"
        )
        self.last_timestamp = self._gauge(
            "last_scrape_timestamp_seconds", "Unix timestamp of last scrape"
        )
        self.duration = Summary(
            f"{PREFIX}_scrape_duration_seconds",
            "Duration of Audiobookshelf exporter scrape in seconds",
            registry=self.registry,
        )

        self.user_listening_seconds = self._gauge(
            "user_listening_seconds_total",
            "Total listening time per user across all sessions",
            ["user"],
        )
        self.user_sessions = self._gauge(
            "user_sessions_total", "Total number of sessions per user", ["user"]
        )
        self.library_listening_seconds = self._gauge(
            "library_listening_seconds_total",
            "Total listening time per library",
            ["library_id", "library_name"],
        )
        self.library_sessions = self._gauge(
            "library_sessions_total",
            "Total number of sessions per library",
            ["library_id", "library_name"],
        )
        self.book_listening_seconds = self._gauge(
            "book_listening_seconds_total", "Total listening time per book title", ["title"]
        )
        self.device_listening_seconds = self._gauge(
            "device_listening_seconds_total",
            "Total listening time per client / device model",
            ["client", "model"],
        )
        self.weekday_listening_seconds = self._gauge(
            "weekday_listening_seconds_total",
            "Total listening time grouped by day of week",
            ["day"],
        )
        self.sessions = self._gauge(
            "sessions_total", "Total number of sessions returned by /api/sessions"
        )

    def _gauge(self, name: str, documentation: str, labels: Sequence[str] = ()) -> Gauge:
        return Gauge(f"{PREFIX}_{name}", documentation, labels, registry=self.registry)

    def _replace(self, metric: MetricWrapperBase, values: Mapping) -> None:
        # Caller holds the lock
        metric.clear()
        for key, value in values.items():
            labels = key if isinstance(key, tuple) else (key,)
            metric.labels(*labels).set(value)

    def mark_scrape_started(self) -> None:
        self.up.set(0)
        self.last_success.set(0)

    def mark_scrape_finished(self, success: bool, timestamp: float, duration: float) -> None:
        if success:
            self.up.set(1)
            self.last_success.set(1)
        self.last_timestamp.set(timestamp)
        self.duration.observe(duration)

    def set_user_count(self, count: int) -> None:
        self.users.set(count)

    def replace_library_items(self, items: Mapping[LibraryKey, int]) -> None:
        with self._lock:
            self._replace(self.library_items, items)

    def publish_rollups(self, rollups: Rollups) -> None:
        """Swap every per-dimension series set for the freshly computed one."""
        with self._lock:
            self._replace(self.user_listening_seconds, rollups.seconds_by_user)
            self._replace(self.user_sessions, rollups.count_by_user)
            self._replace(self.library_listening_seconds, rollups.seconds_by_library)
            self._replace(self.library_sessions, rollups.count_by_library)
            self._replace(self.book_listening_seconds, rollups.seconds_by_book)
            self._replace(self.device_listening_seconds, rollups.seconds_by_device)
            self._replace(self.weekday_listening_seconds, rollups.seconds_by_weekday)
            self.sessions.set(rollups.total_sessions)

    def render(self) -> bytes:
        """Encode the current snapshot in Prometheus text format."""
        with self._lock:
            return generate_latest(self.registry)

    def sample(self, name: str, labels: Optional[dict[str, str]] = None) -> Optional[float]:
        """Read back a single value (None if the series does not exist)."""
        return self.registry.get_sample_value(f"{PREFIX}_{name}", labels or {})
