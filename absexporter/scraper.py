import asyncio
import enum
import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from .abs_client import AudiobookshelfClient, UpstreamError
from .aggregation import aggregate
from .metrics import MetricSink
from .models import LibraryKey

logger = logging.getLogger(__name__)


class ScrapeResult(BaseModel):
    """Outcome of one scrape cycle."""

    success: bool
    started_at: datetime
    duration_seconds: float
    session_count: int = 0
    errors: list[str] = Field(default_factory=list)


class ScrapeOrchestrator:
    def __init__(self, client: AudiobookshelfClient, sink: MetricSink):
        self.client = client
        self.sink = sink
        self.last_result: Optional[ScrapeResult] = None

    async def scrape(self) -> ScrapeResult:
        """Run one fetch -> aggregate -> publish cycle.

        Upstream failures are logged and mark the cycle unsuccessful, but never
        stop it: whatever was fetched is still published.
        """
        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        errors: list[str] = []

        def _failed(resource: str, error: UpstreamError) -> None:
            logger.error(f"Failed to fetch {resource}: {error}")
            errors.append(f"{resource}: {error}")

        self.sink.mark_scrape_started()

        try:
            users = await self.client.get_users()
        except UpstreamError as e:
            _failed("users", e)
        else:
            self.sink.set_user_count(len(users))

        library_names: dict[str, str] = {}
        library_items: dict[LibraryKey, int] = {}
        try:
            libraries = await self.client.get_libraries()
        except UpstreamError as e:
            _failed("libraries", e)
            libraries = []

        for library in libraries:
            library_names[library.id] = library.name
            try:
                detail = await self.client.get_library_detail(library.id)
            except UpstreamError as e:
                _failed(f"library {library.id} stats", e)
                continue
            library_items[LibraryKey(library.id, library.name)] = detail.total_items
        self.sink.replace_library_items(library_items)

        sessions, error = await self.client.get_all_sessions()
        if error is not None:
            _failed(f"sessions (kept {len(sessions)} fetched before the error)", error)

        self.sink.publish_rollups(aggregate(sessions, library_names))

        success = not errors
        duration = time.perf_counter() - start
        self.sink.mark_scrape_finished(success, time.time(), duration)

        result = ScrapeResult(
            success=success,
            started_at=started_at,
            duration_seconds=duration,
            session_count=len(sessions),
            errors=errors,
        )
        self.last_result = result
        logger.info(
            f"Scrape {'succeeded' if success else 'failed'} in {duration:.2f}s "
            f"({len(sessions)} sessions, {len(errors)} errors)"
        )
        return result


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class ScrapeScheduler:
    """Runs a scrape cycle now and then once per interval, never two at a time.

    The interval is measured from the start of each cycle. A cycle that overruns
    the interval pushes the next one back until it finishes; it is never run
    concurrently and missed ticks are not made up.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[object]],
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._cycle = cycle
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._sleep = sleep
        self.state = SchedulerState.IDLE

    async def tick(self) -> bool:
        """Run one cycle unless one is already running.

        Returns False when the tick was skipped.
        """
        if self.state is SchedulerState.RUNNING:
            logger.warning("Scrape still running, skipping tick")
            return False

        self.state = SchedulerState.RUNNING
        try:
            await self._cycle()
        except Exception:
            logger.exception("Unexpected error during scrape")
        finally:
            self.state = SchedulerState.IDLE
        return True

    def next_delay(self, cycle_started: float) -> float:
        """Seconds to wait before the next cycle (0 when the last one overran)."""
        return max(0.0, cycle_started + self.interval_seconds - self._clock())

    async def run_forever(self) -> None:
        while True:
            started = self._clock()
            await self.tick()
            await self._sleep(self.next_delay(started))
