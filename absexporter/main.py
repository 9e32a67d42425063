import argparse
import asyncio
import logging
import signal
import sys

import uvicorn

from .abs_client import AudiobookshelfClient
from .config import settings
from .logging_config import configure_logging
from .metrics import MetricSink
from .scraper import ScrapeOrchestrator, ScrapeScheduler

logger = logging.getLogger(__name__)


class ExporterServer:
    def __init__(self):
        self._shutdown_event = asyncio.Event()
        self.sink = MetricSink()
        self.orchestrator = ScrapeOrchestrator(AudiobookshelfClient(settings), self.sink)
        self.scheduler = ScrapeScheduler(
            self.orchestrator.scrape, settings.scrape_interval_seconds
        )

    async def start(self) -> None:
        """Start the scrape loop and the metrics server."""
        logger.info(
            f"Starting Audiobookshelf exporter for {settings.abs_base_url} "
            f"(port {settings.exporter_port}, interval {settings.scrape_interval_seconds}s)"
        )

        # Setup signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(self.shutdown()))

        scrape_task = asyncio.create_task(self.scheduler.run_forever())
        web_task = asyncio.create_task(self._run_web_server())

        # Wait for shutdown
        await self._shutdown_event.wait()

        for task in (scrape_task, web_task):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info("Exporter stopped")

    async def shutdown(self) -> None:
        """Signal shutdown."""
        logger.info("Shutting down...")
        self._shutdown_event.set()

    async def _run_web_server(self) -> None:
        """Serve /metrics and /health."""
        from .web.app import create_app

        app = create_app(self.sink, lambda: self.orchestrator.last_result)
        config = uvicorn.Config(
            app,
            host=settings.exporter_host,
            port=settings.exporter_port,
            log_level=settings.log_level.lower(),
            timeout_keep_alive=60,
        )
        server = uvicorn.Server(config)
        try:
            await server.serve()
        except asyncio.CancelledError:
            pass


async def scrape_once() -> bool:
    """Run a single cycle and print the resulting exposition text."""
    sink = MetricSink()
    result = await ScrapeOrchestrator(AudiobookshelfClient(settings), sink).scrape()
    sys.stdout.write(sink.render().decode("utf-8"))
    return result.success


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Audiobookshelf Prometheus exporter")
    subparsers = parser.add_subparsers(dest="command", help="Commands")
    subparsers.add_parser("scrape", help="Run one scrape and print the metrics")

    args = parser.parse_args()

    configure_logging(settings.log_level, settings.log_format_resolved)

    if not settings.abs_url:
        logger.error("ABS_URL is not set. Please set it in the environment or .env file.")
        sys.exit(1)

    if args.command == "scrape":
        ok = asyncio.run(scrape_once())
        sys.exit(0 if ok else 1)
    else:
        server = ExporterServer()
        asyncio.run(server.start())


if __name__ == "__main__":
    main()
