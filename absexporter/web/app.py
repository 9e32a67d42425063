from typing import Callable, Optional

from fastapi import FastAPI

from ..metrics import MetricSink
from ..scraper import ScrapeResult
from .routes import router


def create_app(
    sink: MetricSink,
    last_result: Optional[Callable[[], Optional[ScrapeResult]]] = None,
) -> FastAPI:
    """Build the exporter web app serving ``sink``."""
    app = FastAPI(title="absexporter", description="Audiobookshelf Prometheus exporter")
    app.state.sink = sink
    app.state.last_result = last_result or (lambda: None)
    app.include_router(router)
    return app
