from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST

router = APIRouter()


@router.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint."""
    return PlainTextResponse(request.app.state.sink.render(), media_type=CONTENT_TYPE_LATEST)


@router.get("/health")
async def health(request: Request):
    """Basic health check with the outcome of the last scrape."""
    result = request.app.state.last_result()
    if result is None:
        return {
            "status": "ok",
            "last_scrape_success": None,
            "last_scrape_at": None,
            "last_scrape_duration_seconds": None,
            "last_scrape_errors": [],
        }
    return {
        "status": "ok",
        "last_scrape_success": result.success,
        "last_scrape_at": result.started_at.isoformat(),
        "last_scrape_duration_seconds": result.duration_seconds,
        "last_scrape_errors": result.errors,
    }
