"""Metrics export for external scraping and dashboards."""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from services.metrics import metrics

router = APIRouter()


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics_text():
    return PlainTextResponse(metrics.to_prometheus_text(), media_type="text/plain; version=0.0.4")


@router.get("/metrics/snapshot")
async def metrics_snapshot():
    return metrics.snapshot()
