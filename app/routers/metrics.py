"""
Metrics router: running orchestrator counters.

GET /metrics/orchestrator   processed / successful / failed, latency, success rate
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.dependencies import get_orchestrator
from app.schemas.metrics import BehaviorAggregateResponse, OrchestratorMetricsResponse
from app.services.orchestrator import ActivityOrchestrator

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get(
    "/orchestrator",
    response_model=OrchestratorMetricsResponse,
    summary="Running orchestrator metrics",
    responses={
        200: {"description": "Counters for the worker that served the request."},
    },
)
def orchestrator_metrics(orchestrator: ActivityOrchestrator = Depends(get_orchestrator)):
    """
    Metrics are updated once per submission, after it completes, under a
    single lock. Cancelled submissions are not counted.

    Each gunicorn worker keeps its own counters.
    """
    metrics, analyses, behavior = orchestrator.metrics_snapshot()
    return OrchestratorMetricsResponse(
        total_processed=metrics.total_processed,
        successful=metrics.successful,
        failed=metrics.failed,
        success_rate=metrics.success_rate,
        average_processing_ms=round(metrics.average_processing_ms, 3),
        behavior=BehaviorAggregateResponse(
            analyses=analyses,
            consistency=behavior.consistency,
            quality=behavior.quality,
            diversity=behavior.diversity,
            community=behavior.community,
            progression=behavior.progression,
        ),
    )
