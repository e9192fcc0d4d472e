"""
Running metrics schemas.

GET /metrics/orchestrator → OrchestratorMetricsResponse
"""
from pydantic import BaseModel, ConfigDict, Field


class BehaviorAggregateResponse(BaseModel):
    """Running mean of every behavior metrics snapshot since start-up."""
    model_config = ConfigDict(from_attributes=True)

    analyses: int = Field(description="Number of behavior analyses folded into the mean.")
    consistency: float
    quality: float
    diversity: float
    community: float
    progression: float


class OrchestratorMetricsResponse(BaseModel):
    """Counters for this worker process since start-up or the last reset."""
    model_config = ConfigDict(from_attributes=True)

    total_processed: int
    successful: int
    failed: int
    success_rate: float = Field(description="Percentage 0–100.", examples=[92.5])
    average_processing_ms: float = Field(description="Rolling mean pipeline latency.")
    behavior: BehaviorAggregateResponse
