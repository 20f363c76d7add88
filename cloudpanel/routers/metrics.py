"""
Cloud Console - Metrics Router

Stored system metrics and capacity predictions.
"""

from typing import List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from cloudpanel.db import get_db, row_to_dict
from cloudpanel.services.ai_advisor import ai_advisor

router = APIRouter()

PREDICTION_SAMPLES = 30


class SystemMetricsResponse(BaseModel):
    id: int
    timestamp: Optional[str]
    total_servers: int
    storage_used: float
    storage_total: float
    network_traffic: float
    health_score: float
    cpu_usage_avg: float
    memory_usage_avg: float


async def fetch_recent_metrics(limit: int) -> List[dict]:
    """Most recent metric rows, newest first."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT * FROM system_metrics ORDER BY timestamp DESC, id DESC LIMIT ?",
        (limit,)
    )
    return [row_to_dict(row) for row in await cursor.fetchall()]


@router.get("/current", response_model=Optional[SystemMetricsResponse])
async def get_current_metrics():
    """The newest metrics row, or null when nothing has been recorded."""
    rows = await fetch_recent_metrics(1)
    return rows[0] if rows else None


@router.get("/history", response_model=List[SystemMetricsResponse])
async def get_metrics_history(limit: int = Query(50, ge=1, le=1000)):
    return await fetch_recent_metrics(limit)


@router.post("/predict")
async def predict_resource_needs():
    """Ask the advisor for 30/60/90 day capacity predictions."""
    history = await fetch_recent_metrics(PREDICTION_SAMPLES)
    # Advisor expects chronological order
    return await ai_advisor.predict_resource_needs(list(reversed(history)))
