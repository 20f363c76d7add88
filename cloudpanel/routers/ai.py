"""
Cloud Console - AI Router

Runs the LLM advisor over the inventory and manages stored recommendations.
"""

from typing import List, Literal, Optional

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from cloudpanel.db import get_db, row_to_dict
from cloudpanel.services.ai_advisor import ai_advisor, AnalysisResult
from cloudpanel.services.sse import sse_manager, Channels

logger = structlog.get_logger(__name__)

router = APIRouter()


class RecommendationResponse(BaseModel):
    id: int
    type: str
    title: str
    description: str
    confidence: float
    priority: str
    status: str
    resource_id: Optional[int]
    resource_type: Optional[str]
    created_at: Optional[str]


class RecommendationStatusUpdate(BaseModel):
    status: Literal["pending", "applied", "dismissed"]


@router.get("/recommendations", response_model=List[RecommendationResponse])
async def list_pending_recommendations():
    """Recommendations that have not been applied or dismissed."""
    db = await get_db()
    cursor = await db.execute(
        """SELECT * FROM ai_recommendations WHERE status = 'pending'
           ORDER BY created_at DESC, id DESC"""
    )
    return [row_to_dict(row) for row in await cursor.fetchall()]


@router.post("/analyze", response_model=AnalysisResult)
async def analyze():
    """Analyze VMs, the latest metrics and unread alerts; store the recommendations."""
    db = await get_db()

    cursor = await db.execute("SELECT * FROM virtual_machines ORDER BY id")
    vms = [row_to_dict(row) for row in await cursor.fetchall()]

    cursor = await db.execute("SELECT * FROM system_metrics ORDER BY timestamp DESC, id DESC LIMIT 1")
    metrics = row_to_dict(await cursor.fetchone())

    cursor = await db.execute("SELECT * FROM alerts WHERE is_read = 0 ORDER BY id")
    alerts = [row_to_dict(row) for row in await cursor.fetchall()]

    analysis = await ai_advisor.analyze_infrastructure(vms, metrics, alerts)

    # Recommendation priorities are constrained to low/medium/high in storage
    for rec in analysis.recommendations:
        priority = rec.priority if rec.priority in ("low", "medium", "high") else "medium"
        await db.execute(
            """INSERT INTO ai_recommendations
               (type, title, description, confidence, priority, status, resource_id, resource_type)
               VALUES (?, ?, ?, ?, ?, 'pending', ?, ?)""",
            (rec.type, rec.title, rec.description, rec.confidence, priority,
             rec.resource_id, rec.resource_type)
        )
    await db.commit()

    logger.info("Stored AI recommendations", count=len(analysis.recommendations))
    await sse_manager.broadcast(
        Channels.RECOMMENDATIONS, "recommendations_updated", {"count": len(analysis.recommendations)}
    )
    return analysis


@router.post("/optimize/{vm_id}")
async def optimize_vm(vm_id: int):
    """Free-text optimization advice for one VM."""
    db = await get_db()
    cursor = await db.execute("SELECT * FROM virtual_machines WHERE id = ?", (vm_id,))
    vm = row_to_dict(await cursor.fetchone())
    if not vm:
        raise HTTPException(status_code=404, detail="Virtual machine not found")

    suggestion = await ai_advisor.generate_optimization_suggestions(vm)
    return {"suggestion": suggestion}


@router.patch("/recommendations/{recommendation_id}")
async def update_recommendation(recommendation_id: int, update: RecommendationStatusUpdate):
    db = await get_db()
    cursor = await db.execute(
        "UPDATE ai_recommendations SET status = ? WHERE id = ?",
        (update.status, recommendation_id)
    )
    await db.commit()

    if cursor.rowcount == 0:
        raise HTTPException(status_code=404, detail="Recommendation not found")
    return {"success": True}
