"""
Cloud Console - Alerts Router

Lists alerts, marks them read and accepts manually raised alerts.
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from cloudpanel.db import get_db, row_to_dict
from cloudpanel.services.alert_manager import insert_alert
from cloudpanel.services.sse import sse_manager, Channels

router = APIRouter()


class AlertCreate(BaseModel):
    type: Literal["warning", "error", "info"]
    title: str
    message: str
    severity: Literal["low", "medium", "high", "critical"]
    resource_id: Optional[int] = None
    resource_type: Optional[Literal["vm", "server", "storage"]] = None


class AlertResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    severity: str
    is_read: bool
    resource_id: Optional[int]
    resource_type: Optional[str]
    created_at: Optional[str]


@router.get("", response_model=List[AlertResponse])
async def list_alerts():
    """List all alerts, newest first."""
    db = await get_db()
    cursor = await db.execute("SELECT * FROM alerts ORDER BY created_at DESC, id DESC")
    return [row_to_dict(row) for row in await cursor.fetchall()]


@router.get("/unread", response_model=List[AlertResponse])
async def list_unread_alerts():
    db = await get_db()
    cursor = await db.execute(
        "SELECT * FROM alerts WHERE is_read = 0 ORDER BY created_at DESC, id DESC"
    )
    return [row_to_dict(row) for row in await cursor.fetchall()]


@router.post("", response_model=AlertResponse, status_code=201)
async def create_alert(alert: AlertCreate):
    """Raise an alert manually."""
    db = await get_db()
    return await insert_alert(
        db,
        alert.type,
        alert.title,
        alert.message,
        alert.severity,
        resource_id=alert.resource_id,
        resource_type=alert.resource_type,
    )


@router.patch("/{alert_id}/read")
async def mark_alert_read(alert_id: int):
    """Mark an alert as read."""
    db = await get_db()
    cursor = await db.execute("UPDATE alerts SET is_read = 1 WHERE id = ?", (alert_id,))
    await db.commit()

    if cursor.rowcount == 0:
        raise HTTPException(status_code=404, detail="Alert not found")

    await sse_manager.broadcast(Channels.ALERTS, "alert_read", {"id": alert_id})
    return {"success": True}
