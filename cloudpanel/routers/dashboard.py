"""
Cloud Console - Dashboard Router

Headline figures for the overview page.
"""

from typing import Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from cloudpanel.db import get_db, row_to_dict

router = APIRouter()

# Growth is measured against the oldest of the last N samples
GROWTH_WINDOW = 7


class DashboardStats(BaseModel):
    total_servers: int
    storage_used: str
    storage_percent: int
    network_traffic: str
    health_score: str
    server_growth: str
    network_growth: str
    alerts_count: int


def _growth(current: float, previous: float) -> str:
    if not previous:
        return "0%"
    return f"{round((current - previous) / previous * 100)}%"


def _format_number(value: float) -> str:
    return f"{value:g}"


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats():
    """Summary cards: servers, storage, network, health and unread alerts."""
    db = await get_db()

    cursor = await db.execute("SELECT COUNT(*) FROM virtual_machines")
    vm_count = (await cursor.fetchone())[0]

    cursor = await db.execute("SELECT COUNT(*) FROM alerts WHERE is_read = 0")
    alerts_count = (await cursor.fetchone())[0]

    cursor = await db.execute(
        "SELECT * FROM system_metrics ORDER BY timestamp DESC, id DESC LIMIT ?",
        (GROWTH_WINDOW,)
    )
    history: List[Dict] = [row_to_dict(row) for row in await cursor.fetchall()]
    latest: Optional[Dict] = history[0] if history else None

    if not latest:
        return DashboardStats(
            total_servers=vm_count,
            storage_used="0TB",
            storage_percent=0,
            network_traffic="0GB/s",
            health_score="0%",
            server_growth="0%",
            network_growth="0%",
            alerts_count=alerts_count,
        )

    oldest = history[-1]
    storage_total = latest["storage_total"]
    storage_percent = round(latest["storage_used"] / storage_total * 100) if storage_total else 0

    return DashboardStats(
        total_servers=latest["total_servers"] or vm_count,
        storage_used=f"{_format_number(latest['storage_used'])}TB",
        storage_percent=storage_percent,
        network_traffic=f"{_format_number(latest['network_traffic'])}GB/s",
        health_score=f"{round(latest['health_score'])}%",
        server_growth=_growth(latest["total_servers"], oldest["total_servers"]),
        network_growth=_growth(latest["network_traffic"], oldest["network_traffic"]),
        alerts_count=alerts_count,
    )
