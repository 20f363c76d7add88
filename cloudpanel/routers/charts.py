"""
Cloud Console - Charts Router

Pre-shaped series for the dashboard charts.
"""

from fastapi import APIRouter

from cloudpanel.db import get_db
from cloudpanel.routers.metrics import fetch_recent_metrics

router = APIRouter()

RESOURCE_USAGE_POINTS = 7

HEALTH_BUCKETS = {
    "Healthy": ("running",),
    "Warning": ("maintenance",),
    "Critical": ("error", "stopped"),
}


@router.get("/resource-usage")
async def resource_usage():
    """CPU, memory and storage percentages for the last samples, oldest first."""
    rows = await fetch_recent_metrics(RESOURCE_USAGE_POINTS)

    data = []
    for index, row in enumerate(reversed(rows)):
        storage_total = row["storage_total"]
        data.append({
            "name": f"Day {index + 1}",
            "cpu": row["cpu_usage_avg"],
            "memory": row["memory_usage_avg"],
            "storage": round(row["storage_used"] / storage_total * 100) if storage_total else 0,
        })
    return data


@router.get("/health")
async def vm_health():
    """Share of VMs per health bucket, in whole percent."""
    db = await get_db()
    cursor = await db.execute("SELECT status, COUNT(*) FROM virtual_machines GROUP BY status")
    by_status = {row[0]: row[1] for row in await cursor.fetchall()}

    counts = {
        name: sum(by_status.get(status, 0) for status in statuses)
        for name, statuses in HEALTH_BUCKETS.items()
    }
    total = sum(counts.values())

    return [
        {"name": name, "value": round(count / total * 100) if total else 0}
        for name, count in counts.items()
    ]
