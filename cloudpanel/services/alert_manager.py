import logging
from typing import Dict, List, Optional

from cloudpanel.agent.models import ResourceMetrics
from cloudpanel.config import settings
from cloudpanel.db import get_db, row_to_dict
from cloudpanel.services.sse import sse_manager, Channels

logger = logging.getLogger(__name__)

# Usage above threshold + margin escalates to critical
CRITICAL_MARGIN = 10.0


async def insert_alert(
    db,
    type: str,
    title: str,
    message: str,
    severity: str,
    resource_id: Optional[int] = None,
    resource_type: Optional[str] = None,
) -> Dict:
    """Insert an alert row, broadcast it and return the stored record."""
    cursor = await db.execute(
        """INSERT INTO alerts (type, title, message, severity, is_read, resource_id, resource_type)
           VALUES (?, ?, ?, ?, 0, ?, ?)""",
        (type, title, message, severity, resource_id, resource_type)
    )
    await db.commit()

    cursor = await db.execute("SELECT * FROM alerts WHERE id = ?", (cursor.lastrowid,))
    alert = row_to_dict(await cursor.fetchone())

    await sse_manager.broadcast(Channels.ALERTS, "alert_fired", alert)
    return alert


class AlertManager:
    def __init__(self):
        self.rules = [
            ("cpu", "High CPU Usage", lambda m: m.cpu.usage),
            ("memory", "High Memory Usage", lambda m: m.memory.usage),
            ("disk", "Disk Space Low", lambda m: m.disk.usage),
        ]

    def thresholds(self) -> Dict[str, float]:
        return {
            "cpu": settings.alert_cpu_threshold,
            "memory": settings.alert_memory_threshold,
            "disk": settings.alert_disk_threshold,
        }

    def _classify(self, value: float, threshold: float):
        """Return (type, severity) for a value that crossed `threshold`."""
        if value >= threshold + CRITICAL_MARGIN:
            return "error", "critical"
        return "warning", "high"

    async def evaluate(self, metrics: ResourceMetrics, hostname: str = "host") -> List[Dict]:
        """Check host metrics against thresholds and raise alerts for breaches."""
        db = await get_db()
        thresholds = self.thresholds()
        fired = []

        for key, title, getter in self.rules:
            value = getter(metrics)
            threshold = thresholds[key]
            if value < threshold:
                continue

            if await self._recently_raised(db, title):
                continue

            alert_type, severity = self._classify(value, threshold)
            message = f"{hostname} {key} usage is {value:.1f}% (threshold {threshold:.0f}%)"
            alert = await insert_alert(db, alert_type, title, message, severity, resource_type="server")
            fired.append(alert)
            logger.warning(f"Alert Fired: {message}")

        return fired

    async def _recently_raised(self, db, title: str) -> bool:
        """True when an unread alert with this title exists inside the cooldown window."""
        cursor = await db.execute(
            """SELECT id FROM alerts
               WHERE title = ? AND is_read = 0 AND resource_type = 'server'
               AND created_at >= datetime('now', ?)""",
            (title, f"-{settings.alert_cooldown_minutes} minutes")
        )
        return await cursor.fetchone() is not None


alert_manager = AlertManager()
