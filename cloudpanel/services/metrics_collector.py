"""
Cloud Console - Metrics Collector Service

Background service that periodically samples the local host through the
infrastructure agent and stores a dashboard-level row in `system_metrics`.
Handles alert evaluation and retention policy enforcement.
"""

import asyncio
import time
from typing import Dict, Optional

import structlog

from cloudpanel.agent import agent
from cloudpanel.agent.models import ResourceMetrics
from cloudpanel.config import settings
from cloudpanel.db import get_db, row_to_dict
from cloudpanel.services.alert_manager import alert_manager
from cloudpanel.services.sse import sse_manager, Channels

logger = structlog.get_logger(__name__)

BYTES_PER_TB = 1024 ** 4
BYTES_PER_GB = 1024 ** 3
ALERT_PENALTY = 5.0


def compute_health_score(cpu: float, memory: float, disk: float, open_critical_alerts: int = 0) -> float:
    """
    Health in [0, 100]: half the mean utilisation is subtracted from 100,
    then 5 points per unread high/critical alert.
    """
    score = 100.0 - 0.5 * ((cpu + memory + disk) / 3) - ALERT_PENALTY * open_critical_alerts
    return round(max(0.0, min(100.0, score)), 1)


class MetricsCollector:
    """
    Background service that:
    1. Samples host metrics through the agent every collection interval
    2. Stores a system_metrics row and broadcasts it to SSE clients
    3. Evaluates alert thresholds on each sample
    4. Cleans up rows older than the retention window
    """

    CLEANUP_INTERVAL = 3600  # 1 hour

    def __init__(self):
        self._running = False
        self._collect_task: Optional[asyncio.Task] = None
        self._cleanup_task: Optional[asyncio.Task] = None
        self._last_sample: Optional[Dict] = None

    async def start(self):
        """Start the collector background tasks."""
        if self._running:
            return

        self._running = True
        self._collect_task = asyncio.create_task(self._collection_loop())
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

        logger.info(
            "Metrics collector started",
            collection_interval=settings.metrics_collection_interval,
            retention_days=settings.metrics_retention_days
        )

    async def stop(self):
        """Stop the collector."""
        self._running = False

        for task in [self._collect_task, self._cleanup_task]:
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        logger.info("Metrics collector stopped")

    async def _collection_loop(self):
        while self._running:
            try:
                await self.collect_once()
            except Exception as e:
                logger.error("Error collecting metrics", error=str(e))

            await asyncio.sleep(settings.metrics_collection_interval)

    async def _cleanup_loop(self):
        # Wait before first cleanup
        await asyncio.sleep(300)

        while self._running:
            try:
                await self.cleanup_old_data()
            except Exception as e:
                logger.error("Error cleaning up old metrics", error=str(e))

            await asyncio.sleep(self.CLEANUP_INTERVAL)

    def _network_traffic(self, metrics: ResourceMetrics, now: float) -> float:
        """GB/s moved across all interfaces since the previous sample."""
        total_bytes = metrics.network.bytes_received + metrics.network.bytes_sent
        previous = self._last_sample
        self._last_sample = {"ts": now, "bytes": total_bytes}

        if not previous:
            return 0.0
        elapsed = now - previous["ts"]
        delta = total_bytes - previous["bytes"]
        # Counters reset on interface restart
        if elapsed <= 0 or delta < 0:
            return 0.0
        return round(delta / elapsed / BYTES_PER_GB, 4)

    async def collect_once(self) -> Dict:
        """Take one sample, store it and evaluate alerts. Returns the stored row."""
        metrics = await agent.get_resource_metrics()
        info = await agent.get_system_info()
        now = time.time()

        db = await get_db()
        cursor = await db.execute("SELECT COUNT(*) FROM virtual_machines")
        total_servers = (await cursor.fetchone())[0]

        cursor = await db.execute(
            "SELECT COUNT(*) FROM alerts WHERE is_read = 0 AND severity IN ('high', 'critical')"
        )
        open_critical = (await cursor.fetchone())[0]

        health_score = compute_health_score(
            metrics.cpu.usage, metrics.memory.usage, metrics.disk.usage, open_critical
        )

        cursor = await db.execute(
            """INSERT INTO system_metrics
               (total_servers, storage_used, storage_total, network_traffic,
                health_score, cpu_usage_avg, memory_usage_avg)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                total_servers,
                round(metrics.disk.used / BYTES_PER_TB, 3),
                round(metrics.disk.total / BYTES_PER_TB, 3),
                self._network_traffic(metrics, now),
                health_score,
                round(metrics.cpu.usage, 1),
                round(metrics.memory.usage, 1),
            )
        )
        await db.commit()

        cursor = await db.execute("SELECT * FROM system_metrics WHERE id = ?", (cursor.lastrowid,))
        row = row_to_dict(await cursor.fetchone())

        await sse_manager.broadcast(Channels.METRICS, "metrics_update", {
            "system_metrics": row,
            "host": metrics.to_dict(),
        })

        await alert_manager.evaluate(metrics, hostname=info.hostname)

        logger.debug("Metrics collected and stored", health_score=health_score, total_servers=total_servers)
        return row

    async def cleanup_old_data(self) -> int:
        """Remove rows older than the retention window."""
        db = await get_db()
        cursor = await db.execute(
            "DELETE FROM system_metrics WHERE timestamp < datetime('now', ?)",
            (f"-{settings.metrics_retention_days} days",)
        )
        deleted = cursor.rowcount
        await db.commit()

        logger.info("Old metrics cleaned up", deleted=deleted, retention_days=settings.metrics_retention_days)
        return deleted


# Global instance
metrics_collector = MetricsCollector()
