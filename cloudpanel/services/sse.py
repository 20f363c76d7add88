"""
Cloud Console - SSE (Server-Sent Events) Service

Provides real-time updates for metrics, alerts and inventory changes.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncGenerator, Dict, Set

import structlog

logger = structlog.get_logger(__name__)

QUEUE_MAX_SIZE = 100


@dataclass
class SSEClient:
    """Represents a connected SSE client."""
    client_id: str
    subscriptions: Set[str] = field(default_factory=set)
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=QUEUE_MAX_SIZE))


class SSEManager:
    """Manages SSE connections and broadcasts."""

    def __init__(self):
        self._clients: Dict[str, SSEClient] = {}
        self._channels: Dict[str, Set[str]] = {}  # channel -> client_ids
        self._lock = asyncio.Lock()

    async def connect(self, client_id: str) -> SSEClient:
        """Register a new SSE client."""
        async with self._lock:
            client = SSEClient(client_id=client_id)
            self._clients[client_id] = client
            logger.info("SSE client connected", client_id=client_id)
            return client

    async def disconnect(self, client_id: str):
        """Unregister an SSE client."""
        async with self._lock:
            client = self._clients.pop(client_id, None)
            if client:
                for channel in client.subscriptions:
                    if channel in self._channels:
                        self._channels[channel].discard(client_id)
                logger.info("SSE client disconnected", client_id=client_id)

    async def subscribe(self, client_id: str, channel: str):
        """Subscribe client to a channel."""
        async with self._lock:
            if client_id not in self._clients:
                return

            self._clients[client_id].subscriptions.add(channel)
            self._channels.setdefault(channel, set()).add(client_id)

            logger.debug("Client subscribed", client_id=client_id, channel=channel)

    async def broadcast(self, channel: str, event: str, data: Any):
        """Broadcast message to all clients on a channel."""
        message = {
            "event": event,
            "channel": channel,
            "data": data,
            "timestamp": datetime.utcnow().isoformat()
        }

        async with self._lock:
            client_ids = self._channels.get(channel, set()).copy()

        for client_id in client_ids:
            client = self._clients.get(client_id)
            if client:
                try:
                    client.queue.put_nowait(message)
                except asyncio.QueueFull:
                    logger.warning("SSE queue full, dropping event", client_id=client_id, event=event)

    async def event_generator(self, client: SSEClient) -> AsyncGenerator[Dict[str, str], None]:
        """Yield events for a client, with a keepalive comment every 30s."""
        while True:
            try:
                message = await asyncio.wait_for(client.queue.get(), timeout=30)
                yield self.format_event(message["event"], message["data"])
            except asyncio.TimeoutError:
                yield {"comment": "keepalive"}

    @staticmethod
    def format_event(event: str, data: Any) -> Dict[str, str]:
        """Format message for EventSourceResponse."""
        if isinstance(data, (dict, list)):
            data = json.dumps(data, default=str)
        return {"event": event, "data": str(data)}

    @property
    def client_count(self) -> int:
        """Get number of connected clients."""
        return len(self._clients)

    def get_channel_clients(self, channel: str) -> int:
        """Get number of clients on a channel."""
        return len(self._channels.get(channel, set()))


# Global SSE manager instance
sse_manager = SSEManager()


class Channels:
    """SSE channel names."""
    METRICS = "metrics"
    ALERTS = "alerts"
    VMS = "vms"
    RECOMMENDATIONS = "recommendations"

    ALL = (METRICS, ALERTS, VMS, RECOMMENDATIONS)
