"""
Cloud Console - SSE Router

Server-Sent Events endpoint for real-time updates.
"""

import uuid

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from cloudpanel.services.sse import sse_manager, Channels

router = APIRouter()


@router.get("/stream")
async def stream(request: Request):
    """Main SSE stream endpoint. Subscribe to channels via query params."""
    client_id = str(uuid.uuid4())

    channels = request.query_params.get("channels", "").split(",")
    channels = [c.strip() for c in channels if c.strip() in Channels.ALL]

    # All channels if none (or none valid) specified
    if not channels:
        channels = list(Channels.ALL)

    client = await sse_manager.connect(client_id)

    for channel in channels:
        await sse_manager.subscribe(client_id, channel)

    async def event_stream():
        try:
            async for event in sse_manager.event_generator(client):
                if await request.is_disconnected():
                    break
                yield event
        finally:
            await sse_manager.disconnect(client_id)

    return EventSourceResponse(event_stream())
