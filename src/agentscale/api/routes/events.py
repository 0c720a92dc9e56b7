# src/agentscale/api/routes/events.py
"""
Real-time execution event transports.

Both transports are thin adapters over ``EventBroadcaster`` subscriptions:
the push stream is keyed by agent id in the path, the socket subscribes
after the client's first ``subscribe`` message.
"""
import asyncio
import json
import logging

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from agentscale.api.dependencies import AppSettings, CurrentBroadcaster
from agentscale.domain.events import format_sse_event
from agentscale.orchestration.broadcaster import Subscription

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/{agent_id}",
    summary="Stream an agent's execution events",
    description="""
    Server-Sent Events stream of one agent's execution events.

    The first frame is always `connected`. Each frame is
    `data: <json>\\n\\n` where the JSON carries `type`, `agentId` and the
    event fields. Idle streams receive `keepalive` frames.
    """,
    responses={
        200: {
            "description": "Event stream started",
            "content": {
                "text/event-stream": {
                    "example": 'data: {"type": "connected", "agentId": "agent_1"}\n\n'
                }
            },
        }
    },
)
async def stream_events(
    agent_id: str,
    request: Request,
    broadcaster: CurrentBroadcaster,
    settings: AppSettings,
):
    subscription = broadcaster.subscribe(agent_id)
    poll_interval = settings.events_keepalive_interval_seconds

    async def generate():
        try:
            while True:
                event = await subscription.get(timeout=poll_interval)
                if event is None:
                    if subscription.closed or await request.is_disconnected():
                        break
                    continue
                yield format_sse_event(event)
        finally:
            broadcaster.unsubscribe(subscription)
            logger.info(f"Event stream closed for agent {agent_id}")

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json(event.to_wire())


@router.websocket("/ws")
async def events_socket(websocket: WebSocket, broadcaster: CurrentBroadcaster):
    """
    WebSocket event feed.

    The client sends ``{"type": "subscribe", "agentId": "..."}``; omitting
    ``agentId`` subscribes to every agent. A new subscribe message replaces
    the previous subscription.
    """
    await websocket.accept()
    subscription: Subscription | None = None
    forwarder: asyncio.Task | None = None

    async def release() -> None:
        # Must stay ahead of the first await
        if subscription is not None:
            broadcaster.unsubscribe(subscription)
        if forwarder is not None:
            forwarder.cancel()
            await asyncio.gather(forwarder, return_exceptions=True)

    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(message, dict) or message.get("type") != "subscribe":
                await websocket.send_json({"type": "error", "message": "Expected a subscribe message"})
                continue

            await release()
            subscription = broadcaster.subscribe(message.get("agentId"))
            forwarder = asyncio.create_task(_forward(websocket, subscription))
    except WebSocketDisconnect:
        logger.info("Event socket disconnected")
    finally:
        await release()
