"""
WebSocket manager for live dashboard updates
"""

import asyncio
import json
import logging
from typing import Dict, List, Set
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.services.repositories import EventRepo

logger = logging.getLogger(__name__)

class WebSocketManager:
    """Volatile fan-out of dashboard events to connected listeners.

    Listeners that are not connected when a message is broadcast never see
    it; there is no replay. Dashboards re-query the REST API on reconnect.
    """

    def __init__(self, send_timeout: float = None):
        # event_code -> list of websockets
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self.send_timeout = send_timeout if send_timeout is not None else settings.WS_SEND_TIMEOUT
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket, event_code: str):
        """Accept WebSocket connection and add to event room"""
        await websocket.accept()
        self.active_connections.setdefault(event_code, []).append(websocket)
        logger.info(f"WebSocket connected to event {event_code}. Total connections: {len(self.active_connections[event_code])}")

    def disconnect(self, websocket: WebSocket, event_code: str):
        """Remove WebSocket connection from event room"""
        connections = self.active_connections.get(event_code)
        if not connections or websocket not in connections:
            return

        connections.remove(websocket)
        logger.info(f"WebSocket disconnected from event {event_code}. Remaining connections: {len(connections)}")

        # Clean up empty rooms
        if not connections:
            del self.active_connections[event_code]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def _send(self, websocket: WebSocket, payload: str) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(payload), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("Dropping slow WebSocket listener")
        except Exception as e:
            logger.error(f"Error broadcasting to websocket: {e}")
        return False

    async def broadcast_to_event(self, event_code: str, message: dict):
        """Send message to every WebSocket currently connected to an event"""
        if event_code not in self.active_connections:
            logger.debug(f"No active connections for event {event_code}")
            return

        # Snapshot; the room may change while sends are in flight
        connections = self.active_connections[event_code].copy()
        payload = json.dumps(message, default=str)

        results = await asyncio.gather(*(self._send(ws, payload) for ws in connections))

        for websocket, delivered in zip(connections, results):
            if not delivered:
                self.disconnect(websocket, event_code)

    def broadcast(self, event_code: str, message: dict) -> None:
        """Fire-and-forget broadcast; returns before any listener is written to"""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, dropping {message.get('type')} broadcast")
            return

        task = loop.create_task(self.broadcast_to_event(event_code, message))
        self._pending.add(task)
        task.add_done_callback(self._on_broadcast_done)

    def _on_broadcast_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Broadcast task failed: {exc!r}")

    def get_connection_count(self, event_code: str) -> int:
        """Get number of active connections for an event"""
        return len(self.active_connections.get(event_code, []))

    def get_all_connection_counts(self) -> Dict[str, int]:
        """Get connection counts for all events"""
        return {
            event_code: len(connections)
            for event_code, connections in self.active_connections.items()
        }

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

# Router for WebSocket endpoints
router = APIRouter()

@router.websocket("/events/{event_code}")
async def websocket_endpoint(
    websocket: WebSocket,
    event_code: str,
    db: Session = Depends(get_db)
):
    """WebSocket endpoint for live check-in updates"""

    event = EventRepo.get_by_public_code(db, event_code)
    event_name = event.name if event else None
    # Listeners must not hold a pooled connection while they stay open
    db.close()

    if event_name is None:
        await websocket.close(code=4004, reason="Event not found")
        return

    await websocket_manager.connect(websocket, event_code)

    try:
        welcome_message = {
            "type": "connection",
            "message": f"Connected to event: {event_name}",
            "event_code": event_code,
            "connection_count": websocket_manager.get_connection_count(event_code)
        }
        await websocket_manager.send_personal_message(welcome_message, websocket)

        # Keep connection alive and answer heartbeats
        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue

            if isinstance(client_message, dict) and client_message.get("type") == "ping":
                pong_message = {
                    "type": "pong",
                    "timestamp": client_message.get("timestamp")
                }
                await websocket_manager.send_personal_message(pong_message, websocket)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        websocket_manager.disconnect(websocket, event_code)

@router.get("/stats")
async def websocket_stats():
    """Get WebSocket connection statistics"""
    counts = websocket_manager.get_all_connection_counts()
    return {
        "total_events_with_connections": len(counts),
        "connection_counts": counts,
        "total_connections": sum(counts.values())
    }
