from fastapi import WebSocket, WebSocketDisconnect
from typing import List, Dict, Set
import json
import asyncio
import logging
from datetime import datetime

from studyspace.auth.permissions import MERCHANT, is_operational
from studyspace.config import settings
from studyspace.notifications.change_feed import change_feed

logger = logging.getLogger(__name__)

STAFF_CHANNEL = "staff"

def allowed_channels(user) -> Set[str]:
    """Channels a user may subscribe to"""
    channels = {f"user:{user.id}"}
    if user.role == MERCHANT:
        channels.add(f"merchant:{user.id}")
    if is_operational(user.role):
        channels.add(STAFF_CHANNEL)
    return channels

class WebSocketManager:
    """Manager for WebSocket connections and change-feed delivery"""
    
    def __init__(self):
        self.active_connections: List[WebSocket] = []
        # Keyed by id(websocket)
        self.subscriptions: Dict[int, Set[str]] = {}
        self.cursors: Dict[int, int] = {}
        self._broadcast_task = None
    
    async def connect(self, websocket: WebSocket):
        """Accept new WebSocket connection"""
        await websocket.accept()
        self.active_connections.append(websocket)
        self.subscriptions[id(websocket)] = set()
        self.cursors[id(websocket)] = change_feed.latest_sequence
        
        # A task left behind by a closed event loop never finishes
        if (not self._broadcast_task or self._broadcast_task.done()
                or self._broadcast_task.get_loop() is not asyncio.get_running_loop()):
            self._broadcast_task = asyncio.create_task(self._broadcast_updates())
    
    def disconnect(self, websocket: WebSocket):
        """Remove WebSocket connection"""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        self.subscriptions.pop(id(websocket), None)
        self.cursors.pop(id(websocket), None)
    
    async def subscribe(self, websocket: WebSocket, channel: str):
        """Subscribe WebSocket to a change channel"""
        self.subscriptions.setdefault(id(websocket), set()).add(channel)
        await self.send_personal_message(websocket, {
            "type": "subscription_confirmed",
            "channel": channel,
            "sequence": self.cursors.get(id(websocket), change_feed.latest_sequence),
            "timestamp": datetime.now().isoformat()
        })
    
    async def unsubscribe(self, websocket: WebSocket, channel: str):
        """Unsubscribe WebSocket from a change channel"""
        self.subscriptions.get(id(websocket), set()).discard(channel)
        await self.send_personal_message(websocket, {
            "type": "unsubscribed",
            "channel": channel,
            "timestamp": datetime.now().isoformat()
        })
    
    async def send_personal_message(self, websocket: WebSocket, message: dict):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(message, default=str))
        except (WebSocketDisconnect, RuntimeError):
            # Connection might be closed
            self.disconnect(websocket)
    
    async def deliver_pending(self):
        """Push new change events to every subscribed connection"""
        latest = change_feed.latest_sequence
        for websocket in list(self.active_connections):
            key = id(websocket)
            channels = self.subscriptions.get(key)
            if not channels:
                continue
            cursor = self.cursors.get(key, 0)
            for event in change_feed.events_since(cursor, channels):
                if event["sequence"] > latest:
                    break
                await self.send_personal_message(websocket, {"type": "change", **event})
            if key in self.cursors:
                self.cursors[key] = max(cursor, latest)
    
    async def _broadcast_updates(self):
        """Background task to broadcast change events"""
        while self.active_connections:
            try:
                await self.deliver_pending()
                await asyncio.sleep(settings.REALTIME_POLL_SECONDS)
            except Exception as e:
                logger.error(f"Error in broadcast task: {e}")
                await asyncio.sleep(5)

# Global WebSocket manager instance
ws_manager = WebSocketManager()

async def websocket_endpoint(websocket: WebSocket, user):
    """Change-feed WebSocket session for an authenticated user"""
    await ws_manager.connect(websocket)
    permitted = allowed_channels(user)
    
    try:
        while True:
            data = await websocket.receive_text()
            
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await ws_manager.send_personal_message(websocket, {"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                await ws_manager.send_personal_message(websocket, {"type": "error", "message": "Invalid message"})
                continue
            
            message_type = message.get("type")
            channel = message.get("channel")
            
            if message_type == "subscribe":
                if channel in permitted:
                    await ws_manager.subscribe(websocket, channel)
                else:
                    await ws_manager.send_personal_message(websocket, {
                        "type": "error",
                        "message": f"Not allowed to subscribe to {channel}"
                    })
            
            elif message_type == "unsubscribe":
                await ws_manager.unsubscribe(websocket, channel)
            
            elif message_type == "ping":
                await ws_manager.send_personal_message(websocket, {
                    "type": "pong",
                    "timestamp": datetime.now().isoformat()
                })
                
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket)
