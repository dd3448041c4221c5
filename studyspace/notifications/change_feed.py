import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from studyspace.config import settings

logger = logging.getLogger(__name__)

class ChangeFeed:
    """In-process feed of data change events, read by the WebSocket broadcaster.
    
    Services publish an event after committing a change; subscribed clients
    receive it and re-fetch the affected resource. Events carry a monotonically
    increasing sequence number so readers can resume from the last one seen.
    Only the most recent ``buffer_size`` events are retained.
    """
    
    def __init__(self, buffer_size: int = 1000):
        self._events = deque(maxlen=buffer_size)
        self._sequence = 0
        self._lock = threading.Lock()
    
    def publish(
        self,
        channel: str,
        event: str,
        resource: str,
        resource_id: Any = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Append a change event to the feed"""
        with self._lock:
            self._sequence += 1
            change = {
                "sequence": self._sequence,
                "channel": channel,
                "event": event,
                "resource": resource,
                "resource_id": resource_id,
                "payload": payload or {},
                "timestamp": datetime.now().isoformat()
            }
            self._events.append(change)
        logger.debug(f"Change event {change['sequence']}: {channel} {resource}.{event} {resource_id}")
        return change
    
    def publish_many(self, channels: Iterable[str], event: str, resource: str, resource_id: Any = None,
                     payload: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Publish the same change to several channels"""
        return [self.publish(channel, event, resource, resource_id, payload) for channel in channels]
    
    def events_since(self, sequence: int, channels: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """Events newer than ``sequence``, optionally restricted to some channels"""
        wanted = set(channels) if channels is not None else None
        with self._lock:
            return [
                change for change in self._events
                if change["sequence"] > sequence and (wanted is None or change["channel"] in wanted)
            ]
    
    @property
    def latest_sequence(self) -> int:
        with self._lock:
            return self._sequence
    
    def clear(self):
        with self._lock:
            self._events.clear()

# Global change feed instance
change_feed = ChangeFeed(buffer_size=settings.REALTIME_BUFFER_SIZE)
