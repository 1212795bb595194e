from dataclasses import dataclass
from typing import Callable, Dict, List
import asyncio
import inspect
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchProgress:
    """Progress of a batch upload: items settled out of items total."""
    completed: int
    total: int
    succeeded: int = 0
    failed: int = 0


class EventEmitter:
    """Simple event emitter for commit events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()
        self._muted = False

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def mute(self):
        """Drop every later emit (used once a batch is abandoned)."""
        self._muted = True

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners."""
        if self._muted or event_name not in self._listeners:
            return

        async with self._lock:
            for callback in self._listeners[event_name][:]:
                try:
                    result = callback(*args, **kwargs)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Error in event listener for {event_name}: {e}")
