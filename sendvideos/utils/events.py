"""Callback dispatch helpers and a small event emitter."""
import asyncio
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


async def call_listener(callback: Callable, *args, **kwargs) -> Any:
    """Call a sync or async callback, awaiting it when needed."""
    result = callback(*args, **kwargs)
    if asyncio.iscoroutine(result):
        result = await result
    return result


async def safe_call(callback: Callable, *args, label: str = "callback", **kwargs) -> None:
    """Call a caller-supplied callback; its errors are logged, never raised."""
    try:
        await call_listener(callback, *args, **kwargs)
    except Exception as e:
        logger.error(f"Error in {label}: {e}")


class EventEmitter:
    """Simple event emitter for upload and polling events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners."""
        if event_name not in self._listeners:
            return

        async with self._lock:
            for callback in self._listeners[event_name][:]:  # listeners may unsubscribe while we iterate
                await safe_call(callback, *args, label=f"event listener for {event_name}", **kwargs)
