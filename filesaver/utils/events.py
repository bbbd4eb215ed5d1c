import asyncio
import inspect
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

ENTRY_START = "entry_start"
ENTRY_DONE = "entry_done"
ENTRY_SKIPPED = "entry_skipped"
TIMEOUT = "timeout"


class EventEmitter:
    """Event emitter for batch save progress. Listeners may be sync or async."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()

    def on(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners.setdefault(event_name, [])
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    async def emit(self, event_name: str, *args, **kwargs) -> None:
        listeners = self._listeners.get(event_name)
        if not listeners:
            return

        async with self._lock:
            for callback in list(listeners):
                try:
                    result = callback(*args, **kwargs)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error("Error in event listener for %s: %s", event_name, e)
