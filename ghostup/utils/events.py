"""State events published by upload runs."""
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, DefaultDict, List
import asyncio
import logging

from ..models import UploadState

logger = logging.getLogger(__name__)

STATE_EVENT = "state"


@dataclass(frozen=True)
class StateChange:
    """Transition of a single upload run."""
    path: Path
    filename: str
    previous: UploadState
    current: UploadState


class EventEmitter:
    """
    Fan-out of upload events to sync or async listeners.

    Runs emit independently; a slow listener of one run does not hold back
    events of the other runs in a batch.
    """

    def __init__(self):
        self._listeners: DefaultDict[str, List[Callable]] = defaultdict(list)

    def on(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners[event_name]
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    async def emit(self, event_name: str, *args) -> None:
        """Deliver an event; a failing listener is logged and skipped."""
        for callback in tuple(self._listeners.get(event_name, ())):
            try:
                result = callback(*args)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in {event_name} listener {callback!r}: {e}")
