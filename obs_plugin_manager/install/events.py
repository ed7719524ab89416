"""Typed progress events for plugin operations.

Installers and the orchestrator publish :class:`ProgressEvent` objects on a
:class:`ProgressChannel`. Observers either iterate the channel
asynchronously or register a listener; neither side knows about the other.

Example:
    channel = ProgressChannel()

    async def render() -> None:
        async for event in channel:
            print(f"{event.percent:5.1f}% {event.message}")

    await asyncio.gather(orchestrator.install("obs-websocket", path, progress=channel), render())
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional

logger = logging.getLogger(__name__)


class ProgressStage(Enum):
    """Stages of a plugin operation, in execution order."""

    PRECHECK = "precheck"
    RESOLVING = "resolving"
    SELECTING_ASSET = "selecting_asset"
    BACKING_UP = "backing_up"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    INSTALLING = "installing"
    REMOVING = "removing"
    COMPLETE = "complete"
    FAILED = "failed"


# Default user-facing messages per stage
STAGE_MESSAGES = {
    ProgressStage.PRECHECK: "Checking OBS Studio...",
    ProgressStage.RESOLVING: "Fetching release...",
    ProgressStage.SELECTING_ASSET: "Finding Windows package...",
    ProgressStage.BACKING_UP: "Creating backup...",
    ProgressStage.DOWNLOADING: "Downloading...",
    ProgressStage.EXTRACTING: "Extracting...",
    ProgressStage.INSTALLING: "Installing...",
    ProgressStage.REMOVING: "Removing...",
    ProgressStage.COMPLETE: "Complete",
    ProgressStage.FAILED: "Failed",
}


@dataclass(frozen=True)
class ProgressEvent:
    """A progress update.

    Attributes:
        stage: Operation stage
        percent: Overall completion 0-100, None for stages without a measure
        message: Human-readable status line
        plugin_id: Plugin the operation targets
        timestamp: When the event was created
    """

    stage: ProgressStage
    percent: Optional[float] = None
    message: str = ""
    plugin_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


ProgressListener = Callable[[ProgressEvent], None]

_CLOSED = object()


class ProgressChannel:
    """Single-consumer async stream of progress events with optional listeners.

    Publishing never blocks. Iteration ends once the channel is closed and
    every queued event has been delivered.
    """

    def __init__(self, plugin_id: Optional[str] = None) -> None:
        self.plugin_id = plugin_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._listeners: List[ProgressListener] = []
        self._history: List[ProgressEvent] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def history(self) -> List[ProgressEvent]:
        """Every event published so far."""
        return list(self._history)

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a synchronous listener.

        Returns:
            Function removing the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        """Publish an event. Events published after close are dropped."""
        if self._closed:
            logger.debug("Dropping progress event on closed channel: %s", event.stage)
            return
        self._history.append(event)
        self._queue.put_nowait(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A broken observer must not abort the operation
                logger.exception("Progress listener failed")

    def emit(
        self,
        stage: ProgressStage,
        percent: Optional[float] = None,
        message: Optional[str] = None,
    ) -> None:
        """Publish an event built from a stage, percent and optional message."""
        self.publish(ProgressEvent(
            stage=stage,
            percent=None if percent is None else max(0.0, min(100.0, percent)),
            message=message or STAGE_MESSAGES[stage],
            plugin_id=self.plugin_id,
        ))

    def close(self) -> None:
        """End the stream."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


def emit(
    channel: Optional[ProgressChannel],
    stage: ProgressStage,
    percent: Optional[float] = None,
    message: Optional[str] = None,
) -> None:
    """Publish on ``channel`` if one was given."""
    if channel is not None:
        channel.emit(stage, percent, message)
