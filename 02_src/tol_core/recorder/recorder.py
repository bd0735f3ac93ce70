"""ActivityRecorder: persists activity-feed events from the broadcaster."""

import asyncio
from typing import Protocol

from ..broadcaster import IEventBroadcaster
from ..logging_config import get_logger
from ..models import Activity, Event, EventKind
from ..storage import IStorage

logger = get_logger(__name__)

CHANNEL_ID = "activity-recorder"

RECORDED_KINDS = frozenset({EventKind.ACTIVITY_UPDATE, EventKind.CRM_UPDATE})


class IActivityRecorder(Protocol):
    """Writes activity events to Storage. Subscribes as one broadcaster channel."""

    async def start(self) -> None:
        """Subscribe and start the writer task."""
        ...

    async def stop(self) -> None:
        """Unsubscribe and drain pending writes."""
        ...


class ActivityRecorder:
    """Records ACTIVITY_UPDATE and CRM_UPDATE events in the activities table.

    The broadcaster callback only enqueues; a single worker task does the
    database writes so publishers never wait on SQLite.
    """

    def __init__(self, broadcaster: IEventBroadcaster, storage: IStorage):
        self._broadcaster = broadcaster
        self._storage = storage
        self._queue: asyncio.Queue[Event | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._worker: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        """Subscribe to the broadcaster and start the writer task."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._worker = asyncio.create_task(self._run(), name="activity-recorder")
        self._broadcaster.subscribe(CHANNEL_ID, self._handle_event)
        logger.info("ActivityRecorder started")

    async def stop(self) -> None:
        """Unsubscribe and wait for queued events to be written."""
        self._broadcaster.unsubscribe(CHANNEL_ID)
        if not self.running:
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        await self._worker
        self._worker = None
        logger.info("ActivityRecorder stopped")

    async def flush(self) -> None:
        """Wait until everything published so far has been written."""
        # let thread-safe handoffs land in the queue first
        await asyncio.sleep(0)
        await self._queue.join()

    def _handle_event(self, event: Event) -> None:
        if event.kind not in RECORDED_KINDS or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                if event is None:
                    return
                await self._record(event)
            finally:
                self._queue.task_done()

    async def _record(self, event: Event) -> None:
        activity = Activity(
            id=event.id,
            kind=event.kind.value,
            actor_id=event.origin_user_id,
            actor_role=event.origin_role.value if event.origin_role else None,
            data=event.payload,
            occurred_at=event.occurred_at,
        )
        try:
            await self._storage.save_activity(activity)
        except Exception:
            logger.exception(
                "Failed to record activity",
                extra={"context": {"event_id": event.id, "kind": event.kind.value}},
            )
