"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .broadcaster import EventBroadcaster
from .config import history_limit, recent_on_connect, resolve_db_path, ws_queue_size
from .logging_config import get_logger
from .realtime import ConnectionHub
from .recorder import ActivityRecorder
from .storage import IStorage, Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Owns the single broadcaster instance and everything wired to it."""

    def __init__(self, db_path: str | None = None):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._broadcaster: EventBroadcaster | None = None
        self._recorder: ActivityRecorder | None = None
        self._hub: ConnectionHub | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Broadcaster (in-memory, no dependencies)
        self._broadcaster = EventBroadcaster(history_limit=history_limit())
        logger.info(
            "EventBroadcaster initialized",
            extra={"context": {"history_limit": self._broadcaster.history_limit}},
        )

        # 3. ActivityRecorder (depends on Broadcaster + Storage)
        self._recorder = ActivityRecorder(self._broadcaster, self._storage)
        await self._recorder.start()

        # 4. ConnectionHub (depends on Broadcaster)
        self._hub = ConnectionHub(
            self._broadcaster,
            recent_limit=recent_on_connect(),
            queue_size=ws_queue_size(),
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._recorder:
            await self._recorder.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._recorder:
            await self._recorder.flush()
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")
        if self._broadcaster:
            self._broadcaster.clear()
            logger.info("Event history cleared")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def broadcaster(self) -> EventBroadcaster:
        """Get broadcaster instance."""
        if not self._broadcaster:
            raise RuntimeError("Application not started")
        return self._broadcaster

    @property
    def recorder(self) -> ActivityRecorder:
        """Get activity recorder instance."""
        if not self._recorder:
            raise RuntimeError("Application not started")
        return self._recorder

    @property
    def hub(self) -> ConnectionHub:
        """Get real-time hub instance."""
        if not self._hub:
            raise RuntimeError("Application not started")
        return self._hub
