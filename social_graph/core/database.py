import asyncio
import enum
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, monitoring
from pymongo.errors import PyMongoError

from social_graph.core.config import settings

logger = logging.getLogger(__name__)


USER_COLLECTION = "users"
FRIEND_REQUEST_COLLECTION = "friend_requests"


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class HeartbeatWatcher(monitoring.ServerHeartbeatListener):
    """Reports failed server heartbeats back to the ConnectionManager.

    pymongo calls this from its monitor thread, so the manager is only
    handed the event; the reconnect itself runs on the event loop.
    """

    def __init__(self, manager):
        self.manager = manager

    def started(self, event):
        pass

    def succeeded(self, event):
        pass

    def failed(self, event):
        self.manager.heartbeat_failed(self, event)


class ConnectionManager:
    """Owns the motor client and its disconnected/connecting/connected state.

    Built once by process wiring and handed to the services that need the
    database. ``connect()`` is idempotent; once connected, a heartbeat
    watcher brings the connection back whenever the server drops it.
    """

    def __init__(self, url=None, database_name=None, client_factory=AsyncIOMotorClient):
        self.url = url or settings.MONGO_URL
        self.database_name = database_name or settings.MONGO_DATABASE
        self.client_factory = client_factory
        self.client = None
        self.state = ConnectionState.DISCONNECTED
        self._watcher = None
        self._loop = None
        self._closed = False
        self._reconnect_task = None
        self._disconnect_listeners = []

    @property
    def database(self):
        if self.client is None:
            raise RuntimeError("Database is not connected")
        return self.client[self.database_name]

    def on_disconnect(self, callback):
        """Registers ``callback()`` to run each time the connection drops."""
        self._disconnect_listeners.append(callback)

    async def connect(self, callback=None):
        # skip if already connecting or connected.
        if self.state is not ConnectionState.DISCONNECTED:
            if callback:
                callback(None)
            return

        self.state = ConnectionState.CONNECTING
        self._closed = False
        self._loop = asyncio.get_running_loop()
        watcher = HeartbeatWatcher(self)
        client = None
        try:
            client = self.client_factory(
                self.url,
                serverSelectionTimeoutMS=settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
                event_listeners=[watcher],
            )
            await client.admin.command("ping")
        except PyMongoError as e:
            logger.error("Error connecting to database %s: %s", self.url, e)
            self.state = ConnectionState.DISCONNECTED
            if client is not None:
                client.close()
            if callback:
                callback(e)
            return

        self.client = client
        self._watcher = watcher
        self.state = ConnectionState.CONNECTED
        logger.info("Successfully connected to %s", self.url)
        if callback:
            callback(None)

    def heartbeat_failed(self, watcher, event):
        # stale watchers belong to clients that were already replaced
        if watcher is not self._watcher or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._schedule_reconnect)

    def _schedule_reconnect(self):
        if self.state is not ConnectionState.CONNECTED or self._closed:
            return
        self._reconnect_task = asyncio.ensure_future(self.handle_disconnect())
        self._reconnect_task.add_done_callback(_log_reconnect_failure)

    async def handle_disconnect(self):
        """Marks the connection as lost and reconnects until it succeeds."""
        if self.state is not ConnectionState.CONNECTED:
            return
        logger.warning("Lost connection to %s, reconnecting", self.url)
        self._drop_client()
        for listener in list(self._disconnect_listeners):
            listener()

        while not self._closed and self.state is ConnectionState.DISCONNECTED:
            await self.connect()

    def _drop_client(self):
        client = self.client
        self.client = None
        self._watcher = None
        self.state = ConnectionState.DISCONNECTED
        if client is not None:
            client.close()

    def close(self):
        self._closed = True
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._drop_client()


def _log_reconnect_failure(task):
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Reconnect to database stopped: %r", error, exc_info=error)


async def ensure_indexes(database):
    """Creates the indexes the social collections rely on.

    Not called on connect; process wiring runs it when
    ``MONGO_ENSURE_INDEXES`` is enabled.
    """
    users = database[USER_COLLECTION]
    await users.create_index("facebook_id", unique=True, sparse=True)
    await users.create_index("updated_at")

    requests = database[FRIEND_REQUEST_COLLECTION]
    await requests.create_index(
        [("sender", ASCENDING), ("receiver", ASCENDING)], unique=True
    )
    await requests.create_index("receiver")
