from datetime import datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from bson import ObjectId
from mongomock.store import ServerStore
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import ServerSelectionTimeoutError

from social_graph.api.auth.facebook import FacebookClient
from social_graph.core.database import ConnectionManager
from social_graph.services.social import SocialService


class PingAdmin:
    def __init__(self, error):
        self._error = error

    async def command(self, command):
        if self._error is not None:
            raise self._error
        return {"ok": 1.0}


class MockMotorClient(AsyncMongoMockClient):
    """mongomock-motor client whose ping can be made to fail."""

    def __init__(self, url, store, ping_error=None, **kwargs):
        super().__init__(url, _store=store)
        self.kwargs = kwargs
        self.closed = False
        self._ping_error = ping_error

    @property
    def admin(self):
        return PingAdmin(self._ping_error)

    def close(self):
        self.closed = True


class ClientFactory:
    """Builds mock clients sharing one store; the first ``failures`` of them fail to ping."""

    def __init__(self, store, failures=0):
        self.store = store
        self.failures = failures
        self.clients = []

    def __call__(self, url, **kwargs):
        error = None
        if self.failures:
            self.failures -= 1
            error = ServerSelectionTimeoutError("No servers found")
        client = MockMotorClient(url, self.store, ping_error=error, **kwargs)
        self.clients.append(client)
        return client


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def graph_handler(profiles):
    def handler(request):
        token = request.url.params.get("access_token")
        if token not in profiles:
            return httpx.Response(400, json={"error": {
                "message": "Invalid OAuth access token.",
                "type": "OAuthException",
                "code": 190,
            }})
        return httpx.Response(200, json=profiles[token])

    return handler


def graph_profile(facebook_id, name, friends=(), email=None):
    return {
        "id": facebook_id,
        "name": name,
        "short_name": name.split()[0],
        "email": email or f"{facebook_id}@example.com",
        "picture": {"data": {"url": f"https://pics.test/{facebook_id}.png"}},
        "friends": {"data": [{"id": friend_id} for friend_id in friends]},
    }


@pytest.fixture
def store():
    return ServerStore()


@pytest.fixture
def client_factory(store):
    return ClientFactory(store)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def graph_profiles():
    return {}


@pytest.fixture
def facebook(graph_profiles):
    return FacebookClient(
        graph_url="https://graph.test",
        transport=httpx.MockTransport(graph_handler(graph_profiles)),
    )


@pytest_asyncio.fixture
async def connection(client_factory):
    manager = ConnectionManager(
        url="mongodb://mongo.test:27017",
        database_name="social_test",
        client_factory=client_factory,
    )
    await manager.connect()
    yield manager
    manager.close()


@pytest_asyncio.fixture
async def social(connection, facebook, clock):
    return SocialService(connection, facebook, clock=clock)


@pytest.fixture
def create_user(social):
    async def create(username, **fields):
        doc = {"_id": ObjectId(), "username": username, "display_name": username.title()}
        doc.update(fields)
        await social.users.insert_one(doc)
        return await social.find_user(doc["_id"])

    return create
