"""
Shared fixtures: in-memory stand-ins for the motor client, collection and
cursor, plus settings and connection profiles for the catalogue service.
No real MongoDB is contacted by any test.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from bson import Decimal128, ObjectId

from catalogue.config.settings import ConnectionConfig, ConnectionMode, Settings
from catalogue.core.exceptions import StoreConnectionError
from catalogue.core.store_handle import StoreHandle

ENV_VARS = (
    "MONGO",
    "DOCUMENTDB",
    "MONGO_URL",
    "MONGO_DATABASE",
    "MONGO_COLLECTION",
    "MONGO_RETRY_INTERVAL_MS",
    "MONGO_CONNECT_TIMEOUT_MS",
    "MONGO_HEALTH_CHECK_INTERVAL_MS",
    "GO_SLOW",
    "CATALOGUE_SERVER_HOST",
    "CATALOGUE_SERVER_PORT",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


# ============================================================================
# FAKE MOTOR OBJECTS
# ============================================================================

def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, expected in query.items():
        if key == "$text":
            terms = expected["$search"].lower().split()
            haystack = f"{document.get('name', '')} {document.get('description', '')}".lower()
            if not any(term in haystack for term in terms):
                return False
        elif isinstance(document.get(key), list):
            if expected not in document[key]:
                return False
        elif document.get(key) != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, documents: List[Dict[str, Any]], error: Optional[Exception] = None):
        self._documents = list(documents)
        self._error = error

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self._documents.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    async def to_list(self, length=None) -> List[Dict[str, Any]]:
        if self._error is not None:
            raise self._error
        return list(self._documents)


class FakeCollection:
    """Async collection over a list of dicts; counts every operation."""

    def __init__(self, documents: List[Dict[str, Any]], error: Optional[Exception] = None):
        self.documents = documents
        self.error = error
        self.calls: List[tuple] = []

    def find(self, query: Dict[str, Any]) -> FakeCursor:
        self.calls.append(("find", query))
        return FakeCursor([d for d in self.documents if _matches(d, query)], self.error)

    async def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self.calls.append(("find_one", query))
        if self.error is not None:
            raise self.error
        for document in self.documents:
            if _matches(document, query):
                return document
        return None

    async def distinct(self, key: str) -> List[Any]:
        self.calls.append(("distinct", key))
        if self.error is not None:
            raise self.error
        values: List[Any] = []
        for document in self.documents:
            for value in document.get(key, []):
                if value not in values:
                    values.append(value)
        return values


class FakeAdmin:
    def __init__(self, client: "FakeClient"):
        self._client = client

    async def command(self, name: str) -> Dict[str, Any]:
        self._client.pings += 1
        if self._client.ping_delay:
            await asyncio.sleep(self._client.ping_delay)
        if self._client.ping_error is not None:
            raise self._client.ping_error
        return {"ok": 1.0}


class FakeClient:
    """Stand-in for AsyncIOMotorClient: client[db][collection], admin ping, close."""

    def __init__(
        self,
        collection: Optional[FakeCollection] = None,
        ping_error=None,
        ping_delay: float = 0,
        **kwargs,
    ):
        self.collection = collection or FakeCollection([])
        self.ping_error = ping_error
        self.ping_delay = ping_delay
        self.kwargs = kwargs
        self.pings = 0
        self.closed = False
        self.selected: List[tuple] = []
        self.admin = FakeAdmin(self)

    def __getitem__(self, database: str):
        client = self

        class _Database:
            def __getitem__(self, collection: str) -> FakeCollection:
                client.selected.append((database, collection))
                return client.collection

        return _Database()

    def close(self) -> None:
        self.closed = True


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host environment out of Settings()."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo configure_logging() calls made during a test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def products() -> List[Dict[str, Any]]:
    return [
        {
            "_id": ObjectId("64b7f0c2a1b2c3d4e5f60001"),
            "sku": "STAN-1",
            "name": "Stan",
            "description": "Small plush robot",
            "price": Decimal128(Decimal("67.99")),
            "categories": ["Robot", "Plush"],
        },
        {
            "_id": ObjectId("64b7f0c2a1b2c3d4e5f60002"),
            "sku": "RED-1",
            "name": "Ewooid",
            "description": "Red rocket with extra thrust",
            "price": 42,
            "categories": ["Robot"],
        },
        {
            "_id": ObjectId("64b7f0c2a1b2c3d4e5f60003"),
            "sku": "CNA",
            "name": "Cybernetic Antenna",
            "description": "Antenna upgrade kit",
            "price": 1024,
            "categories": ["Artificial Intelligence"],
        },
    ]


@pytest.fixture
def collection(products) -> FakeCollection:
    return FakeCollection(products)


@pytest.fixture
def store(collection) -> StoreHandle:
    return StoreHandle(FakeClient(collection), collection)


@pytest.fixture
def connection_config() -> ConnectionConfig:
    return ConnectionConfig(
        mode=ConnectionMode.PLAIN,
        url="mongodb://localhost:27017/catalogue",
        retry_interval_ms=500,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(MONGO=True, _env_file=None)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fast_sleep(sleeps):
    """Recording replacement for asyncio.sleep that only yields to the loop."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
        await asyncio.sleep(0)

    return _sleep


@pytest.fixture
def make_connector():
    """
    Build a connector that fails `failures` times, then hands out `handles`
    in order (the last one repeats). failures=None never succeeds.
    """

    def _make(*handles: StoreHandle, failures: Optional[int] = 0):
        calls: List[ConnectionConfig] = []

        async def connector(config: ConnectionConfig) -> StoreHandle:
            calls.append(config)
            if failures is None or len(calls) <= failures:
                raise StoreConnectionError("connection refused")
            index = min(len(calls) - failures - 1, len(handles) - 1)
            return handles[index]

        connector.calls = calls
        return connector

    return _make
