"""Shared fixtures: an in-memory stand-in for the Motor client."""

import asyncio
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo.errors import CollectionInvalid, ServerSelectionTimeoutError

from docstore_server.core.session import ConnectionSession
from docstore_server.mcp_server.dispatch import Dispatcher
from docstore_server.models.config import ServerSettings
from docstore_server.operations import registry


def _matches(document: dict, query: dict | None) -> bool:
    return all(document.get(key) == value for key, value in (query or {}).items())


class FakeCursor:
    def __init__(self, documents: list[dict]):
        self.documents = documents

    async def to_list(self, length=None):
        return list(self.documents)


class FakeCollection:
    """Equality filters and $set updates are all the tests need."""

    def __init__(self, database: "FakeDatabase", name: str):
        self.database = database
        self.name = name
        self.documents: list[dict] = []
        self.indexes = [{"v": 2, "key": {"_id": 1}, "name": "_id_"}]

    def _materialize(self) -> None:
        self.database.collections.setdefault(self.name, self)

    async def insert_one(self, document):
        self._materialize()
        document = dict(document)
        document.setdefault("_id", ObjectId())
        self.documents.append(document)
        return SimpleNamespace(inserted_id=document["_id"])

    async def insert_many(self, documents, ordered=True):
        ids = [(await self.insert_one(document)).inserted_id for document in documents]
        return SimpleNamespace(inserted_ids=ids)

    async def _update(self, query, update, many):
        matched = [d for d in self.documents if _matches(d, query)]
        if not many:
            matched = matched[:1]
        modified = 0
        for document in matched:
            changes = update.get("$set", {})
            if any(document.get(k) != v for k, v in changes.items()):
                document.update(changes)
                modified += 1
        return SimpleNamespace(
            matched_count=len(matched), modified_count=modified, upserted_id=None
        )

    async def update_one(self, query, update, upsert=False):
        return await self._update(query, update, many=False)

    async def update_many(self, query, update, upsert=False):
        return await self._update(query, update, many=True)

    async def _delete(self, query, many):
        matched = [d for d in self.documents if _matches(d, query)]
        if not many:
            matched = matched[:1]
        for document in matched:
            self.documents.remove(document)
        return SimpleNamespace(deleted_count=len(matched))

    async def delete_one(self, query):
        return await self._delete(query, many=False)

    async def delete_many(self, query):
        return await self._delete(query, many=True)

    async def find_one(self, query, projection=None):
        for document in self.documents:
            if _matches(document, query):
                return dict(document)
        return None

    def find(self, query, **kwargs):
        return FakeCursor([dict(d) for d in self.documents if _matches(d, query)])

    async def count_documents(self, query):
        return sum(1 for d in self.documents if _matches(d, query))

    async def distinct(self, key, query=None):
        values = []
        for document in self.documents:
            if _matches(document, query) and key in document:
                if document[key] not in values:
                    values.append(document[key])
        return values

    def list_indexes(self):
        return FakeCursor(self.indexes)


class FakeDatabase:
    def __init__(self, name: str):
        self.name = name
        self.collections: dict[str, FakeCollection] = {}
        self.commands: list[tuple] = []
        self.ping_error: Exception | None = None
        self.ping_delay = 0.0

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.get(name) or FakeCollection(self, name)

    async def create_collection(self, name, **options):
        if name in self.collections:
            raise CollectionInvalid(f"collection {name} already exists")
        self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    async def drop_collection(self, name):
        self.collections.pop(name, None)
        return {"ok": 1.0}

    async def list_collection_names(self):
        return list(self.collections)

    async def command(self, *args, **kwargs):
        self.commands.append((args, kwargs))
        if args and args[0] == "ping":
            if self.ping_delay:
                await asyncio.sleep(self.ping_delay)
            if self.ping_error is not None:
                raise self.ping_error
        return {"ok": 1.0}


class FakeClient:
    def __init__(self, address: str):
        self.address = address
        self.databases: dict[str, FakeDatabase] = {}
        self.admin = FakeDatabase("admin")
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        return self.databases.setdefault(name, FakeDatabase(name))

    async def list_database_names(self):
        return [name for name, db in self.databases.items() if db.collections]

    async def drop_database(self, name):
        self.databases.pop(name, None)

    def close(self):
        self.closed = True


class FakeClientFactory:
    """Client factory recording every physical connection attempt."""

    def __init__(self):
        self.clients: list[FakeClient] = []
        self.ping_error: Exception | None = None
        self.ping_delay = 0.0

    def __call__(self, address: str) -> FakeClient:
        client = FakeClient(address)
        client.admin.ping_error = self.ping_error
        client.admin.ping_delay = self.ping_delay
        self.clients.append(client)
        return client

    def fail_with(self, message: str = "No servers found") -> None:
        self.ping_error = ServerSelectionTimeoutError(message)

    @property
    def addresses(self) -> list[str]:
        return [client.address for client in self.clients]


DEFAULT_URL = "mongodb://default:27017"


@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def settings() -> ServerSettings:
    return ServerSettings(mongodb_url=DEFAULT_URL, max_reply_bytes=0)


@pytest.fixture
def session(client_factory, settings) -> ConnectionSession:
    return ConnectionSession(
        default_address=settings.mongodb_url, client_factory=client_factory
    )


@pytest.fixture
def dispatcher(session, settings) -> Dispatcher:
    return Dispatcher(session, registry, settings)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep the developer's environment and settings file out of the tests."""
    for name in ("MONGODB_URL", "DOCSTORE_MONGODB_URL", "DOCSTORE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DOCSTORE_CONFIG_FILE", str(tmp_path / "absent.yaml"))
