"""Shared fixtures: an in-memory document store, a SQLite relational store and a frozen clock."""

import copy
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
import pytest_asyncio
from pymongo.errors import DuplicateKeyError

from ace_mentorship.config import Settings
from ace_mentorship.database.relational import RelationalDatabase
from ace_mentorship.database.repositories import PairingRepository, UserRepository
from ace_mentorship.models.identity import Identity, Role
from ace_mentorship.services.audit_service import AuditTrail

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


# --- In-memory document store ---


def _get_path(doc, key):
    value = doc
    for part in key.split("."):
        if not isinstance(value, dict) or part not in value:
            return False, None
        value = value[part]
    return True, value


def _compare(value, op, arg):
    if value is None:
        return False
    if op == "$lt":
        return value < arg
    if op == "$lte":
        return value <= arg
    if op == "$gt":
        return value > arg
    return value >= arg


def _matches(doc, query):
    for key, cond in (query or {}).items():
        present, value = _get_path(doc, key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$in":
                    values = value if isinstance(value, list) else [value]
                    if not any(v in arg for v in values):
                        return False
                elif op == "$nin":
                    values = value if isinstance(value, list) else [value]
                    if any(v in arg for v in values):
                        return False
                elif op == "$ne":
                    if value == arg:
                        return False
                elif op == "$exists":
                    if present != bool(arg):
                        return False
                elif op in ("$lt", "$lte", "$gt", "$gte"):
                    if not _compare(value, op, arg):
                        return False
                else:
                    raise NotImplementedError(op)
        elif isinstance(value, list) and not isinstance(cond, list):
            if cond not in value:
                return False
        elif value != cond:
            return False
    return True


def _project(doc, projection):
    if not projection:
        return copy.deepcopy(doc)
    included = {k for k, v in projection.items() if v}
    result = {k: copy.deepcopy(v) for k, v in doc.items() if k in included}
    if projection.get("_id", 1) and "_id" in doc:
        result["_id"] = doc["_id"]
    return result


def _apply_update(doc, update, inserting=False):
    for op, fields in update.items():
        if op == "$set":
            doc.update(copy.deepcopy(fields))
        elif op == "$unset":
            for key in fields:
                doc.pop(key, None)
        elif op == "$inc":
            for key, amount in fields.items():
                doc[key] = doc.get(key, 0) + amount
        elif op == "$setOnInsert":
            if inserting:
                doc.update(copy.deepcopy(fields))
        else:
            raise NotImplementedError(op)


def _sort_key(field):
    def key(doc):
        value = doc.get(field)
        return (value is not None, value if value is not None else 0)

    return key


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, field, direction=1):
        self._docs.sort(key=_sort_key(field), reverse=direction < 0)
        return self

    def limit(self, count):
        if count:
            self._docs = self._docs[:count]
        return self

    async def to_list(self, length=None):
        return list(self._docs if length is None else self._docs[:length])

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """Just enough of `AsyncIOMotorCollection` for the services under test."""

    def __init__(self, name):
        self.name = name
        self.docs = {}
        self.indexes = {}

    def _find_docs(self, query):
        return [doc for doc in self.docs.values() if _matches(doc, query)]

    def _upsert_seed(self, query):
        return {k: copy.deepcopy(v) for k, v in query.items() if not isinstance(v, dict) and not k.startswith("$")}

    async def insert_one(self, document, session=None):
        doc = copy.deepcopy(document)
        doc.setdefault("_id", uuid4().hex)
        if doc["_id"] in self.docs:
            raise DuplicateKeyError(f"duplicate _id {doc['_id']}")
        self.docs[doc["_id"]] = doc
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query=None, projection=None, session=None):
        found = self._find_docs(query)
        return _project(found[0], projection) if found else None

    def find(self, query=None, projection=None, session=None):
        return FakeCursor([_project(doc, projection) for doc in self._find_docs(query)])

    async def count_documents(self, query, session=None):
        return len(self._find_docs(query))

    async def update_one(self, query, update, upsert=False, session=None):
        found = self._find_docs(query)
        if found:
            _apply_update(found[0], update)
            return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            doc = self._upsert_seed(query)
            _apply_update(doc, update, inserting=True)
            doc.setdefault("_id", uuid4().hex)
            self.docs[doc["_id"]] = doc
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def update_many(self, query, update, session=None):
        found = self._find_docs(query)
        for doc in found:
            _apply_update(doc, update)
        return SimpleNamespace(matched_count=len(found), modified_count=len(found))

    async def replace_one(self, query, replacement, upsert=False, session=None):
        found = self._find_docs(query)
        if found:
            doc = copy.deepcopy(replacement)
            doc["_id"] = found[0]["_id"]
            self.docs[doc["_id"]] = doc
            return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            doc = {**self._upsert_seed(query), **copy.deepcopy(replacement)}
            doc.setdefault("_id", uuid4().hex)
            self.docs[doc["_id"]] = doc
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def find_one_and_update(self, query, update, upsert=False, return_document=False, session=None, **kwargs):
        found = self._find_docs(query)
        if found:
            before = copy.deepcopy(found[0])
            _apply_update(found[0], update)
            return copy.deepcopy(found[0]) if return_document else before
        if upsert:
            doc = self._upsert_seed(query)
            _apply_update(doc, update, inserting=True)
            doc.setdefault("_id", uuid4().hex)
            self.docs[doc["_id"]] = doc
            return copy.deepcopy(doc) if return_document else None
        return None

    async def delete_one(self, query, session=None):
        found = self._find_docs(query)
        if found:
            del self.docs[found[0]["_id"]]
        return SimpleNamespace(deleted_count=len(found[:1]))

    async def find_one_and_delete(self, query, session=None, **kwargs):
        found = self._find_docs(query)
        if not found:
            return None
        return self.docs.pop(found[0]["_id"])

    async def delete_many(self, query, session=None):
        found = self._find_docs(query)
        for doc in found:
            del self.docs[doc["_id"]]
        return SimpleNamespace(deleted_count=len(found))

    async def create_index(self, keys, **options):
        name = options.get("name") or "_".join(f"{field}_{direction}" for field, direction in keys)
        self.indexes[name] = {"key": list(keys), **options}
        return name

    async def index_information(self):
        return {"_id_": {"key": [("_id", 1)]}, **self.indexes}


class FakeDatabaseManager:
    """Stands in for `DatabaseManager`; transactions run without a session."""

    def __init__(self):
        self.collections = {}
        self.transactions_supported = False

    def get_collection(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def run_transaction(self, callback):
        return await callback(None)

    async def connect(self):
        return None

    async def disconnect(self):
        return None

    async def health_check(self):
        return True


class FrozenClock:
    def __init__(self, now=FIXED_NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


# --- Fixtures ---


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'ace.db'}",
        MONGODB_URL="mongodb://localhost:27017",
        METRICS_ENABLED=False,
        DEBUG=True,
    )


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def db_manager():
    return FakeDatabaseManager()


@pytest.fixture
def audit(db_manager, settings, clock):
    return AuditTrail(db_manager, settings, clock)


@pytest_asyncio.fixture
async def relational(settings):
    db = RelationalDatabase(settings)
    db.initialize()
    await db.create_all()
    yield db
    await db.shutdown()


@pytest.fixture
def users(relational):
    return UserRepository(relational)


@pytest.fixture
def pairing_repo(relational):
    return PairingRepository(relational)


@pytest.fixture
def admin():
    return Identity(id="admin-1", email="admin@example.com", name="Ada Admin", role=Role.ADMIN)


@pytest.fixture
def mentor():
    return Identity(id="mentor-1", email="mentor@example.com", name="Mo Mentor", role=Role.MENTOR)


@pytest.fixture
def mentee():
    return Identity(id="mentee-1", email="mentee@example.com", name="Mia Mentee", role=Role.MENTEE)


@pytest_asyncio.fixture
async def people(users):
    """Admin, two mentors and three mentees persisted in the relational store."""
    created = {}
    for user_id, email, name, role in [
        ("admin-1", "admin@example.com", "Ada Admin", Role.ADMIN),
        ("mentor-1", "mentor@example.com", "Mo Mentor", Role.MENTOR),
        ("mentor-2", "mentor2@example.com", "Max Mentor", Role.MENTOR),
        ("mentee-1", "mentee@example.com", "Mia Mentee", Role.MENTEE),
        ("mentee-2", "mentee2@example.com", "Milo Mentee", Role.MENTEE),
        ("mentee-3", "mentee3@example.com", "Mae Mentee", Role.MENTEE),
    ]:
        created[user_id] = await users.create(email, name, role=role, user_id=user_id)
    return created
