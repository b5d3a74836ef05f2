import itertools
import logging
from datetime import datetime, timezone

import pytest

from studenthub import create_app
from studenthub.config import RATE_LIMIT_DEFAULTS, AppConfig
from studenthub.extensions import Runtime

FIXED_NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
AUTH_HEADERS = {"Authorization": "Bearer good-token"}


class FakeTime:
    def __init__(self, start=1_800_000_000.0):
        self.now = start

    def time(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeIncrement:
    def __init__(self, amount):
        self.amount = amount


class FakeFirestoreModule:
    Increment = FakeIncrement


class FakeAuth:
    def __init__(self, tokens=None):
        self.tokens = tokens if tokens is not None else {"good-token": {"uid": "u1"}}
        self.calls = 0

    def verify_id_token(self, token):
        self.calls += 1
        if token not in self.tokens:
            raise ValueError("invalid token")
        return self.tokens[token]


class _Snapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class _DocRef:
    def __init__(self, db, collection_name, doc_id):
        self.db = db
        self.collection_name = collection_name
        self.id = doc_id

    def _store(self):
        return self.db.data.setdefault(self.collection_name, {})

    def get(self, transaction=None):
        return _Snapshot(self, self._store().get(self.id))

    def set(self, data, merge=False):
        existing = dict(self._store().get(self.id) or {}) if merge else {}
        for key, value in data.items():
            if isinstance(value, FakeIncrement):
                value = existing.get(key, 0) + value.amount
            existing[key] = value
        self._store()[self.id] = existing

    def update(self, data):
        if self.id not in self._store():
            raise KeyError(f"No document to update: {self.collection_name}/{self.id}")
        self._store()[self.id].update(data)

    def delete(self):
        self._store().pop(self.id, None)


class _Query:
    def __init__(self, db, collection_name, filters=(), order=None, limit_count=None):
        self.db = db
        self.collection_name = collection_name
        self.filters = list(filters)
        self.order = order
        self.limit_count = limit_count

    def where(self, *args, **kwargs):
        if "filter" in kwargs:
            raise TypeError("filter keyword unsupported")
        return _Query(self.db, self.collection_name, self.filters + [args], self.order, self.limit_count)

    def order_by(self, field_path, direction=None):
        return _Query(self.db, self.collection_name, self.filters, (field_path, direction), self.limit_count)

    def limit(self, count):
        return _Query(self.db, self.collection_name, self.filters, self.order, count)

    def _matches(self, data):
        for field_path, op_string, value in self.filters:
            if op_string == "==" and data.get(field_path) != value:
                return False
            if op_string == "array_contains" and value not in (data.get(field_path) or []):
                return False
        return True

    def stream(self):
        store = self.db.data.get(self.collection_name, {})
        snapshots = [
            _Snapshot(_DocRef(self.db, self.collection_name, doc_id), data)
            for doc_id, data in list(store.items())
            if self._matches(data)
        ]
        if self.order:
            field_path, direction = self.order
            snapshots.sort(key=lambda snap: snap.to_dict().get(field_path), reverse=direction == "DESCENDING")
        if self.limit_count is not None:
            snapshots = snapshots[:self.limit_count]
        return iter(snapshots)


class _Collection(_Query):
    def document(self, doc_id=None):
        return _DocRef(self.db, self.collection_name, doc_id or f"auto-{next(self.db.ids)}")

    def add(self, payload):
        ref = self.document()
        ref.set(payload)
        return None, ref


class FakeDB:
    """Dict-backed stand-in for the handful of Firestore calls the app makes."""

    def __init__(self, data=None):
        self.data = data or {}
        self.ids = itertools.count(1)

    def collection(self, name):
        return _Collection(self, name)

    def docs(self, name):
        return self.data.get(name, {})


class FakeAI:
    """Records prompts; replies come from queues (last reply repeats) or raise."""

    def __init__(self, text="AI reply", structured=None, structured_queue=None, error=None):
        self.texts = [text]
        self.structured = list(structured_queue) if structured_queue is not None else [structured]
        self.error = error
        self.text_prompts = []
        self.structured_prompts = []

    @staticmethod
    def _next(queue):
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def generate_text(self, prompt):
        self.text_prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self._next(self.texts)

    def generate_structured(self, prompt):
        self.structured_prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self._next(self.structured)


class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name

    def download_as_bytes(self):
        if self.name not in self.bucket.objects:
            raise FileNotFoundError(self.name)
        return self.bucket.objects[self.name]


class FakeBucket:
    def __init__(self, objects=None):
        self.objects = objects or {}
        self.requested = []

    def blob(self, name):
        self.requested.append(name)
        return FakeBlob(self, name)


def make_config(**overrides):
    values = {
        "flask_secret_key": "test-secret",
        "runtime_env": "test",
        "sentry_dsn": "",
        "gemini_api_key": "",
        "rate_limit_backend": "memory",
        "exam_files_prefix": "exam-pdfs",
        "motivation_cache_seconds": 3600,
        "rate_limits": dict(RATE_LIMIT_DEFAULTS),
        "cors_allowed_origins": frozenset({"http://localhost:3000"}),
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture()
def fake_time():
    return FakeTime()


@pytest.fixture()
def fake_db():
    return FakeDB()


@pytest.fixture()
def build_client(fake_time, fake_db):
    """Factory returning ``(client, runtime)`` wired with fakes."""

    def _build(ai=None, config=None, bucket=None, classroom_factory=None, google_factory=None, auth_module=None):
        runtime = Runtime(
            config=config or make_config(),
            logger=logging.getLogger("studenthub.tests"),
            db=fake_db,
            bucket=bucket,
            firestore_module=FakeFirestoreModule,
            auth_module=auth_module or FakeAuth(),
            ai=ai,
            google_factory=google_factory,
            classroom_factory=classroom_factory,
            time_module=fake_time,
            clock=lambda: FIXED_NOW,
        )
        app = create_app(config=runtime.config, runtime=runtime)
        app.config["TESTING"] = True
        return app.test_client(), runtime

    return _build
