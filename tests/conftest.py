"""
Shared test fixtures for Classwork.
Temporary cache/archive paths, an in-memory document store, manually fired
timers and a Flask test client.
Zero network calls — all data from local fixtures.
"""
import json
import pytest

from classwork.config import config
from classwork.services import documents
from classwork.services.answer_cache import AnswerCache
from classwork.services.documents import MemoryDocumentStore

SAMPLE_DEFINITION = {
    "assignmentTitle": "Reading Response",
    "pages": [
        {
            "id": "P1",
            "title": "Before reading",
            "elements": [
                {"type": "text", "content": "<p>Look at the title.</p>"},
                {"type": "quill", "id": "Q1", "question": "What do you expect?"},
                {"type": "quill", "id": "Q2", "question": "Which clues support it?"},
            ],
        },
        {
            "id": "P2",
            "title": "After reading",
            "elements": [
                {"type": "quill", "id": "Q1", "question": "Were you right?"},
            ],
        },
    ],
}


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.cancelled = True
            self.function(*self.args, **self.kwargs)


class TimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args, kwargs)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled]

    def fire_all(self):
        for timer in list(self.live):
            timer.fire()


class RecordingStore(MemoryDocumentStore):
    """In-memory store that remembers every merge it receives."""

    def __init__(self, initial=None, fail=False):
        super().__init__(initial)
        self.merges = []
        self.fail = fail

    def merge(self, collection, doc_id, patch):
        if self.fail:
            raise ConnectionError("network unreachable")
        self.merges.append((collection, doc_id, patch))
        super().merge(collection, doc_id, patch)


class FakeDefinitions:
    """DefinitionClient stand-in: returns fixed definitions or raises."""

    def __init__(self, definitions=None, error=None):
        self.definitions = definitions or {}
        self.error = error
        self.calls = []

    def fetch(self, assignment_id):
        self.calls.append(assignment_id)
        if self.error is not None:
            raise self.error
        return self.definitions.get(assignment_id)


@pytest.fixture
def sample_definition():
    return json.loads(json.dumps(SAMPLE_DEFINITION))


@pytest.fixture
def cache(tmp_path):
    """An empty answer cache in a temp directory."""
    return AnswerCache(str(tmp_path / "cache" / "answer_cache.json"))


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def timers():
    return TimerFactory()


@pytest.fixture
def definitions_dir(tmp_path, sample_definition):
    """Definitions directory holding A1.json."""
    folder = tmp_path / "assignments"
    folder.mkdir()
    (folder / "A1.json").write_text(json.dumps(sample_definition))
    return folder


@pytest.fixture
def app_store(monkeypatch):
    """Process-wide store used by the Flask routes."""
    memory = MemoryDocumentStore()
    monkeypatch.setattr(documents, "_store", memory)
    return memory


@pytest.fixture
def app(monkeypatch, tmp_path, definitions_dir, app_store):
    """Flask app with temp archive/definitions and real JWT auth."""
    from classwork.app import create_app

    monkeypatch.setenv("SUPABASE_JWT_SECRET", "test-secret-with-at-least-32-bytes!!")
    monkeypatch.setattr(config, "definitions_dir", str(definitions_dir))
    monkeypatch.setattr(config, "archive_dir", str(tmp_path / "archive"))
    monkeypatch.setattr(config, "teacher_key", "letmein")
    monkeypatch.setattr(config, "auth_disabled", False)
    flask_app = create_app()
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def http(app):
    return app.test_client()


def make_token(user_id, teacher=False, secret="test-secret-with-at-least-32-bytes!!", **extra):
    import jwt
    import time
    payload = {
        "sub": user_id,
        "email": f"{user_id}@school.test",
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        "app_metadata": {"isTeacher": True} if teacher else {},
    }
    payload.update(extra)
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def student_headers():
    return {"Authorization": "Bearer " + make_token("student-1")}


@pytest.fixture
def teacher_headers():
    return {"Authorization": "Bearer " + make_token("teacher-1", teacher=True)}
