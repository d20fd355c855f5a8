"""
Local Answer Cache
==================
Durable per-device key/value store for in-progress answers, question
snapshots and titles. Backed by a single JSON file; no network access.

Keys are structured (CacheKey) and encoded with an explicit delimiter:

    answer::{assignment}::{sub}::{question}
    questions::{assignment}::{sub}
    title::{assignment}::{sub}
    type::{assignment}::{sub}

Any read/write failure is logged and treated as "value absent".
"""
import os
import json
import logging
import tempfile
import threading
from typing import NamedTuple, Optional

from classwork.errors import InvalidIdentifierError

logger = logging.getLogger(__name__)

DELIMITER = "::"

ANSWER = "answer"
QUESTIONS = "questions"
TITLE = "title"
TYPE = "type"

KINDS = (ANSWER, QUESTIONS, TITLE, TYPE)


def _check_identifier(value):
    if not isinstance(value, str) or not value:
        raise InvalidIdentifierError(f"Identifier must be a non-empty string: {value!r}")
    if DELIMITER in value:
        raise InvalidIdentifierError(f"Identifier may not contain '{DELIMITER}': {value!r}")
    return value


class CacheKey(NamedTuple):
    kind: str
    assignment_id: str
    sub_id: str
    question_id: Optional[str] = None

    @classmethod
    def answer(cls, assignment_id, sub_id, question_id):
        return cls(ANSWER, assignment_id, sub_id, question_id)

    @classmethod
    def questions(cls, assignment_id, sub_id):
        return cls(QUESTIONS, assignment_id, sub_id)

    @classmethod
    def title(cls, assignment_id, sub_id):
        return cls(TITLE, assignment_id, sub_id)

    @classmethod
    def element_type(cls, assignment_id, sub_id):
        return cls(TYPE, assignment_id, sub_id)

    def encode(self) -> str:
        if self.kind not in KINDS:
            raise InvalidIdentifierError(f"Unknown cache key kind: {self.kind!r}")
        parts = [self.kind, _check_identifier(self.assignment_id), _check_identifier(self.sub_id)]
        if self.kind == ANSWER:
            parts.append(_check_identifier(self.question_id))
        elif self.question_id is not None:
            raise InvalidIdentifierError(f"'{self.kind}' keys do not carry a question id")
        return DELIMITER.join(parts)

    @classmethod
    def decode(cls, raw: str) -> Optional["CacheKey"]:
        """Parse an encoded key. Returns None for keys that are not ours."""
        if not isinstance(raw, str):
            return None
        parts = raw.split(DELIMITER)
        kind = parts[0]
        if kind == ANSWER and len(parts) == 4:
            key = cls(ANSWER, parts[1], parts[2], parts[3])
        elif kind in (QUESTIONS, TITLE, TYPE) and len(parts) == 3:
            key = cls(kind, parts[1], parts[2])
        else:
            return None
        if not all(parts[1:]):
            return None
        return key

    @property
    def group(self):
        return (self.assignment_id, self.sub_id)


def _encode(key):
    return key.encode() if isinstance(key, CacheKey) else str(key)


class AnswerCache:
    """JSON-file backed key/value store.

    Single writer per process; an internal lock serializes the editing thread
    and autosave timer threads. Several processes sharing one file for the
    same student are not supported.
    """

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)
        self._lock = threading.Lock()

    # -- raw file access ------------------------------------------------------

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Cache file {self.path} does not contain an object")
        return data

    def _write(self, data: dict):
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".cache-", suffix=".json")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=1, sort_keys=True)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    # -- contract -------------------------------------------------------------

    def put(self, key, value) -> bool:
        try:
            encoded = _encode(key)
        except InvalidIdentifierError as e:
            logger.error("Refusing to cache value under invalid key: %s", e)
            return False
        with self._lock:
            try:
                data = self._read()
                data[encoded] = value
                self._write(data)
                return True
            except Exception as e:
                logger.error("Error writing to answer cache %s: %s", self.path, e)
                return False

    def get(self, key):
        try:
            encoded = _encode(key)
        except InvalidIdentifierError as e:
            logger.error("Invalid cache key: %s", e)
            return None
        with self._lock:
            try:
                return self._read().get(encoded)
            except Exception as e:
                logger.error("Error reading from answer cache %s: %s", self.path, e)
                return None

    def remove(self, key) -> bool:
        try:
            encoded = _encode(key)
        except InvalidIdentifierError as e:
            logger.error("Invalid cache key: %s", e)
            return False
        with self._lock:
            try:
                data = self._read()
                if encoded in data:
                    del data[encoded]
                    self._write(data)
                return True
            except Exception as e:
                logger.error("Error deleting from answer cache %s: %s", self.path, e)
                return False

    def list_all(self):
        """Return every (encoded key, value) pair currently stored."""
        with self._lock:
            try:
                return list(self._read().items())
            except Exception as e:
                logger.error("Error listing answer cache %s: %s", self.path, e)
                return []

    # -- helpers --------------------------------------------------------------

    def entries(self):
        """Yield (CacheKey, value) for every decodable entry."""
        for raw, value in self.list_all():
            key = CacheKey.decode(raw)
            if key is None:
                logger.debug("Skipping foreign cache key %r", raw)
                continue
            yield key, value

    def save_answer(self, assignment_id, sub_id, question_id, content) -> bool:
        return self.put(CacheKey.answer(assignment_id, sub_id, question_id), content)

    def load_answer(self, assignment_id, sub_id, question_id):
        return self.get(CacheKey.answer(assignment_id, sub_id, question_id))

    def save_questions(self, assignment_id, sub_id, questions) -> bool:
        return self.put(CacheKey.questions(assignment_id, sub_id), list(questions))

    def save_title(self, assignment_id, sub_id, title) -> bool:
        return self.put(CacheKey.title(assignment_id, sub_id), title)

    def clear_assignment(self, assignment_id) -> int:
        """Drop every entry belonging to an assignment. Returns how many went."""
        doomed = [key for key, _ in self.entries() if key.assignment_id == assignment_id]
        removed = 0
        for key in doomed:
            if self.remove(key):
                removed += 1
        return removed
