"""
Remote Submission Document Model
================================
Shape and merge semantics of the per-student submission document:

    {assignment_id: {page_id: {element_id: answer_html}}}

Writes are always partial merges: only the leaf paths present in the patch
are set; siblings at every nesting level survive. A missing document, or a
missing nested path, means "no answer yet".

Two DocumentStore implementations share that contract:
- SupabaseDocumentStore: one table per collection (id text PK, data jsonb)
- MemoryDocumentStore: in-process, for local development and tests
"""
import os
import copy
import logging
import threading
from collections import defaultdict

from classwork.errors import StoreError

logger = logging.getLogger(__name__)


def deep_merge(target: dict, patch: dict) -> dict:
    """Return a new dict with every leaf of `patch` written into `target`."""
    merged = copy.deepcopy(target) if target else {}
    for key, value in (patch or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def build_answer_patch(assignment_id, page_id, element_id, content) -> dict:
    return {assignment_id: {page_id: {element_id: content}}}


def get_path(document, *keys):
    """Walk nested dicts; any missing level yields None."""
    node = document
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def count_answers(document, assignment_id) -> int:
    """Number of answered elements across all pages of one assignment."""
    pages = get_path(document, assignment_id)
    if not isinstance(pages, dict):
        return 0
    return sum(len(answers) for answers in pages.values() if isinstance(answers, dict))


def has_any_answer(document) -> bool:
    if not isinstance(document, dict):
        return False
    return any(count_answers(document, assignment_id) for assignment_id in document)


class DocumentStore:
    """Interface shared by the Supabase and in-memory stores.

    Subscribers are plain callables taking (collection, doc_id); they are
    invoked after every write that goes through the store.
    """

    def __init__(self):
        self._subscribers = defaultdict(list)
        self._sub_lock = threading.Lock()

    def get(self, collection, doc_id) -> dict:
        raise NotImplementedError

    def set(self, collection, doc_id, data):
        raise NotImplementedError

    def merge(self, collection, doc_id, patch):
        raise NotImplementedError

    def delete(self, collection, doc_id):
        raise NotImplementedError

    def list(self, collection, **equals):
        raise NotImplementedError

    def subscribe(self, collection, callback):
        """Register a change observer. Returns an unsubscribe callable."""
        with self._sub_lock:
            self._subscribers[collection].append(callback)

        def unsubscribe():
            with self._sub_lock:
                if callback in self._subscribers[collection]:
                    self._subscribers[collection].remove(callback)

        return unsubscribe

    def _notify(self, collection, doc_id):
        with self._sub_lock:
            callbacks = list(self._subscribers[collection])
        for callback in callbacks:
            try:
                callback(collection, doc_id)
            except Exception as e:
                logger.error("Subscriber for %s failed: %s", collection, e)


class MemoryDocumentStore(DocumentStore):
    """Thread-safe in-process document store."""

    def __init__(self, initial=None):
        super().__init__()
        self._lock = threading.Lock()
        self._collections = defaultdict(dict)
        for collection, docs in (initial or {}).items():
            for doc_id, data in docs.items():
                self._collections[collection][doc_id] = copy.deepcopy(data)

    def get(self, collection, doc_id) -> dict:
        with self._lock:
            return copy.deepcopy(self._collections[collection].get(doc_id, {}))

    def set(self, collection, doc_id, data):
        with self._lock:
            self._collections[collection][doc_id] = copy.deepcopy(data)
        self._notify(collection, doc_id)

    def merge(self, collection, doc_id, patch):
        with self._lock:
            current = self._collections[collection].get(doc_id, {})
            self._collections[collection][doc_id] = deep_merge(current, patch)
        self._notify(collection, doc_id)

    def delete(self, collection, doc_id):
        with self._lock:
            self._collections[collection].pop(doc_id, None)
        self._notify(collection, doc_id)

    def list(self, collection, **equals):
        with self._lock:
            docs = [dict(copy.deepcopy(data), id=doc_id)
                    for doc_id, data in self._collections[collection].items()]
        return [d for d in docs if all(d.get(k) == v for k, v in equals.items())]


class SupabaseDocumentStore(DocumentStore):
    """Document store on Supabase tables with columns (id text, data jsonb).

    merge() is read -> deep_merge -> upsert. Each submission document has
    exactly one writer (its student), so no conflict resolution is needed.
    """

    def __init__(self, client=None, url=None, key=None):
        super().__init__()
        self._client = client
        self._url = url
        self._key = key

    @property
    def client(self):
        """Get or create the Supabase client."""
        if self._client is None:
            from supabase import create_client
            url = self._url or os.getenv("SUPABASE_URL")
            key = self._key or os.getenv("SUPABASE_SERVICE_KEY")
            if not url or not key:
                raise StoreError("Supabase credentials not configured. Check SUPABASE_URL and SUPABASE_SERVICE_KEY in .env")
            self._client = create_client(url, key)
        return self._client

    def get(self, collection, doc_id) -> dict:
        result = self.client.table(collection).select('data').eq('id', doc_id).execute()
        if not result.data:
            return {}
        return result.data[0].get('data') or {}

    def set(self, collection, doc_id, data):
        self.client.table(collection).upsert({'id': doc_id, 'data': data}).execute()
        self._notify(collection, doc_id)

    def merge(self, collection, doc_id, patch):
        current = self.get(collection, doc_id)
        self.client.table(collection).upsert({'id': doc_id, 'data': deep_merge(current, patch)}).execute()
        self._notify(collection, doc_id)

    def delete(self, collection, doc_id):
        self.client.table(collection).delete().eq('id', doc_id).execute()
        self._notify(collection, doc_id)

    def list(self, collection, **equals):
        query = self.client.table(collection).select('id, data')
        for field, value in equals.items():
            query = query.eq(f'data->>{field}', value)
        result = query.execute()
        return [dict(row.get('data') or {}, id=row.get('id')) for row in result.data]


_store = None


def get_store() -> DocumentStore:
    """Process-wide store: Supabase when configured, in-memory otherwise."""
    global _store
    if _store is None:
        if os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_SERVICE_KEY"):
            _store = SupabaseDocumentStore()
        else:
            logger.warning("Supabase credentials not configured; using in-memory document store")
            _store = MemoryDocumentStore()
    return _store


def set_store(store):
    global _store
    _store = store
