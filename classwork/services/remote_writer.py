"""
Debounced Remote Writer
=======================
Coalesces bursts of editor changes into one merge-write per quiet period
per (assignment, page, element).

Each key runs a small state machine:

    IDLE --edit--> PENDING(deadline) --edit--> PENDING(new deadline)
    PENDING --timer fires--> FLUSHED --edit--> PENDING

Keys never share a timer or a payload. Writes for one key are serialized,
so they go out in the order their windows close. Failed writes are logged
and dropped; the local cache is left untouched.
"""
import enum
import logging
import threading

from classwork.services.documents import build_answer_patch

logger = logging.getLogger(__name__)

SUBMISSIONS = 'submissions'


class WriteState(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    FLUSHED = "flushed"


class _Slot:
    """Debounce state for one element."""

    __slots__ = ('state', 'content', 'timer', 'generation', 'sent_generation', 'write_lock')

    def __init__(self):
        self.state = WriteState.IDLE
        self.content = None
        self.timer = None
        self.generation = 0
        self.sent_generation = 0
        self.write_lock = threading.Lock()


class DebouncedRemoteWriter:
    """Trailing-edge debounce in front of DocumentStore.merge()."""

    def __init__(self, store, user_id, delay=1.5, timer_factory=None, collection=SUBMISSIONS):
        self.store = store
        self.user_id = user_id
        self.delay = delay
        self.collection = collection
        self._timer_factory = timer_factory or threading.Timer
        self._slots = {}
        self._lock = threading.Lock()

    def on_answer_changed(self, assignment_id, page_id, element_id, content):
        key = (assignment_id, page_id, element_id)
        with self._lock:
            slot = self._slots.setdefault(key, _Slot())
            if slot.timer is not None:
                slot.timer.cancel()
            slot.generation += 1
            slot.content = content
            slot.state = WriteState.PENDING
            timer = self._timer_factory(self.delay, self._fire, args=(key, slot.generation))
            timer.daemon = True
            slot.timer = timer
        timer.start()

    def _fire(self, key, generation):
        with self._lock:
            slot = self._slots.get(key)
            # A newer edit re-armed the timer after this one was scheduled
            if slot is None or slot.generation != generation or slot.state is not WriteState.PENDING:
                return
            content = slot.content
            slot.timer = None
            slot.state = WriteState.FLUSHED
            write_lock = slot.write_lock
        with write_lock:
            # Two closed windows raced for the lock; never send the older one last
            if generation <= slot.sent_generation:
                return
            slot.sent_generation = generation
            self._write(key, content)

    def _write(self, key, content):
        assignment_id, page_id, element_id = key
        patch = build_answer_patch(assignment_id, page_id, element_id, content)
        try:
            self.store.merge(self.collection, self.user_id, patch)
            logger.debug("Saved [%s/%s/%s] for %s", assignment_id, page_id, element_id, self.user_id)
        except Exception as e:
            logger.warning("Error saving answer %s for %s: %s", "/".join(key), self.user_id, e)

    def flush(self, key):
        """Send a pending write immediately instead of waiting for its timer."""
        with self._lock:
            slot = self._slots.get(key)
            if slot is None or slot.state is not WriteState.PENDING:
                return False
            generation = slot.generation
            if slot.timer is not None:
                slot.timer.cancel()
        self._fire(key, generation)
        return True

    def flush_all(self):
        flushed = 0
        for key in self.pending_keys():
            if self.flush(key):
                flushed += 1
        return flushed

    def cancel_all(self):
        """Abandon every pending write (leaving an editor without saving)."""
        with self._lock:
            dropped = 0
            for slot in self._slots.values():
                if slot.state is WriteState.PENDING:
                    if slot.timer is not None:
                        slot.timer.cancel()
                    slot.timer = None
                    slot.state = WriteState.IDLE
                    slot.generation += 1
                    dropped += 1
        if dropped:
            logger.info("Abandoned %d pending answer write(s) for %s", dropped, self.user_id)
        return dropped

    def pending_keys(self):
        with self._lock:
            return sorted(k for k, slot in self._slots.items() if slot.state is WriteState.PENDING)

    def state_of(self, key) -> WriteState:
        with self._lock:
            slot = self._slots.get(key)
            return slot.state if slot is not None else WriteState.IDLE
