"""
Final submission of all gathered work.

Submitting is a one-shot, explicitly confirmed operation. The trigger is
disabled synchronously, before any network call starts, so a double-click
during the round trip cannot produce a second request.
"""
import logging
import threading
import concurrent.futures
from dataclasses import dataclass, field
from typing import Optional

from classwork.errors import ClassworkError
from classwork.services.legacy import legacy_identifier

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
BUSY = "busy"
CANCELLED = "cancelled"
EMPTY = "empty"
ALREADY_SUBMITTED = "already_submitted"


@dataclass
class SubmitResult:
    status: str
    message: str = ""
    assignment_ids: list = field(default_factory=list)

    @property
    def ok(self):
        return self.status == SUCCESS


class FinalSubmitter:
    """
    Args:
        client: LegacySubmissionClient (anything with submit(identifier, payload, mode))
        gatherer: DraftGatherer
        confirm: callable(student) -> bool, the confirmation step
        mode: 'live' or 'test', forwarded to the endpoint
    """

    def __init__(self, client, gatherer, confirm, mode='live'):
        self.client = client
        self.gatherer = gatherer
        self.confirm = confirm
        self.mode = mode
        self.submitted = False
        self._in_flight = False
        self._lock = threading.Lock()
        self._executor = None

    @property
    def trigger_enabled(self):
        with self._lock:
            return not self._in_flight and not self.submitted

    def _acquire(self) -> Optional[SubmitResult]:
        with self._lock:
            if self.submitted:
                return SubmitResult(ALREADY_SUBMITTED, "Work has already been submitted.")
            if self._in_flight:
                return SubmitResult(BUSY, "A submission is already in progress.")
            self._in_flight = True
        return None

    def _release(self, submitted=False):
        with self._lock:
            self._in_flight = False
            if submitted:
                self.submitted = True

    def submit(self, student, remote_document=None) -> SubmitResult:
        """Gather, confirm and send. Runs on the calling thread."""
        refused = self._acquire()
        if refused is not None:
            logger.info("Submit ignored: %s", refused.message)
            return refused
        return self._run(student, remote_document)

    def submit_async(self, student, remote_document=None) -> concurrent.futures.Future:
        """Like submit(), but the work runs on a background thread.

        The trigger is already disabled when this returns.
        """
        refused = self._acquire()
        if refused is not None:
            logger.info("Submit ignored: %s", refused.message)
            future = concurrent.futures.Future()
            future.set_result(refused)
            return future
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        return self._executor.submit(self._run, student, remote_document)

    def _run(self, student, remote_document) -> SubmitResult:
        submitted = False
        try:
            if not student or not student.get('name'):
                return SubmitResult(ERROR, "Not authenticated. Please reload the page.")

            tree = self.gatherer.gather(remote_document)
            if tree.is_placeholder:
                return SubmitResult(EMPTY, "No saved answers found to submit.")

            if not self.confirm(student):
                return SubmitResult(CANCELLED, "Submission cancelled.")

            self.client.submit(legacy_identifier(student), tree.to_payload(), self.mode)
            submitted = True
            logger.info("Final submission sent for %s (%d answers)",
                        legacy_identifier(student), tree.answer_count())
            return SubmitResult(SUCCESS, "Your work was submitted successfully.", sorted(tree.assignments))
        except ClassworkError as e:
            logger.error("Submission failed: %s", e)
            return SubmitResult(ERROR, str(e))
        except Exception as e:
            logger.exception("Unexpected submission failure")
            return SubmitResult(ERROR, str(e))
        finally:
            self._release(submitted)

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
