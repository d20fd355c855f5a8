"""
Student editing session.

Wires the local answer cache, the debounced remote writer, the draft
gatherer, print export and final submission together for one student
working on one assignment.
"""
import logging

from classwork.config import config, HTTP_TIMEOUT
from classwork.errors import ClassworkError
from classwork.services.answer_cache import ANSWER, AnswerCache, CacheKey
from classwork.services.definitions import DefinitionClient, find_page, quill_questions, validate_definition
from classwork.services.documents import deep_merge, get_path
from classwork.services.gatherer import DraftGatherer
from classwork.services.legacy import LegacySubmissionClient
from classwork.services.print_export import render_print_html, sections_from_document, sections_from_tree
from classwork.services.remote_writer import DebouncedRemoteWriter, SUBMISSIONS
from classwork.services.submitter import FinalSubmitter

logger = logging.getLogger(__name__)


class StudentSession:
    """One student editing one assignment.

    The local cache is the source of truth while the student works; the
    remote submission document is kept in sync through the debounced writer.
    """

    def __init__(self, user_id, assignment_id, store, cache=None, definitions=None,
                 writer=None, submitter=None, confirm=None):
        self.user_id = user_id
        self.assignment_id = assignment_id
        self.store = store
        self.cache = cache or AnswerCache(config.cache_file)
        self.definitions = definitions or DefinitionClient(config.definition_source, timeout=HTTP_TIMEOUT)
        self.writer = writer or DebouncedRemoteWriter(store, user_id, delay=config.debounce_seconds)
        self.gatherer = DraftGatherer(self.cache, self.definitions)
        self.submitter = submitter or FinalSubmitter(
            LegacySubmissionClient(config.submit_url, timeout=HTTP_TIMEOUT), self.gatherer, confirm or (lambda student: False))
        self.definition = None
        self.load_error = None
        self.controls_enabled = False

    def load_assignment(self):
        """Fetch the definition. Failures disable the controls instead of raising."""
        try:
            definition = self.definitions.fetch(self.assignment_id)
            if definition is None:
                raise ClassworkError(f'Assignment "{self.assignment_id}" was not found.')
            validate_definition(definition)
        except ClassworkError as e:
            logger.error("Assignment %s failed to load: %s", self.assignment_id, e)
            self.load_error = str(e)
            self.controls_enabled = False
            return None

        self.definition = definition
        self.load_error = None
        self.controls_enabled = True
        for page in definition.get('pages', []):
            self.cache.save_questions(self.assignment_id, page['id'], quill_questions(page))
            self.cache.save_title(self.assignment_id, page['id'], page.get('title', page['id']))
        return definition

    def _remote_document(self):
        try:
            return self.store.get(SUBMISSIONS, self.user_id)
        except Exception as e:
            logger.warning("Could not read remote answers for %s: %s", self.user_id, e)
            return {}

    def _merged_document(self):
        """Remote document with local cache answers layered on top."""
        local = {}
        for key, value in self.cache.entries():
            if key.kind == ANSWER and key.assignment_id == self.assignment_id and value is not None:
                local.setdefault(key.sub_id, {})[key.question_id] = value
        document = self._remote_document()
        return deep_merge(document, {self.assignment_id: local}) if local else document

    def open_page(self, page_id) -> dict:
        """Answers to repopulate the editors of a page: {element_id: html}."""
        answers = get_path(self._merged_document(), self.assignment_id, page_id)
        answers = dict(answers) if isinstance(answers, dict) else {}

        page = find_page(self.definition, page_id)
        if page is not None:
            question_ids = [q['id'] for q in quill_questions(page)]
            return {qid: answers.get(qid, '') for qid in question_ids}
        return answers

    def answer_changed(self, page_id, element_id, content):
        self.cache.put(CacheKey.answer(self.assignment_id, page_id, element_id), content)
        self.writer.on_answer_changed(self.assignment_id, page_id, element_id, content)

    def leave_page(self):
        """Navigating away abandons any pending autosave."""
        return self.writer.cancel_all()

    def print_html(self, from_drafts=False) -> str:
        if from_drafts or self.definition is None:
            tree = self.gatherer.gather(self._remote_document())
            title = self.definition.get('assignmentTitle') if self.definition else self.assignment_id
            return render_print_html(title, self.user_id, sections_from_tree(tree))
        return render_print_html(
            self.definition.get('assignmentTitle', self.assignment_id),
            self.user_id,
            sections_from_document(self.definition, self._merged_document(), self.assignment_id),
        )

    def _forget_submitted(self, result):
        # Cache entries only live until their assignment is finally submitted
        if result.ok:
            for assignment_id in result.assignment_ids:
                removed = self.cache.clear_assignment(assignment_id)
                logger.info("Cleared %d cached entries of submitted assignment %s", removed, assignment_id)
        return result

    def submit(self, student):
        self.writer.flush_all()
        return self._forget_submitted(self.submitter.submit(student, self._remote_document()))

    def submit_async(self, student):
        """Submit button path: the trigger is disabled before this returns."""
        self.writer.flush_all()
        future = self.submitter.submit_async(student, self._remote_document())
        future.add_done_callback(lambda f: self._forget_submitted(f.result()))
        return future

    def close(self):
        self.leave_page()
        self.submitter.shutdown()
