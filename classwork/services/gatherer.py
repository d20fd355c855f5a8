"""
Draft/Submission Gatherer
=========================
Rebuilds the assignment -> sub-assignment -> question -> answer tree from
the local answer cache, optionally enriched by remote assignment
definitions and by the student's remote submission document.

Used for the print view and for the final submission payload.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from classwork.errors import ClassworkError
from classwork.services import answer_cache as ac
from classwork.services.definitions import find_page, quill_questions

logger = logging.getLogger(__name__)

PLACEHOLDER_ID = "_none"
PLACEHOLDER_TITLE = "No saved answers"
DEFAULT_TYPE = "quill"


@dataclass
class SubAssignmentDraft:
    title: str
    type: str = DEFAULT_TYPE
    questions: List[dict] = field(default_factory=list)
    answers: List[dict] = field(default_factory=list)

    def answer_map(self) -> dict:
        return {a['questionId']: a['answer'] for a in self.answers}

    def to_dict(self):
        return {
            "title": self.title,
            "type": self.type,
            "questions": [dict(q) for q in self.questions],
            "answers": [dict(a) for a in self.answers],
        }


@dataclass
class AssignmentTree:
    assignments: Dict[str, Dict[str, SubAssignmentDraft]] = field(default_factory=dict)
    is_placeholder: bool = False

    def to_dict(self):
        return {
            assignment_id: {sub_id: draft.to_dict() for sub_id, draft in subs.items()}
            for assignment_id, subs in self.assignments.items()
        }

    def to_payload(self, created_at: Optional[datetime] = None) -> dict:
        """Legacy submission payload: {"assignments": ..., "createdAt": ...}."""
        created_at = created_at or datetime.now(timezone.utc)
        return {
            "assignments": self.to_dict(),
            "createdAt": created_at.isoformat(),
        }

    def answer_count(self) -> int:
        if self.is_placeholder:
            return 0
        return sum(len(d.answers) for subs in self.assignments.values() for d in subs.values())


def placeholder_tree() -> AssignmentTree:
    draft = SubAssignmentDraft(title=PLACEHOLDER_TITLE)
    return AssignmentTree({PLACEHOLDER_ID: {PLACEHOLDER_ID: draft}}, is_placeholder=True)


def _ordered_answers(questions, answers: dict) -> list:
    """Answers in canonical question order; unlisted questions follow by id."""
    ordered = []
    seen = set()
    for question in questions:
        question_id = question.get('id')
        if question_id in answers and question_id not in seen:
            ordered.append({"questionId": question_id, "answer": answers[question_id] or ''})
            seen.add(question_id)
    for question_id in sorted(set(answers) - seen):
        ordered.append({"questionId": question_id, "answer": answers[question_id] or ''})
    return ordered


class DraftGatherer:
    """Scans an AnswerCache and builds an AssignmentTree.

    `definitions` is anything with fetch(assignment_id) -> definition|None
    (a DefinitionClient); it is optional.
    """

    def __init__(self, cache, definitions=None):
        self.cache = cache
        self.definitions = definitions

    def _fetch_definition(self, assignment_id):
        if self.definitions is None:
            return None
        try:
            return self.definitions.fetch(assignment_id)
        except ClassworkError as e:
            logger.warning("Falling back to cached structure for %s: %s", assignment_id, e)
        except Exception as e:
            logger.error("Unexpected error fetching definition %s: %s", assignment_id, e)
        return None

    def gather(self, remote_document: Optional[dict] = None) -> AssignmentTree:
        answers = {}
        snapshots = {}
        for key, value in self.cache.entries():
            if key.kind == ac.ANSWER:
                answers.setdefault(key.group, {})[key.question_id] = value
            else:
                snapshots[(key.kind,) + key.group] = value

        # Remote answers only fill gaps; the local cache is authoritative
        for assignment_id, pages in (remote_document or {}).items():
            if not isinstance(pages, dict):
                continue
            for sub_id, elements in pages.items():
                if not isinstance(elements, dict) or not elements:
                    continue
                group = answers.setdefault((assignment_id, sub_id), {})
                for question_id, content in elements.items():
                    group.setdefault(question_id, content)

        if not answers:
            return placeholder_tree()

        definitions = {}
        tree = AssignmentTree()
        for assignment_id, sub_id in sorted(answers):
            if assignment_id not in definitions:
                definitions[assignment_id] = self._fetch_definition(assignment_id)
            remote_page = find_page(definitions[assignment_id], sub_id)

            questions = self._cached_questions(snapshots.get((ac.QUESTIONS, assignment_id, sub_id)))
            title = snapshots.get((ac.TITLE, assignment_id, sub_id)) or sub_id
            if remote_page is not None:
                remote_questions = quill_questions(remote_page)
                if remote_questions:
                    questions = remote_questions
                if remote_page.get('title'):
                    title = remote_page['title']

            draft = SubAssignmentDraft(
                title=title,
                type=snapshots.get((ac.TYPE, assignment_id, sub_id)) or DEFAULT_TYPE,
                questions=questions,
                answers=_ordered_answers(questions, answers[(assignment_id, sub_id)]),
            )
            tree.assignments.setdefault(assignment_id, {})[sub_id] = draft
        return tree

    @staticmethod
    def _cached_questions(value) -> list:
        # Older caches stored the question list as a JSON string
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                logger.warning("Ignoring unreadable cached question list")
                return []
        if not isinstance(value, list):
            return []
        return [q for q in value if isinstance(q, dict) and q.get('id')]
