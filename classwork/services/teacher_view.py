"""
Teacher Aggregation View
========================
Derives the class x assignment x student x page x answer matrix from the
submission documents plus the classes, users and presence collections.

There is no assignment registry: assignments are discovered from the
top-level keys of the submission documents.

TeacherDashboard keeps an explicitly owned DashboardState, holds one
subscription per collection and pushes recomputed panes to observers
whenever a collection changes.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from classwork.services.definitions import quill_questions, find_page
from classwork.services.documents import count_answers, get_path, has_any_answer
from classwork.services.print_export import EMPTY_ANSWER

logger = logging.getLogger(__name__)

ACTIVE = "active"
RECENT = "recent"
INACTIVE = "inactive"
OFFLINE = "offline"

ALL_SUBMITTED = "__all_submitted__"
UNASSIGNED = "__unassigned__"

ACTIVE_SECONDS = 30
RECENT_SECONDS = 300

PANES = ('assignments', 'classes', 'students')
COLLECTIONS = ('classes', 'users', 'submissions', 'presence')


def _to_epoch(value):
    """Presence timestamps arrive as epoch seconds, epoch millis, ISO strings or datetimes."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, (int, float)):
        # Millisecond timestamps (JS Date.now()) are far beyond any seconds value
        return value / 1000.0 if value > 1e11 else float(value)
    if isinstance(value, str):
        try:
            return _to_epoch(datetime.fromisoformat(value.replace('Z', '+00:00')))
        except ValueError:
            logger.warning("Unreadable presence timestamp: %r", value)
    return None


def presence_tier(last_active, now=None, active_seconds=ACTIVE_SECONDS, recent_seconds=RECENT_SECONDS):
    """Classify a last-seen timestamp; None means there is no presence record."""
    seen = _to_epoch(last_active)
    if seen is None:
        return OFFLINE
    now = _to_epoch(now) if now is not None else datetime.now(timezone.utc).timestamp()
    age = now - seen
    if age < active_seconds:
        return ACTIVE
    if age < recent_seconds:
        return RECENT
    return INACTIVE


def discover_assignments(submissions: dict) -> list:
    """Distinct top-level keys across all submission documents, sorted."""
    found = set()
    for document in submissions.values():
        if isinstance(document, dict):
            found.update(k for k, v in document.items() if isinstance(v, dict))
    return sorted(found)


def _display_name(user):
    return user.get('displayName') or user.get('email') or user.get('id', '')


def _sort_key(student):
    return (_display_name(student).casefold(), student.get('id', ''))


@dataclass
class DashboardState:
    """Everything one dashboard knows. Owned by exactly one TeacherDashboard."""
    teacher_id: str
    classes: list = field(default_factory=list)
    users: list = field(default_factory=list)
    submissions: dict = field(default_factory=dict)
    presence: dict = field(default_factory=dict)
    selected_assignment: str = None
    selected_class: str = None

    @property
    def students(self):
        return [u for u in self.users if u.get('role') != 'teacher']

    @property
    def class_ids(self):
        return {c.get('id') for c in self.classes}


class TeacherAggregation:
    """Pure computations over a DashboardState."""

    def __init__(self, state, active_seconds=ACTIVE_SECONDS, recent_seconds=RECENT_SECONDS):
        self.state = state
        self.active_seconds = active_seconds
        self.recent_seconds = recent_seconds

    def assignments(self):
        return discover_assignments(self.state.submissions)

    def _annotate(self, user, assignment_id, now):
        document = self.state.submissions.get(user['id'], {})
        record = self.state.presence.get(user['id'])
        last_active = record.get('lastActive') if isinstance(record, dict) else None
        return {
            "id": user['id'],
            "displayName": _display_name(user),
            "email": user.get('email', ''),
            "classId": user.get('classId'),
            "answerCount": count_answers(document, assignment_id) if assignment_id else 0,
            "presence": presence_tier(last_active, now, self.active_seconds, self.recent_seconds)
            if record is not None else OFFLINE,
        }

    def members(self, class_id):
        """Raw user records belonging to a class or pseudo-class."""
        students = self.state.students
        if class_id == ALL_SUBMITTED:
            known = {u['id']: u for u in self.state.users}
            members = []
            for user_id, document in self.state.submissions.items():
                if not has_any_answer(document):
                    continue
                user = known.get(user_id)
                if user is None:
                    # Submission owners without a profile still show up
                    user = {"id": user_id, "displayName": user_id}
                elif user.get('role') == 'teacher':
                    continue
                members.append(user)
            return members
        if class_id == UNASSIGNED:
            class_ids = self.state.class_ids
            return [u for u in students if u.get('classId') not in class_ids]
        return [u for u in students if u.get('classId') == class_id]

    def roster(self, class_id, assignment_id=None, now=None):
        assignment_id = assignment_id or self.state.selected_assignment
        annotated = [self._annotate(u, assignment_id, now) for u in self.members(class_id)]
        return sorted(annotated, key=_sort_key)

    def class_list(self):
        """Real classes (alphabetical) followed by the two pseudo-classes."""
        classes = sorted(
            ({"id": c['id'], "className": c.get('className') or '', "registrationCode": c.get('registrationCode')}
             for c in self.state.classes),
            key=lambda c: (c['className'].casefold(), c['id']),
        )
        for pseudo_id, name in ((ALL_SUBMITTED, "All submissions"), (UNASSIGNED, "No class")):
            classes.append({"id": pseudo_id, "className": name, "pseudo": True,
                            "count": len(self.members(pseudo_id))})
        return classes

    def overview(self, now=None):
        assignment_id = self.state.selected_assignment
        return {
            "assignments": self.assignments(),
            "selectedAssignment": assignment_id,
            "classes": self.class_list(),
            "rosters": {c['id']: self.roster(c['id'], assignment_id, now) for c in self.class_list()},
        }

    def student_detail(self, user_id, assignment_id, definition=None):
        """Pages of one student's answers; follows the definition when given."""
        document = self.state.submissions.get(user_id, {})
        pages_data = get_path(document, assignment_id) or {}
        pages = []
        if definition:
            for page in definition.get('pages', []):
                answers = pages_data.get(page.get('id'), {})
                pages.append({
                    "id": page.get('id'),
                    "title": page.get('title', page.get('id')),
                    "answers": [{"questionId": q['id'], "question": q['text'], "answer": answers.get(q['id'], '')}
                                for q in quill_questions(page)],
                })
        else:
            for page_id in sorted(pages_data):
                answers = pages_data[page_id] if isinstance(pages_data[page_id], dict) else {}
                pages.append({
                    "id": page_id,
                    "title": page_id,
                    "answers": [{"questionId": q, "question": q, "answer": answers[q]} for q in sorted(answers)],
                })
        return {"userId": user_id, "assignmentId": assignment_id, "pages": pages}

    def question_matrix(self, assignment_id, page_id, definition=None):
        """Every student's answer to each question of one page (live view)."""
        page = find_page(definition, page_id) if definition else None
        if page is not None:
            questions = quill_questions(page)
        else:
            ids = set()
            for document in self.state.submissions.values():
                answers = get_path(document, assignment_id, page_id)
                if isinstance(answers, dict):
                    ids.update(answers)
            questions = [{"id": q, "text": q} for q in sorted(ids)]

        respondents = sorted(
            (u for u in self.members(ALL_SUBMITTED) if get_path(self.state.submissions.get(u['id']), assignment_id, page_id)),
            key=_sort_key,
        )
        matrix = []
        for question in questions:
            matrix.append({
                "questionId": question['id'],
                "question": question['text'],
                "answers": [
                    {"userId": u['id'], "displayName": _display_name(u),
                     "answer": get_path(self.state.submissions.get(u['id']), assignment_id, page_id, question['id'])
                     or EMPTY_ANSWER}
                    for u in respondents
                ],
            })
        return matrix


class TeacherDashboard:
    """Push-driven dashboard over a DocumentStore.

    Observers are registered per pane ('assignments', 'classes', 'students')
    and called with the recomputed pane data after every relevant delta.
    """

    # Which panes depend on which collection
    AFFECTS = {
        'classes': ('classes', 'students'),
        'users': ('classes', 'students'),
        'submissions': ('assignments', 'classes', 'students'),
        'presence': ('students',),
    }

    def __init__(self, store, teacher_id, active_seconds=ACTIVE_SECONDS, recent_seconds=RECENT_SECONDS):
        self.store = store
        self.state = DashboardState(teacher_id=teacher_id)
        self.view = TeacherAggregation(self.state, active_seconds, recent_seconds)
        self._observers = {pane: [] for pane in PANES}
        self._unsubscribers = []
        self._lock = threading.RLock()

    def on(self, pane, callback):
        if pane not in self._observers:
            raise ValueError(f"Unknown pane: {pane}")
        self._observers[pane].append(callback)

    def start(self):
        for collection in COLLECTIONS:
            self._load(collection)
            self._unsubscribers.append(self.store.subscribe(collection, self._on_delta))
        self._ensure_selection()
        self._render(PANES)
        return self

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def select(self, assignment_id=None, class_id=None):
        with self._lock:
            if assignment_id is not None:
                self.state.selected_assignment = assignment_id
            if class_id is not None:
                self.state.selected_class = class_id
        self._render(('classes', 'students'))

    def _load(self, collection):
        with self._lock:
            if collection == 'classes':
                self.state.classes = self.store.list('classes', teacherId=self.state.teacher_id)
            elif collection == 'users':
                self.state.users = self.store.list('users')
            elif collection == 'submissions':
                self.state.submissions = {
                    d['id']: {k: v for k, v in d.items() if k != 'id'} for d in self.store.list('submissions')
                }
            elif collection == 'presence':
                self.state.presence = {d['id']: d for d in self.store.list('presence')}

    def _ensure_selection(self):
        """Fall back to the first discovered assignment when none (or a vanished one) is selected."""
        with self._lock:
            assignments = self.view.assignments()
            if self.state.selected_assignment not in assignments:
                self.state.selected_assignment = assignments[0] if assignments else None

    def _on_delta(self, collection, doc_id):
        logger.debug("Dashboard delta in %s (%s)", collection, doc_id)
        self._load(collection)
        if collection == 'submissions':
            self._ensure_selection()
        self._render(self.AFFECTS.get(collection, PANES))

    def pane(self, name, now=None):
        with self._lock:
            if name == 'assignments':
                return {"assignments": self.view.assignments(), "selected": self.state.selected_assignment}
            if name == 'classes':
                return self.view.class_list()
            if name == 'students':
                class_id = self.state.selected_class
                return self.view.roster(class_id, now=now) if class_id else []
        raise ValueError(f"Unknown pane: {name}")

    def _render(self, panes):
        for name in panes:
            if not self._observers[name]:
                continue
            data = self.pane(name)
            for callback in list(self._observers[name]):
                try:
                    callback(data)
                except Exception as e:
                    logger.error("Dashboard pane %s failed to render: %s", name, e)
