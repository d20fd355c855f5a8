"""
Teacher dashboard routes for Classwork.
Everything here reads the submission documents through the aggregation
view and requires the teacher claim.
"""
import logging
from flask import Blueprint, request, jsonify, g

from classwork.config import config
from classwork.errors import DefinitionError
from classwork.auth import teacher_required
from classwork.services.definitions import load_definition_file
from classwork.services.documents import get_store
from classwork.services.legacy import FileSubmissionArchive
from classwork.services.print_export import render_print_html, sections_from_document
from classwork.services.teacher_view import DashboardState, TeacherAggregation

teacher_bp = Blueprint('teacher', __name__)
logger = logging.getLogger(__name__)


def _build_view(assignment_id=None):
    """Snapshot the four collections into a fresh, request-owned state."""
    store = get_store()
    state = DashboardState(teacher_id=g.user_id)
    state.classes = store.list('classes', teacherId=g.user_id)
    state.users = store.list('users')
    state.submissions = {
        d['id']: {k: v for k, v in d.items() if k != 'id'} for d in store.list('submissions')
    }
    state.presence = {d['id']: d for d in store.list('presence')}
    view = TeacherAggregation(state, config.presence_active_seconds, config.presence_recent_seconds)
    assignments = view.assignments()
    state.selected_assignment = assignment_id or (assignments[0] if assignments else None)
    return view


def _definition(assignment_id):
    try:
        return load_definition_file(config.definitions_dir, assignment_id)
    except DefinitionError as e:
        logger.warning("Ignoring malformed definition %s: %s", assignment_id, e)
        return None


@teacher_bp.route('/api/teacher/overview', methods=['GET'])
@teacher_required
def overview():
    """Assignments, classes (incl. pseudo-classes) and rosters for one assignment."""
    try:
        view = _build_view(request.args.get('assignment'))
        return jsonify(view.overview())
    except Exception as e:
        logger.error("Teacher overview error: %s", e)
        return jsonify({"error": str(e)}), 500


@teacher_bp.route('/api/teacher/students/<user_id>', methods=['GET'])
@teacher_required
def student_detail(user_id):
    try:
        view = _build_view(request.args.get('assignment'))
        assignment_id = view.state.selected_assignment
        if assignment_id is None:
            return jsonify({"userId": user_id, "assignmentId": None, "pages": []})
        return jsonify(view.student_detail(user_id, assignment_id, _definition(assignment_id)))
    except Exception as e:
        logger.error("Student detail error for %s: %s", user_id, e)
        return jsonify({"error": str(e)}), 500


@teacher_bp.route('/api/teacher/live/<assignment_id>/<page_id>', methods=['GET'])
@teacher_required
def live_view(assignment_id, page_id):
    """All students' answers for one page, grouped by question."""
    try:
        view = _build_view(assignment_id)
        matrix = view.question_matrix(assignment_id, page_id, _definition(assignment_id))
        return jsonify({"assignmentId": assignment_id, "pageId": page_id, "questions": matrix})
    except Exception as e:
        logger.error("Live view error for %s/%s: %s", assignment_id, page_id, e)
        return jsonify({"error": str(e)}), 500


@teacher_bp.route('/api/teacher/submissions', methods=['GET'])
@teacher_required
def final_submissions():
    """Archived final submissions: the full listing plus each student's newest file."""
    try:
        archive = FileSubmissionArchive(config.archive_dir)
        return jsonify({"classes": archive.list(), "latest": archive.latest_per_student()})
    except Exception as e:
        logger.error("Submission listing error: %s", e)
        return jsonify({"error": str(e)}), 500


@teacher_bp.route('/print/<assignment_id>/<user_id>', methods=['GET'])
@teacher_required
def print_submission(assignment_id, user_id):
    """Print-ready HTML of one student's answers."""
    definition = _definition(assignment_id)
    if definition is None:
        return jsonify({"error": f'Assignment "{assignment_id}" was not found.'}), 404
    try:
        document = get_store().get('submissions', user_id)
        html = render_print_html(
            definition.get('assignmentTitle', assignment_id),
            user_id,
            sections_from_document(definition, document, assignment_id),
        )
        return html, 200, {"Content-Type": "text/html; charset=utf-8"}
    except Exception as e:
        logger.error("Print view error for %s/%s: %s", assignment_id, user_id, e)
        return jsonify({"error": str(e)}), 500
