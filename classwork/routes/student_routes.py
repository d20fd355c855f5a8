"""
Student-facing API routes for Classwork.
Serves assignment definitions and the caller's own submission document.
"""
import logging
from flask import Blueprint, request, jsonify, g

from classwork.config import config
from classwork.errors import DefinitionError
from classwork.services.definitions import load_definition_file
from classwork.services.documents import get_store, get_path
from classwork.services.remote_writer import SUBMISSIONS

student_bp = Blueprint('student', __name__)
logger = logging.getLogger(__name__)


@student_bp.route('/api/status', methods=['GET'])
def status():
    return jsonify({"status": "ok"})


@student_bp.route('/api/assignments/<assignment_id>', methods=['GET'])
def get_assignment(assignment_id):
    """Get an assignment definition. Unknown ids are a normal 404."""
    try:
        definition = load_definition_file(config.definitions_dir, assignment_id)
        if definition is None:
            return jsonify({"error": f'Assignment "{assignment_id}" was not found.'}), 404
        return jsonify(definition)

    except DefinitionError as e:
        logger.error("Assignment %s is malformed: %s", assignment_id, e)
        return jsonify({"error": str(e)}), 500
    except Exception as e:
        logger.error("Get assignment error: %s", e)
        return jsonify({"error": str(e)}), 500


@student_bp.route('/api/submissions/me', methods=['GET'])
@student_bp.route('/api/submissions/me/<assignment_id>', methods=['GET'])
def get_own_submission(assignment_id=None):
    """The caller's submission document, or one assignment of it. Missing is {}."""
    try:
        document = get_store().get(SUBMISSIONS, g.user_id)
        if assignment_id is not None:
            document = get_path(document, assignment_id) or {}
        return jsonify(document)

    except Exception as e:
        logger.error("Get submission error for %s: %s", g.user_id, e)
        return jsonify({"error": str(e)}), 500


@student_bp.route('/api/submissions/me', methods=['PATCH'])
def merge_own_submission():
    """
    Merge-write into the caller's submission document.
    Body: {assignment_id: {page_id: {element_id: html}}}
    """
    try:
        patch = request.get_json(silent=True)
        if not isinstance(patch, dict) or not patch:
            return jsonify({"error": "Expected a non-empty JSON object"}), 400
        for assignment_id, pages in patch.items():
            if not isinstance(pages, dict) or not all(isinstance(p, dict) for p in pages.values()):
                return jsonify({"error": f"Answers for {assignment_id} must be nested by page"}), 400
            if not all(isinstance(a, str) for p in pages.values() for a in p.values()):
                return jsonify({"error": f"Answers for {assignment_id} must be HTML strings"}), 400

        get_store().merge(SUBMISSIONS, g.user_id, patch)
        return jsonify({"status": "success"})

    except Exception as e:
        logger.warning("Merge-write failed for %s: %s", g.user_id, e)
        return jsonify({"error": str(e)}), 500
