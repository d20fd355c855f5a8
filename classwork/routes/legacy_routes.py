"""
Legacy submission endpoint.

POST /api/legacy with {"action": ..., ...}:
- submit:                       {identifier, payload}      -> {status: success, path}
- listDrafts / listSubmissions: {teacherKey}               -> {CLASS: {student: [{name, path}]}}
- getDraft / getSubmission:     {teacherKey, draftPath}    -> stored payload
Errors are {status: "error", message}.
"""
import hmac
import logging
from flask import Blueprint, request, jsonify

from classwork.config import config
from classwork.errors import SubmissionError
from classwork.services.legacy import (
    ACTION_SUBMIT, GET_ACTIONS, LIST_ACTIONS, FileSubmissionArchive,
)

legacy_bp = Blueprint('legacy', __name__)
logger = logging.getLogger(__name__)


def _error(message, code=400):
    return jsonify({"status": "error", "message": message}), code


def _check_teacher_key(key):
    expected = config.teacher_key
    return bool(expected) and bool(key) and hmac.compare_digest(str(key), expected)


@legacy_bp.route('/api/legacy', methods=['POST'])
def legacy_endpoint():
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    archive = FileSubmissionArchive(config.archive_dir)

    try:
        if action == ACTION_SUBMIT:
            identifier = data.get('identifier')
            payload = data.get('payload')
            if not identifier or not isinstance(payload, dict) or not payload.get('assignments'):
                return _error("Missing identifier or payload")
            path = archive.store(identifier, payload)
            return jsonify({"status": "success", "path": path})

        if action in LIST_ACTIONS or action in GET_ACTIONS:
            if not _check_teacher_key(data.get('teacherKey')):
                return _error("Invalid teacher key", 403)
            if action in LIST_ACTIONS:
                return jsonify(archive.list())
            path = data.get('draftPath') or data.get('submissionPath') or data.get('path')
            if not path:
                return _error("Missing path")
            return jsonify(archive.read(path))

        return _error(f"Unknown action: {action}")

    except SubmissionError as e:
        return _error(str(e), 404)
    except Exception as e:
        logger.error("Legacy endpoint error (%s): %s", action, e)
        return _error(str(e), 500)
