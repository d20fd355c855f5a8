"""
Legacy submission endpoint.

Client side: LegacySubmissionClient posts {action, ...} to SUBMIT_URL.
Server side: FileSubmissionArchive keeps final submissions on disk as
{CLASS}/{student}/{timestamp}.json, which is what the listing and fetch
actions expose to teachers.
"""
import os
import re
import json
import logging
from datetime import datetime, timedelta, timezone

import requests

from classwork.errors import SubmissionError

logger = logging.getLogger(__name__)

ACTION_SUBMIT = 'submit'
LIST_ACTIONS = ('listDrafts', 'listSubmissions')
GET_ACTIONS = ('getDraft', 'getSubmission')


def legacy_identifier(student) -> str:
    """`{klasse}_{name}`: the folder name used for a student's submissions."""
    return f"{student.get('klasse', '')}_{student.get('name', '')}"


def normalize_draft_map(raw) -> dict:
    """Upper-case class names, merging classes that only differ in case."""
    normalized = {}
    for class_name, students in (raw or {}).items():
        if not isinstance(students, dict):
            continue
        normalized.setdefault(class_name.upper(), {}).update(students)
    return normalized


class LegacySubmissionClient:
    def __init__(self, submit_url, session=None, timeout=15):
        self.submit_url = submit_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def _post(self, body: dict) -> dict:
        try:
            response = self.session.post(self.submit_url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise SubmissionError(str(e)) from e
        try:
            data = response.json()
        except ValueError:
            raise SubmissionError(f"Server returned HTTP {response.status_code} without JSON")
        if not isinstance(data, dict):
            raise SubmissionError("Unexpected server response")
        if data.get('status') == 'error' or not response.ok:
            raise SubmissionError(data.get('message') or 'An unknown server error occurred.')
        return data

    def submit(self, identifier, payload, mode='live') -> dict:
        data = self._post({'action': ACTION_SUBMIT, 'identifier': identifier,
                           'payload': payload, 'mode': mode})
        if data.get('status') != 'success':
            raise SubmissionError(data.get('message') or 'An unknown server error occurred.')
        return data

    def list_drafts(self, teacher_key) -> dict:
        data = self._post({'action': 'listDrafts', 'teacherKey': teacher_key})
        data.pop('status', None)
        return normalize_draft_map(data)

    def get_draft(self, teacher_key, path) -> dict:
        data = self._post({'action': 'getDraft', 'teacherKey': teacher_key, 'draftPath': path})
        data.pop('status', None)
        return data


_SAFE_NAME = re.compile(r'[^\w\- .]+', re.UNICODE)


def _safe_segment(value) -> str:
    cleaned = _SAFE_NAME.sub('_', str(value)).strip(' .')
    return cleaned or 'unknown'


class FileSubmissionArchive:
    """Final submissions stored as JSON files below `root`."""

    def __init__(self, root):
        self.root = os.path.abspath(os.path.expanduser(root))

    def store(self, identifier, payload, now=None) -> str:
        klasse, _, name = str(identifier).partition('_')
        klasse = _safe_segment(klasse.upper())
        name = _safe_segment(name or identifier)
        now = now or datetime.now(timezone.utc)
        folder = os.path.join(self.root, klasse, name)
        os.makedirs(folder, exist_ok=True)
        path = os.path.join(folder, now.strftime('%Y-%m-%dT%H-%M-%S-%f') + '.json')
        # Never overwrite an earlier submission; names stay in time order
        while os.path.exists(path):
            now += timedelta(microseconds=1)
            path = os.path.join(folder, now.strftime('%Y-%m-%dT%H-%M-%S-%f') + '.json')
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        relative = os.path.relpath(path, self.root)
        logger.info("Stored final submission %s", relative)
        return relative.replace(os.sep, '/')

    def list(self) -> dict:
        """{CLASS: {student: [{"name", "path"}]}} sorted by name."""
        listing = {}
        if not os.path.isdir(self.root):
            return listing
        for klasse in sorted(os.listdir(self.root)):
            class_dir = os.path.join(self.root, klasse)
            if not os.path.isdir(class_dir):
                continue
            for student in sorted(os.listdir(class_dir)):
                student_dir = os.path.join(class_dir, student)
                if not os.path.isdir(student_dir):
                    continue
                files = sorted(f for f in os.listdir(student_dir) if f.endswith('.json'))
                listing.setdefault(klasse, {})[student] = [
                    {"name": f[:-5], "path": f"{klasse}/{student}/{f}"} for f in files
                ]
        return listing

    def latest_per_student(self) -> list:
        """Newest submission path of every student, as [{studentName, path}]."""
        latest = []
        for klasse, students in self.list().items():
            for student, files in students.items():
                if files:
                    latest.append({"className": klasse, "studentName": student, "path": files[-1]['path']})
        return latest

    def read(self, path) -> dict:
        full = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([full, self.root]) != self.root:
            raise SubmissionError(f"Invalid submission path: {path}")
        if not os.path.isfile(full):
            raise SubmissionError(f"Submission not found: {path}")
        with open(full, 'r', encoding='utf-8') as f:
            return json.load(f)


def download_submissions(client, teacher_key, target_dir, class_name=None) -> dict:
    """
    Mirror submissions into `target_dir/{CLASS}/{student}/{name}.json`.

    Uses the listDrafts/getDraft actions, so it works against any legacy
    endpoint. Files whose content is unchanged are skipped.

    Returns {"written": n, "skipped": n}.
    """
    listing = client.list_drafts(teacher_key)
    if class_name is not None:
        listing = {k: v for k, v in listing.items() if k == class_name.upper()}

    counts = {"written": 0, "skipped": 0}
    for klasse, students in listing.items():
        for student, files in students.items():
            if not isinstance(files, list):
                continue
            folder = os.path.join(target_dir, _safe_segment(klasse), _safe_segment(student))
            for entry in files:
                content = json.dumps(client.get_draft(teacher_key, entry['path']), ensure_ascii=False, indent=2)
                path = os.path.join(folder, _safe_segment(entry['name']) + '.json')
                if os.path.exists(path):
                    with open(path, 'r', encoding='utf-8') as f:
                        if f.read() == content:
                            counts["skipped"] += 1
                            continue
                os.makedirs(folder, exist_ok=True)
                with open(path, 'w', encoding='utf-8') as f:
                    f.write(content)
                counts["written"] += 1
    logger.info("Downloaded submissions to %s: %d written, %d unchanged",
                target_dir, counts["written"], counts["skipped"])
    return counts
