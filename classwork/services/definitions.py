"""
Assignment definitions: loading, validation and remote fetch.

A definition looks like:

    {"assignmentTitle": "...",
     "pages": [{"id": "p1", "title": "...", "helpText": "...",
                "elements": [{"type": "text", "content": "..."},
                             {"type": "quill", "id": "q1", "question": "..."}]}]}
"""
import os
import json
import logging

import requests

from classwork.errors import DefinitionError, DefinitionFetchError

logger = logging.getLogger(__name__)

ELEMENT_TEXT = 'text'
ELEMENT_QUILL = 'quill'


def validate_definition(data):
    """Check the definition shape and id uniqueness. Returns the data."""
    if not isinstance(data, dict):
        raise DefinitionError("Definition must be a JSON object")
    pages = data.get('pages')
    if not isinstance(pages, list):
        raise DefinitionError("Definition has no 'pages' list")

    page_ids = set()
    for page in pages:
        page_id = page.get('id') if isinstance(page, dict) else None
        if not page_id:
            raise DefinitionError("Every page needs an 'id'")
        if page_id in page_ids:
            raise DefinitionError(f"Duplicate page id: {page_id}")
        page_ids.add(page_id)

        elements = page.get('elements', [])
        if not isinstance(elements, list):
            raise DefinitionError(f"Page {page_id} has no 'elements' list")

        element_ids = set()
        for element in elements:
            if not isinstance(element, dict):
                raise DefinitionError(f"Page {page_id} has an element that is not an object")
            if element.get('type') != ELEMENT_QUILL:
                continue
            element_id = element.get('id')
            if not element_id:
                raise DefinitionError(f"Question on page {page_id} has no 'id'")
            if element_id in element_ids:
                raise DefinitionError(f"Duplicate element id {element_id} on page {page_id}")
            element_ids.add(element_id)
    return data


def quill_questions(page) -> list:
    """Answerable prompts of a page as [{"id", "text"}], in page order."""
    return [
        {"id": element.get('id'), "text": element.get('question', '')}
        for element in page.get('elements') or []
        if isinstance(element, dict) and element.get('type') == ELEMENT_QUILL
    ]


def find_page(definition, page_id):
    for page in (definition or {}).get('pages', []):
        if page.get('id') == page_id:
            return page
    return None


def load_definition_file(definitions_dir, assignment_id):
    """Read `{definitions_dir}/{assignment_id}.json`. Missing file -> None."""
    safe_id = str(assignment_id).replace('/', '_').replace('\\', '_')
    path = os.path.join(definitions_dir, f"{safe_id}.json")
    if not os.path.exists(path):
        return None
    with open(path, 'r', encoding='utf-8') as f:
        return validate_definition(json.load(f))


class DefinitionClient:
    """Fetches definitions from `GET {base_url}/{assignment_id}`."""

    def __init__(self, base_url, session=None, timeout=15):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, assignment_id):
        """Return the definition, or None when the server answers 404."""
        url = f"{self.base_url}/{assignment_id}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise DefinitionFetchError(f"Could not load assignment {assignment_id}: {e}") from e

        if response.status_code == 404:
            logger.info("Assignment %s not found at %s", assignment_id, url)
            return None
        if not response.ok:
            raise DefinitionFetchError(
                f"Could not load assignment {assignment_id}: HTTP {response.status_code} {response.reason}")
        try:
            data = response.json()
        except ValueError as e:
            raise DefinitionFetchError(f"Assignment {assignment_id} is not valid JSON") from e

        # The backend wraps definitions as {"assignment": {...}}
        if isinstance(data, dict) and 'assignment' in data and 'pages' not in data:
            data = data['assignment']
        return validate_definition(data)
