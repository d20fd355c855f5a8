"""
Test: Assignment definitions — validation, files and remote fetch.
"""
import json

import pytest
import requests

from classwork.errors import DefinitionError, DefinitionFetchError
from classwork.services.definitions import (
    DefinitionClient, find_page, load_definition_file, quill_questions, validate_definition,
)


class FakeResponse:
    def __init__(self, status_code=200, data=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self._data = data

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._data, Exception):
            raise self._data
        return self._data


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


class TestValidation:
    def test_sample_is_valid(self, sample_definition):
        assert validate_definition(sample_definition) is sample_definition

    def test_duplicate_page_ids(self):
        with pytest.raises(DefinitionError, match="Duplicate page"):
            validate_definition({"pages": [{"id": "P1"}, {"id": "P1"}]})

    def test_duplicate_question_ids_on_one_page(self):
        page = {"id": "P1", "elements": [{"type": "quill", "id": "Q1"}, {"type": "quill", "id": "Q1"}]}
        with pytest.raises(DefinitionError, match="Duplicate element"):
            validate_definition({"pages": [page]})

    def test_same_question_id_on_different_pages_is_fine(self, sample_definition):
        # Q1 appears on both P1 and P2
        validate_definition(sample_definition)

    def test_missing_pages(self):
        with pytest.raises(DefinitionError):
            validate_definition({"assignmentTitle": "x"})

    def test_element_that_is_not_an_object(self):
        with pytest.raises(DefinitionError, match="not an object"):
            validate_definition({"pages": [{"id": "P1", "elements": ["oops"]}]})

    def test_null_elements(self):
        with pytest.raises(DefinitionError, match="elements"):
            validate_definition({"pages": [{"id": "P1", "elements": None}]})

    def test_page_without_elements_is_fine(self):
        validate_definition({"pages": [{"id": "P1"}]})


class TestHelpers:
    def test_quill_questions_skip_text_elements(self, sample_definition):
        page = find_page(sample_definition, "P1")
        assert quill_questions(page) == [
            {"id": "Q1", "text": "What do you expect?"},
            {"id": "Q2", "text": "Which clues support it?"},
        ]

    def test_find_page_missing(self, sample_definition):
        assert find_page(sample_definition, "P9") is None
        assert find_page(None, "P1") is None

    def test_load_definition_file(self, definitions_dir, sample_definition):
        assert load_definition_file(str(definitions_dir), "A1") == sample_definition
        assert load_definition_file(str(definitions_dir), "A2") is None

    def test_load_malformed_file(self, tmp_path):
        (tmp_path / "bad.json").write_text(json.dumps({"pages": "nope"}))
        with pytest.raises(DefinitionError):
            load_definition_file(str(tmp_path), "bad")


class TestDefinitionClient:
    def test_fetch(self, sample_definition):
        session = FakeSession(FakeResponse(data=sample_definition))
        client = DefinitionClient("http://server/api/assignments/", session=session)
        assert client.fetch("A1") == sample_definition
        assert session.urls == ["http://server/api/assignments/A1"]

    def test_fetch_unwraps_assignment(self, sample_definition):
        session = FakeSession(FakeResponse(data={"assignment": sample_definition}))
        assert DefinitionClient("http://server", session=session).fetch("A1") == sample_definition

    def test_not_found_is_none(self):
        session = FakeSession(FakeResponse(404, {"error": "nope"}, "Not Found"))
        assert DefinitionClient("http://server", session=session).fetch("A9") is None

    def test_server_error(self):
        session = FakeSession(FakeResponse(500, {}, "Internal Server Error"))
        with pytest.raises(DefinitionFetchError, match="500"):
            DefinitionClient("http://server", session=session).fetch("A1")

    def test_invalid_json(self):
        session = FakeSession(FakeResponse(200, ValueError("Expecting value")))
        with pytest.raises(DefinitionFetchError, match="not valid JSON"):
            DefinitionClient("http://server", session=session).fetch("A1")

    def test_network_error(self):
        session = FakeSession(error=requests.Timeout("timed out"))
        with pytest.raises(DefinitionFetchError):
            DefinitionClient("http://server", session=session).fetch("A1")
