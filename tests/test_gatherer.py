"""
Test: Draft/submission gatherer — grouping, merge policy, determinism, fallback.
"""
import json
from datetime import datetime, timezone

from classwork.errors import DefinitionFetchError
from classwork.services.answer_cache import AnswerCache
from classwork.services.gatherer import DraftGatherer, PLACEHOLDER_ID
from conftest import FakeDefinitions


def _fill(cache):
    cache.save_answer("A1", "P1", "Q2", "<p>second</p>")
    cache.save_answer("A1", "P1", "Q1", "<p>first</p>")
    cache.save_answer("A1", "P2", "Q1", "<p>after</p>")
    cache.save_answer("A0", "S1", "Q9", "<p>other</p>")
    cache.save_questions("A1", "P1", [{"id": "Q1", "text": "cached one"}, {"id": "Q2", "text": "cached two"}])
    cache.save_title("A1", "P1", "Cached title")


class TestGrouping:
    def test_groups_by_assignment_and_sub(self, cache):
        _fill(cache)
        tree = DraftGatherer(cache).gather()
        assert list(tree.assignments) == ["A0", "A1"]
        assert list(tree.assignments["A1"]) == ["P1", "P2"]
        assert not tree.is_placeholder

    def test_answers_follow_question_order(self, cache):
        _fill(cache)
        draft = DraftGatherer(cache).gather().assignments["A1"]["P1"]
        assert [a["questionId"] for a in draft.answers] == ["Q1", "Q2"]
        assert draft.title == "Cached title"
        assert draft.type == "quill"

    def test_unknown_title_falls_back_to_sub_id(self, cache):
        _fill(cache)
        draft = DraftGatherer(cache).gather().assignments["A1"]["P2"]
        assert draft.title == "P2"
        assert draft.questions == []
        assert draft.answers == [{"questionId": "Q1", "answer": "<p>after</p>"}]

    def test_legacy_json_string_question_snapshot(self, cache):
        cache.save_answer("A1", "P1", "Q1", "x")
        cache.put("questions::A1::P1", json.dumps([{"id": "Q1", "text": "from string"}]))
        draft = DraftGatherer(cache).gather().assignments["A1"]["P1"]
        assert draft.questions == [{"id": "Q1", "text": "from string"}]


class TestMergePolicy:
    def test_remote_questions_win_when_non_empty(self, cache, sample_definition):
        sample_definition["pages"][0]["id"] = "P1"
        _fill(cache)
        definitions = FakeDefinitions({"A1": sample_definition})
        draft = DraftGatherer(cache, definitions).gather().assignments["A1"]["P1"]
        assert draft.questions == [
            {"id": "Q1", "text": "What do you expect?"},
            {"id": "Q2", "text": "Which clues support it?"},
        ]
        assert draft.title == "Before reading"

    def test_empty_remote_question_list_keeps_cached(self, cache, sample_definition):
        sample_definition["pages"][0]["elements"] = [{"type": "text", "content": "only text"}]
        sample_definition["pages"][0]["title"] = ""
        _fill(cache)
        draft = DraftGatherer(cache, FakeDefinitions({"A1": sample_definition})).gather().assignments["A1"]["P1"]
        assert [q["text"] for q in draft.questions] == ["cached one", "cached two"]
        assert draft.title == "Cached title"

    def test_one_fetch_per_assignment(self, cache, sample_definition):
        _fill(cache)
        definitions = FakeDefinitions({"A1": sample_definition})
        DraftGatherer(cache, definitions).gather()
        assert sorted(definitions.calls) == ["A0", "A1"]

    def test_remote_document_fills_gaps_only(self, cache):
        cache.save_answer("A1", "P1", "Q1", "local")
        remote = {"A1": {"P1": {"Q1": "remote", "Q3": "remote only"}, "P3": {"Q1": "remote page"}}}
        tree = DraftGatherer(cache).gather(remote)
        assert tree.assignments["A1"]["P1"].answer_map() == {"Q1": "local", "Q3": "remote only"}
        assert tree.assignments["A1"]["P3"].answer_map() == {"Q1": "remote page"}


class TestDeterminism:
    def test_same_snapshot_same_tree(self, cache):
        _fill(cache)
        gatherer = DraftGatherer(cache)
        assert gatherer.gather() == gatherer.gather()

    def test_independent_of_cache_iteration_order(self, cache, tmp_path):
        _fill(cache)
        reversed_cache = AnswerCache(str(tmp_path / "reversed.json"))
        for key, value in reversed(cache.list_all()):
            reversed_cache.put(key, value)

        class ShuffledCache:
            def __init__(self, inner):
                self.inner = inner

            def entries(self):
                return reversed(list(self.inner.entries()))

        first = DraftGatherer(cache).gather()
        second = DraftGatherer(ShuffledCache(reversed_cache)).gather()
        assert first.to_dict() == second.to_dict()
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())


class TestFallback:
    def test_fetch_failure_uses_cache_only(self, cache):
        _fill(cache)
        definitions = FakeDefinitions(error=DefinitionFetchError("offline"))
        tree = DraftGatherer(cache, definitions).gather()
        assert tree.assignments["A1"]["P1"].title == "Cached title"
        assert tree.answer_count() == 4

    def test_unexpected_fetch_error_uses_cache_only(self, cache):
        _fill(cache)
        tree = DraftGatherer(cache, FakeDefinitions(error=RuntimeError("boom"))).gather()
        assert tree.answer_count() == 4

    def test_empty_cache_and_failed_fetch_gives_placeholder(self, cache):
        tree = DraftGatherer(cache, FakeDefinitions(error=DefinitionFetchError("offline"))).gather()
        assert tree.is_placeholder
        assert list(tree.assignments) == [PLACEHOLDER_ID]
        assert tree.answer_count() == 0


class TestPayload:
    def test_legacy_payload_shape(self, cache):
        cache.save_answer("A1", "P1", "Q1", "x")
        created = datetime(2026, 1, 5, 8, 30, tzinfo=timezone.utc)
        payload = DraftGatherer(cache).gather().to_payload(created)
        assert payload == {
            "assignments": {"A1": {"P1": {
                "title": "P1", "type": "quill", "questions": [],
                "answers": [{"questionId": "Q1", "answer": "x"}],
            }}},
            "createdAt": "2026-01-05T08:30:00+00:00",
        }
