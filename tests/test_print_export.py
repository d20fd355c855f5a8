"""
Test: Print export HTML.
"""
from classwork.services.gatherer import DraftGatherer
from classwork.services.print_export import (
    EMPTY_ANSWER, render_print_html, sections_from_document, sections_from_tree,
)


class TestRenderPrintHtml:
    def test_contains_title_student_and_answers(self):
        html = render_print_html("Essay", "student-7", [
            {"title": "Page 1", "items": [{"question": "Why?", "answer": "<p><b>Because</b></p>"}]},
        ])
        assert html.startswith("<!DOCTYPE html>")
        assert "<h1>Essay</h1>" in html
        assert "student-7" in html
        assert "<p><b>Because</b></p>" in html
        assert "window.print()" in html

    def test_missing_answer_uses_placeholder(self):
        html = render_print_html("Essay", "s", [{"title": "P", "items": [{"question": "Why?", "answer": None}]}])
        assert EMPTY_ANSWER in html

    def test_question_text_is_escaped(self):
        html = render_print_html("<Title>", "s", [{"title": "P", "items": [{"question": "Is 1 < 2?", "answer": ""}]}])
        assert "Is 1 &lt; 2?" in html
        assert "&lt;Title&gt;" in html

    def test_auto_print_can_be_disabled(self):
        assert "window.print()" not in render_print_html("T", "s", [], auto_print=False)


class TestSections:
    def test_from_document(self, sample_definition):
        document = {"A1": {"P1": {"Q1": "<p>yes</p>"}}}
        sections = sections_from_document(sample_definition, document, "A1")
        assert [s["title"] for s in sections] == ["Before reading", "After reading"]
        assert sections[0]["items"][0] == {"question": "What do you expect?", "answer": "<p>yes</p>"}
        assert sections[0]["items"][1]["answer"] is None

    def test_from_tree(self, cache):
        cache.save_answer("A1", "P1", "Q1", "<p>yes</p>")
        cache.save_questions("A1", "P1", [{"id": "Q1", "text": "One?"}, {"id": "Q2", "text": "Two?"}])
        cache.save_title("A1", "P1", "Intro")
        sections = sections_from_tree(DraftGatherer(cache).gather())
        assert sections == [{"title": "Intro", "items": [
            {"question": "One?", "answer": "<p>yes</p>"},
            {"question": "Two?", "answer": None},
        ]}]
