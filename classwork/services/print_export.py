"""
Print export: a self-contained HTML document with every question and the
student's answer, ready for the browser print dialog.
"""
from jinja2 import Environment, BaseLoader, select_autoescape
from markupsafe import Markup

from classwork.services.definitions import quill_questions
from classwork.services.documents import get_path

EMPTY_ANSWER = '<p><i>No answer submitted.</i></p>'

PRINT_CSS = """
body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif; line-height: 1.5; margin: 2em; }
h1 { font-size: 2em; border-bottom: 2px solid #ccc; padding-bottom: 0.5em; margin-bottom: 0.2em; }
.student { color: #555; margin-bottom: 1.5em; }
h2 { font-size: 1.5em; background-color: #f0f0f0; padding: 0.5em; margin-top: 2em; border-left: 5px solid #007bff; }
.page-section { page-break-inside: avoid; margin-bottom: 2em; }
.question-answer-pair { margin-bottom: 1.5em; padding-left: 1em; border-left: 3px solid #e9ecef; }
.question-text { font-weight: bold; color: #333; }
.answer-box { padding: 10px; border: 1px solid #ddd; border-radius: 4px; margin-top: 0.5em; background-color: #f9f9f9; }
.answer-box p:first-child { margin-top: 0; }
.answer-box p:last-child { margin-bottom: 0; }
@media print { h2 { background-color: #f0f0f0 !important; -webkit-print-color-adjust: exact; } }
"""

PRINT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Print view: {{ title }}</title>
<style>{{ css }}</style>
</head>
<body>
<h1>{{ title }}</h1>
<div class="student">Student: {{ student_id }}</div>
{% for section in sections %}
<div class="page-section">
<h2>{{ section.title }}</h2>
{% for item in section['items'] %}
<div class="question-answer-pair">
<p class="question-text">{{ item.question }}</p>
<div class="answer-box">{{ item.answer }}</div>
</div>
{% endfor %}
</div>
{% endfor %}
{% if auto_print %}<script>window.addEventListener('load', function () { window.focus(); window.print(); });</script>{% endif %}
</body>
</html>
"""

_env = Environment(loader=BaseLoader(), autoescape=select_autoescape(default_for_string=True))
_template = _env.from_string(PRINT_TEMPLATE)


def _item(question_text, answer):
    # Answers are editor rich text and are rendered as markup
    return {"question": question_text, "answer": Markup(answer or EMPTY_ANSWER)}


def render_print_html(title, student_id, sections, auto_print=True) -> str:
    """
    Render the print document.

    Args:
        title: Assignment title
        student_id: Identifier shown under the title
        sections: [{"title": str, "items": [{"question": str, "answer": str}]}]
        auto_print: Append a script that opens the print dialog on load
    """
    prepared = [
        {"title": s.get('title', ''),
         "items": [_item(i.get('question', ''), i.get('answer')) for i in s.get('items', [])]}
        for s in sections
    ]
    return _template.render(title=title, student_id=student_id, sections=prepared,
                            css=Markup(PRINT_CSS), auto_print=auto_print)


def sections_from_tree(tree) -> list:
    """Sections from a gathered AssignmentTree (local drafts)."""
    sections = []
    for assignment_id, subs in tree.assignments.items():
        for sub_id, draft in subs.items():
            answers = draft.answer_map()
            questions = draft.questions or [{"id": q, "text": q} for q in answers]
            sections.append({
                "title": draft.title,
                "items": [{"question": q.get('text', ''), "answer": answers.get(q.get('id'))}
                          for q in questions],
            })
    return sections


def sections_from_document(definition, document, assignment_id) -> list:
    """Sections from an assignment definition and a remote submission document."""
    sections = []
    for page in (definition or {}).get('pages', []):
        items = [
            {"question": q['text'], "answer": get_path(document, assignment_id, page.get('id'), q['id'])}
            for q in quill_questions(page)
        ]
        if items:
            sections.append({"title": page.get('title', ''), "items": items})
    return sections
