import pytest

from studenthub.services import prompt_registry

SAMPLE_VALUES = {
    "tutor_chat": {"conversation": "Student: hi"},
    "explain": {"text": "entropy"},
    "quiz": {"content": "notes"},
    "task_breakdown": {"task": "essay"},
    "motivation": {},
    "extract_grades": {},
    "extract_flashcards": {},
    "extract_timetable": {},
    "extract_expenses": {},
    "extract_custom": {"instructions": "Count words"},
    "parse_expense": {"text": "Rs.250 debited"},
    "citation_url": {"url": "https://a.b", "access_date": "October 17, 2026", "title_hint": "t"},
    "citation_book": {"title": "t", "author": "a", "publisher": "p", "year": "y", "edition": "e", "title_hint": "t"},
    "citation_article": {
        "title": "t", "author": "a", "journal": "j", "year": "y", "volume": "v", "pages": "p", "title_hint": "t",
    },
    "exam_prep": {
        "subject_name": "s", "module_name": "m", "module_number": 1, "exam_type": "quiz", "exam_guidance": "g",
        "global_context": "", "max_questions": 10, "most_likely_count": 1, "marks_per_question": 10,
        "flashcards_per_module": 15, "priority_rule": "",
    },
    "exam_prep_no_files": {"subject_name": "s", "module_name": "m", "exam_type": "quiz"},
    "exam_prep_retry": {"max_questions": 10, "expected_most_likely": 1, "expected_flashcards": 15},
    "syllabus_analysis": {},
    "shrink_summary": {"current_summary": "notes"},
    "json_fix": {"malformed_json": "{"},
}


def test_every_prompt_has_sample_values():
    assert {record.prompt_id for record in prompt_registry.PROMPT_RECORDS} == set(SAMPLE_VALUES)


@pytest.mark.parametrize("prompt_id", sorted(SAMPLE_VALUES))
def test_prompts_render_without_leftover_placeholders(prompt_id):
    rendered = prompt_registry.render(prompt_id, **SAMPLE_VALUES[prompt_id])

    assert rendered.strip()
    assert "{{" not in rendered


def test_json_prompts_keep_literal_braces():
    rendered = prompt_registry.render("task_breakdown", task="essay")

    assert '"subtasks": [' in rendered
    assert '{ "title": "First subtask description" }' in rendered


def test_unknown_prompt_id_raises():
    with pytest.raises(KeyError):
        prompt_registry.get_prompt_template("missing")
