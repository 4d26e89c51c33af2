"""
Unit tests for prompt loading and message building.
"""
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from reframe.schemas.coach import CoachRequest
from reframe.services.prompts import (
    build_coach_messages,
    build_feature_messages,
    load_prompt,
    mode_prompt,
)


def make_request(**kwargs):
    body = {"mode": "coach", "messages": [{"role": "user", "content": "I failed my exam."}]}
    body.update(kwargs)
    return CoachRequest.model_validate(body)


@pytest.mark.parametrize(
    "name",
    [
        "base_system",
        "coach",
        "distortions",
        "socratic",
        "reframe",
        "app_system",
        "weekly_recap",
        "today_suggestions",
        "skills_recommend",
        "affirmation",
    ],
)
def test_prompt_files_exist(name):
    assert load_prompt(name)


def test_missing_prompt_raises():
    with pytest.raises(FileNotFoundError):
        load_prompt("does_not_exist")


class TestCoachMessages:

    def test_structure_and_order(self):
        request = make_request(
            messages=[
                {"role": "user", "content": "first"},
                {"role": "assistant", "content": "second"},
                {"role": "user", "content": "third"},
            ]
        )
        messages = build_coach_messages(request)

        assert isinstance(messages[0], SystemMessage)
        assert "Task category: coach." in messages[0].content
        assert isinstance(messages[1], SystemMessage)
        assert [type(m) for m in messages[2:]] == [HumanMessage, AIMessage, HumanMessage]
        assert [m.content for m in messages[2:]] == ["first", "second", "third"]

    def test_task_category_per_mode(self):
        messages = build_coach_messages(make_request(mode="distortions"))
        assert "Task category: distortion assist." in messages[0].content

    def test_pathway_hint(self):
        prompt = mode_prompt(make_request(context={"pathway": "problem_solving"}))
        assert "The user chose the pathway: problem_solving." in prompt

    def test_no_pathway_invites_choice(self):
        assert "No pathway selected yet" in mode_prompt(make_request())

    def test_coach_prompt_keeps_json_braces(self):
        prompt = mode_prompt(make_request())
        assert '"toolSuggestion": {' in prompt

    def test_context_is_appended(self):
        prompt = mode_prompt(
            make_request(
                mode="reframe",
                context={"userName": "Sam", "selectedText": "I always ruin everything"},
            )
        )
        assert "The user's name is Sam." in prompt
        assert "I always ruin everything" in prompt


def test_feature_messages():
    messages = build_feature_messages("Write a recap.", "Last 7 days: 3 check-ins.")
    assert [type(m) for m in messages] == [SystemMessage, SystemMessage, HumanMessage]
    assert messages[1].content == "Write a recap."
    assert messages[2].content == "Last 7 days: 3 check-ins."
