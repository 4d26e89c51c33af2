"""
Unit tests for the heuristic risk matcher.
"""
import pytest

from reframe.schemas.coach import ChatMessage, SafetyCategory
from reframe.services.safety import (
    SAFE_RESPONSE,
    build_safe_response,
    combine_conversation_text,
    detect_high_risk_from_messages,
    detect_high_risk_text,
)


class TestDetectHighRiskText:

    @pytest.mark.parametrize(
        "text",
        [
            "I want to kill myself",
            "Sometimes I think about SUICIDE",
            "I just want to end my life",
            "there is no reason to live anymore",
            "I keep wanting to hurt myself",
        ],
    )
    def test_self_harm_phrases(self, text):
        assert detect_high_risk_text(text) == SafetyCategory.SELF_HARM_RISK

    @pytest.mark.parametrize(
        "text",
        ["I want to kill them", "I could hurt someone today", "I plan to harm my neighbour"],
    )
    def test_violence_phrases(self, text):
        assert detect_high_risk_text(text) == SafetyCategory.VIOLENCE_RISK

    def test_self_harm_takes_priority_over_violence(self):
        text = "I want to kill them and then kill myself"
        assert detect_high_risk_text(text) == SafetyCategory.SELF_HARM_RISK

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_text_is_clear(self, text):
        assert detect_high_risk_text(text) is None

    def test_ordinary_text_is_clear(self):
        assert detect_high_risk_text("My presentation went badly and I feel stupid") is None

    def test_same_input_same_output(self):
        text = "I want to die"
        assert detect_high_risk_text(text) == detect_high_risk_text(text)


class TestConversationScreening:

    def test_system_messages_are_ignored(self):
        messages = [
            ChatMessage(role="system", content="Never mention suicide"),
            ChatMessage(role="user", content="Work has been stressful"),
        ]
        assert combine_conversation_text(messages) == "Work has been stressful"
        assert detect_high_risk_from_messages(messages) is None

    def test_order_is_preserved(self):
        messages = [
            ChatMessage(role="user", content="first"),
            ChatMessage(role="assistant", content="second"),
            ChatMessage(role="user", content="third"),
        ]
        assert combine_conversation_text(messages) == "first\nsecond\nthird"

    def test_risk_in_any_turn_is_detected(self):
        messages = [
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="How are you?"),
            ChatMessage(role="user", content="Honestly I want to die"),
        ]
        assert detect_high_risk_from_messages(messages) == SafetyCategory.SELF_HARM_RISK


def test_safe_response_points_to_support():
    response = build_safe_response()
    assert response == SAFE_RESPONSE
    assert "reach" in response
    assert "emergency" in response
