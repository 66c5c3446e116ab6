from types import SimpleNamespace

import httpx
import pytest
from anthropic import APIConnectionError

from focus import ai
from focus.errors import ProviderError


@pytest.mark.parametrize("value, expected", [
    (90, 90),
    ("120", 120),
    (45, 60),
    (44, 30),
    (10, 30),
    (500, 240),
    (0, 60),
    (-30, 60),
    (None, 60),
    ("soon", 60),
    (float("nan"), 60),
])
def test_normalize_duration(value, expected):
    assert ai.normalize_duration(value) == expected


def test_parse_plan_reply_plain_json():
    reply = '{"aiFeedback": " Good focus today. ", "followUpQuestion": "How long?", "suggestedDurationMinutes": 95}'
    assert ai.parse_plan_reply(reply, "en") == {
        "ai_feedback": "Good focus today.",
        "follow_up_question": "How long?",
        "suggested_duration_minutes": 90,
    }


def test_parse_plan_reply_fenced_json():
    reply = 'Here you go:\n```json\n{"aiFeedback": "Nice.", "suggestedDurationMinutes": 180}\n```'
    parsed = ai.parse_plan_reply(reply, "en")
    assert parsed["ai_feedback"] == "Nice."
    assert parsed["follow_up_question"] == "How long will this take?"
    assert parsed["suggested_duration_minutes"] == 180


def test_parse_plan_reply_falls_back_on_garbage():
    parsed = ai.parse_plan_reply("I can't answer in JSON today", "ko")
    assert parsed["follow_up_question"] == "이 작업에 얼마나 걸릴까요?"
    assert parsed["ai_feedback"]
    assert parsed["suggested_duration_minutes"] == 60


def test_parse_plan_reply_ignores_non_object_json():
    assert ai.parse_plan_reply("[1, 2, 3]", "en")["suggested_duration_minutes"] == 60


class FakeMessages:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


def test_generate_plan_with_ai(monkeypatch):
    messages = FakeMessages(text='{"aiFeedback": "Solid.", "followUpQuestion": "How long?", "suggestedDurationMinutes": 60}')
    monkeypatch.setattr(ai, "get_anthropic", lambda: SimpleNamespace(messages=messages))

    result = ai.generate_plan_with_ai(
        recent_reflections=[{"date": "2024-02-28", "reflection_text": "Slow start.", "top_task": "Email"}],
        reflection_text="Better today.",
        top_task="Finish slides",
        language="en",
    )

    assert result["ai_feedback"] == "Solid."
    prompt = messages.calls[0]["messages"][0]["content"]
    assert "Finish slides" in prompt
    assert "Slow start." in prompt
    assert "Write in English" in prompt


def test_generate_plan_with_ai_wraps_api_errors(monkeypatch):
    error = APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
    monkeypatch.setattr(ai, "get_anthropic", lambda: SimpleNamespace(messages=FakeMessages(error=error)))

    with pytest.raises(ProviderError):
        ai.generate_plan_with_ai([], "Today", "Task")
