"""
AI feedback on tomorrow's top task.
"""

import json
import math
import logging
from anthropic import APIError

from focus.config import AI_MODEL, get_anthropic
from focus.errors import ProviderError
from focus.prompts import build_plan_prompt, FOLLOW_UP_QUESTION, DEFAULT_FEEDBACK

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60
MIN_SUGGESTED_MINUTES = 30
MAX_SUGGESTED_MINUTES = 240


def normalize_duration(value) -> int:
    """Snap a suggested duration to a multiple of 30 within [30, 240]."""
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return DEFAULT_DURATION_MINUTES
    if not math.isfinite(minutes) or minutes <= 0:
        return DEFAULT_DURATION_MINUTES

    # halves round up
    snapped = int(minutes / 30 + 0.5) * 30
    return min(MAX_SUGGESTED_MINUTES, max(MIN_SUGGESTED_MINUTES, snapped))


def _extract_json(text: str) -> dict:
    """Pull the JSON object out of the reply, tolerating a ```json fence."""
    if "```json" in text:
        start = text.index("```json") + 7
        end = text.find("```", start)
        text = text[start:end if end != -1 else None]
    try:
        parsed = json.loads(text.strip())
    except (json.JSONDecodeError, ValueError):
        logger.warning("AI reply was not valid JSON, using defaults")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_plan_reply(text: str, language: str = "ko") -> dict:
    """Turn the model's reply into feedback, follow-up question and duration."""
    parsed = _extract_json(text)

    feedback = parsed.get("aiFeedback")
    question = parsed.get("followUpQuestion")

    return {
        "ai_feedback": feedback.strip() if isinstance(feedback, str) and feedback.strip()
        else DEFAULT_FEEDBACK.get(language, DEFAULT_FEEDBACK["en"]),
        "follow_up_question": question.strip() if isinstance(question, str) and question.strip()
        else FOLLOW_UP_QUESTION.get(language, FOLLOW_UP_QUESTION["en"]),
        "suggested_duration_minutes": normalize_duration(parsed.get("suggestedDurationMinutes")),
    }


def generate_plan_with_ai(recent_reflections: list[dict], reflection_text: str,
                          top_task: str, language: str = "ko") -> dict:
    """Ask the model for feedback on the top task."""
    prompt = build_plan_prompt(recent_reflections, reflection_text, top_task, language)

    try:
        response = get_anthropic().messages.create(
            model=AI_MODEL,
            max_tokens=800,
            messages=[{"role": "user", "content": prompt}]
        )
    except APIError as e:
        logger.error(f"AI feedback call failed: {e}")
        raise ProviderError("The AI coach is unavailable right now. Try again in a moment.") from e

    block = response.content[0] if response.content else None
    text = block.text if block is not None and block.type == "text" else "{}"
    return parse_plan_reply(text, language)
