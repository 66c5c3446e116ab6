"""
Prompt construction for the evening coach.
"""

FOLLOW_UP_QUESTION = {
    "ko": "이 작업에 얼마나 걸릴까요?",
    "en": "How long will this take?",
}

DEFAULT_FEEDBACK = {
    "ko": "오늘 하루를 잘 정리했어요. 내일의 한 가지를 선명하게 잡아두면 더 편안하게 시작할 수 있어요.",
    "en": "You wrapped up today well. Pinning down tomorrow's one thing makes the morning easier to start.",
}

LANGUAGE_NAMES = {"ko": "Korean", "en": "English"}


def _recent_context(recent_reflections: list[dict]) -> str:
    lines = []
    for r in recent_reflections:
        lines.append(
            f"- {r['date']}\n"
            f"  Reflection: {r['reflection_text']}\n"
            f"  Top task: {r.get('top_task') or '(none)'}"
        )
    return "\n\n".join(lines) or "(nothing yet)"


def build_plan_prompt(recent_reflections: list[dict], reflection_text: str,
                      top_task: str, language: str = "ko") -> str:
    """Prompt asking for feedback on tomorrow's top task, as JSON only."""
    follow_up = FOLLOW_UP_QUESTION.get(language, FOLLOW_UP_QUESTION["en"])
    language_name = LANGUAGE_NAMES.get(language, "English")

    return f"""You are a warm but concise evening reflection coach.

Recent context (last 3):
{_recent_context(recent_reflections)}

Today's reflection (free form):
{reflection_text}

The one thing the user wants to finish first tomorrow morning (draft):
{top_task}

Output ONLY the JSON below.

Schema:
{{
  "aiFeedback": string,               // 2-3 sentences
  "followUpQuestion": string,         // always: "{follow_up}"
  "suggestedDurationMinutes": number  // one of 30, 60, 90, 120, 180 or a multiple of 30
}}

Guidelines:
- aiFeedback is encouragement plus exactly one concrete improvement
- Estimate suggestedDurationMinutes realistically from the task name (min 30, max 240)
- Write in {language_name}
"""
