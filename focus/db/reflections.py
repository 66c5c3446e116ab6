from datetime import datetime, timedelta
from focus.config import get_supabase


# ============== REFLECTIONS ==============

def list_reflections(limit: int | None = None) -> list[dict]:
    """Fetch reflections, newest date first."""
    query = get_supabase().table("reflections").select("*").order("date", desc=True)
    if limit:
        query = query.limit(limit)
    return query.execute().data


def get_reflection(reflection_id: str) -> dict | None:
    """Find a reflection by id."""
    result = get_supabase().table("reflections").select("*").eq("id", reflection_id).execute()
    return result.data[0] if result.data else None


def get_reflection_for_date(date_str: str) -> dict | None:
    """Find the reflection written for a given date."""
    result = get_supabase().table("reflections").select("*").eq("date", date_str).execute()
    return result.data[0] if result.data else None


def create_reflection(date_str: str, reflection_text: str) -> dict:
    """Store a reflection. Writing again for the same date replaces its text."""
    existing = get_reflection_for_date(date_str)
    if existing:
        result = get_supabase().table("reflections").update({
            "reflection_text": reflection_text
        }).eq("id", existing["id"]).execute()
        return result.data[0]

    entry = {
        "date": date_str,
        "reflection_text": reflection_text,
        "ai_feedback": "",
        "top_task": "",
        "estimated_duration_minutes": 60,
        "completed": False,
    }
    result = get_supabase().table("reflections").insert(entry).execute()
    return result.data[0]


def set_planned_task(reflection_id: str, top_task: str, ai_feedback: str,
                     duration_minutes: int) -> dict:
    """Record tomorrow's top task along with the AI feedback on it."""
    result = get_supabase().table("reflections").update({
        "top_task": top_task,
        "ai_feedback": ai_feedback,
        "estimated_duration_minutes": duration_minutes,
    }).eq("id", reflection_id).execute()
    return result.data[0]


def set_duration(reflection_id: str, duration_minutes: int) -> dict:
    """Update the estimated duration only."""
    result = get_supabase().table("reflections").update({
        "estimated_duration_minutes": duration_minutes
    }).eq("id", reflection_id).execute()
    return result.data[0]


def set_completed(reflection_id: str, completed: bool) -> dict:
    """Mark the top task done or not done."""
    result = get_supabase().table("reflections").update({
        "completed": completed
    }).eq("id", reflection_id).execute()
    return result.data[0]


# ============== STREAK ==============

def compute_streak(dates: list[str]) -> dict:
    """Count consecutive days, walking back from the latest reflection date."""
    if not dates:
        return {"streak": 0}

    seen = set(dates)
    latest = max(dates)
    cursor = datetime.strptime(latest, "%Y-%m-%d")

    streak = 0
    while cursor.strftime("%Y-%m-%d") in seen:
        streak += 1
        cursor -= timedelta(days=1)

    return {"streak": streak, "latest_date": latest}
