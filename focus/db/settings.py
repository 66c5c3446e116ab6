from focus.config import get_supabase

DEFAULT_SETTINGS = {
    "notification_time": "21:00",
    "calendar_provider": "google",
    "schedulable_hours_start": 9,
    "schedulable_hours_end": 19,
    "language": "ko",
    "lark_app_id": None,
    "lark_app_secret": None,
    "google_disabled": False,
}


def get_settings() -> dict:
    """Fetch the settings row, creating it with defaults on first use."""
    result = get_supabase().table("user_settings").select("*").limit(1).execute()
    if result.data:
        return result.data[0]

    created = get_supabase().table("user_settings").insert(DEFAULT_SETTINGS).execute()
    return created.data[0]


def update_settings(patch: dict) -> dict:
    """Apply a partial update to the settings row."""
    current = get_settings()
    if not patch:
        return current
    result = get_supabase().table("user_settings").update(patch).eq("id", current["id"]).execute()
    return result.data[0]
