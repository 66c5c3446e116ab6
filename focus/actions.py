"""
Orchestration for the evening flow.
Each operation validates its input, talks to storage, the AI coach and the
calendar provider, and raises a FocusError the handlers can show the user.
"""

import re
from datetime import date, datetime, timedelta, timezone

from focus.config import logger, UTC_OFFSET_MINUTES, MIN_BLOCK_MINUTES, EVENT_DESCRIPTION
from focus.ai import generate_plan_with_ai
from focus.calendar import PROVIDERS, GoogleCalendar, LarkCalendar, get_provider, oauth_states
from focus.db import (
    get_settings, update_settings as store_settings,
    list_reflections, get_reflection, get_reflection_for_date, create_reflection as store_reflection,
    set_planned_task, set_duration as store_duration, set_completed, compute_streak,
    get_blocks_for_reflection, save_scheduled_blocks,
    store_pending_preview, get_pending_preview, clear_pending_preview,
    delete_lark_token,
)
from focus.errors import ValidationError, NotFoundError
from focus.scheduler import build_window, build_schedule_preview, parse_iso, to_iso

YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
SECRET_MASK = "••••••••"
LANGUAGES = ("ko", "en")
DEFAULT_TITLE = "Focus"


# ============== VALIDATION ==============

def _validate_ymd(value, field: str = "date") -> str:
    if not isinstance(value, str) or not YMD_RE.match(value):
        raise ValidationError("date must be YYYY-MM-DD", field=field)
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{value} is not a real date", field=field)
    return value


def _validate_int(value, field: str, low: int, high: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be a whole number", field=field)
    if value < low or (high is not None and value > high):
        bounds = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise ValidationError(f"{field} must be {bounds}", field=field)
    return value


def _require_reflection(reflection_id: str) -> dict:
    reflection = get_reflection(reflection_id)
    if not reflection:
        raise NotFoundError("Reflection not found")
    return reflection


def local_today(now: datetime | None = None) -> str:
    """Today's date in the fixed scheduling offset."""
    now = now or datetime.now(timezone.utc)
    return (now + timedelta(minutes=-UTC_OFFSET_MINUTES)).date().isoformat()


def local_tomorrow(now: datetime | None = None) -> str:
    return (date.fromisoformat(local_today(now)) + timedelta(days=1)).isoformat()


def local_yesterday(now: datetime | None = None) -> str:
    return (date.fromisoformat(local_today(now)) - timedelta(days=1)).isoformat()


# ============== SETTINGS ==============

def _mask(settings: dict) -> dict:
    masked = dict(settings)
    masked["lark_app_secret"] = SECRET_MASK if settings.get("lark_app_secret") else None
    return masked


def get_settings_view() -> dict:
    """Settings with the Lark secret masked."""
    return _mask(get_settings())


def update_settings(patch: dict) -> dict:
    """Validate and apply a partial settings update."""
    clean = {}
    for key, value in patch.items():
        if key == "calendar_provider":
            if value not in PROVIDERS:
                raise ValidationError("calendar_provider must be google or lark", field=key)
        elif key == "schedulable_hours_start":
            _validate_int(value, key, 0, 23)
        elif key == "schedulable_hours_end":
            _validate_int(value, key, 1, 24)
        elif key == "notification_time":
            if not isinstance(value, str) or not HHMM_RE.match(value):
                raise ValidationError("notification_time must be HH:MM", field=key)
        elif key == "language":
            if value not in LANGUAGES:
                raise ValidationError("language must be ko or en", field=key)
        elif key in ("lark_app_id", "lark_app_secret"):
            if value is not None and (not isinstance(value, str) or not value.strip()):
                raise ValidationError(f"{key} cannot be empty", field=key)
        elif key == "google_disabled":
            if not isinstance(value, bool):
                raise ValidationError("google_disabled must be true or false", field=key)
        else:
            raise ValidationError(f"Unknown setting: {key}", field=key)
        clean[key] = value

    updated = store_settings(clean)
    logger.info(f"Updated settings: {sorted(clean)}")
    return _mask(updated)


# ============== REFLECTIONS ==============

def create_reflection(date_str: str, reflection_text: str) -> dict:
    """Save tonight's reflection. A second one for the same date replaces the first."""
    _validate_ymd(date_str)
    if not isinstance(reflection_text, str) or not reflection_text.strip():
        raise ValidationError("Reflection text cannot be empty", field="reflection_text")

    reflection = store_reflection(date_str, reflection_text.strip())
    logger.info(f"Saved reflection for {date_str}")
    return reflection


def plan_task(reflection_id: str, top_task: str, duration_minutes: int | None = None) -> dict:
    """Get AI feedback on tomorrow's top task and store it with a duration."""
    if not isinstance(top_task, str) or not top_task.strip():
        raise ValidationError("Top task cannot be empty", field="top_task")
    if duration_minutes is not None:
        _validate_int(duration_minutes, "duration_minutes", 1)

    reflection = _require_reflection(reflection_id)
    settings = get_settings()

    recent = list_reflections(limit=3)
    ai = generate_plan_with_ai(
        recent_reflections=recent,
        reflection_text=reflection["reflection_text"],
        top_task=top_task.strip(),
        language=settings.get("language", "ko"),
    )

    suggested = duration_minutes or ai["suggested_duration_minutes"]
    updated = set_planned_task(
        reflection_id,
        top_task=top_task.strip(),
        ai_feedback=ai["ai_feedback"],
        duration_minutes=suggested,
    )
    logger.info(f"Planned top task for {reflection['date']}: {suggested} mins")

    return {
        "reflection": updated,
        "suggested_duration_minutes": suggested,
        "ai_feedback": ai["ai_feedback"],
        "follow_up_question": ai["follow_up_question"],
    }


def set_duration(reflection_id: str, duration_minutes: int) -> dict:
    _validate_int(duration_minutes, "duration_minutes", 1)
    _require_reflection(reflection_id)
    return store_duration(reflection_id, duration_minutes)


def toggle_completed(reflection_id: str, completed: bool) -> dict:
    if not isinstance(completed, bool):
        raise ValidationError("completed must be true or false", field="completed")
    _require_reflection(reflection_id)
    return set_completed(reflection_id, completed)


def list_history() -> list[dict]:
    """All reflections, newest first, each with its stored blocks."""
    rows = list_reflections()
    for row in rows:
        row["blocks"] = get_blocks_for_reflection(row["id"])
    return rows


def get_streak() -> dict:
    return compute_streak([r["date"] for r in list_reflections()])


def today_reflection(now: datetime | None = None) -> dict | None:
    return get_reflection_for_date(local_today(now))


def reflection_for_date(date_str: str) -> dict | None:
    return get_reflection_for_date(_validate_ymd(date_str))


# ============== SCHEDULING ==============

def preview_schedule(reflection_id: str, schedule_date: str, duration_minutes: int,
                     hours_start: int | None = None, hours_end: int | None = None) -> dict:
    """Plan focus blocks around the calendar's busy time and hold them for approval."""
    _validate_ymd(schedule_date, field="schedule_date")
    _validate_int(duration_minutes, "duration_minutes", 1)
    if hours_start is not None:
        _validate_int(hours_start, "schedulable_hours_start", 0, 23)
    if hours_end is not None:
        _validate_int(hours_end, "schedulable_hours_end", 1, 24)

    reflection = _require_reflection(reflection_id)
    settings = get_settings()

    start_hour = hours_start if hours_start is not None else settings["schedulable_hours_start"]
    end_hour = hours_end if hours_end is not None else settings["schedulable_hours_end"]
    window = build_window(schedule_date, start_hour, end_hour, UTC_OFFSET_MINUTES)

    provider = get_provider(settings)
    # an inverted window has no free time, and providers reject the range
    busy = provider.fetch_busy(window.start, window.end) if window.end > window.start else []
    blocks = build_schedule_preview(window, busy, duration_minutes, MIN_BLOCK_MINUTES)

    preview = {
        "provider": provider.name,
        "titleBase": reflection.get("top_task") or DEFAULT_TITLE,
        "blocks": [b.to_wire() for b in blocks],
    }
    logger.info(f"Previewed {len(blocks)} blocks on {schedule_date} ({len(busy)} busy intervals)")

    if blocks:
        store_pending_preview(reflection_id, preview)
    else:
        clear_pending_preview()
    return preview


def _parse_wire_block(block: dict) -> dict:
    try:
        start = parse_iso(block["startTimeIso"])
        end = parse_iso(block["endTimeIso"])
    except (KeyError, TypeError, ValueError, AttributeError):
        raise ValidationError("Each block needs valid startTimeIso and endTimeIso", field="blocks")
    if end <= start:
        raise ValidationError("Block end must be after its start", field="blocks")

    return {
        "start_time": start,
        "end_time": end,
        "block_index": _validate_int(block.get("blockIndex"), "blockIndex", 1),
        "total_blocks": _validate_int(block.get("totalBlocks"), "totalBlocks", 1),
    }


def event_summary(title: str, block_index: int, total_blocks: int, split: bool) -> str:
    if split:
        return f"[Focus {block_index}/{total_blocks}] {title}"
    return f"[Focus] {title}"


def confirm_schedule(reflection_id: str, blocks: list[dict]) -> dict:
    """Create one calendar event per block and replace the stored batch."""
    if not blocks:
        raise ValidationError("At least one block is required", field="blocks")
    parsed = [_parse_wire_block(b) for b in blocks]

    reflection = _require_reflection(reflection_id)
    settings = get_settings()
    provider = get_provider(settings)
    title = reflection.get("top_task") or DEFAULT_TITLE
    split = len(parsed) > 1

    created = []
    for b in parsed:
        event_id = provider.create_event(
            summary=event_summary(title, b["block_index"], b["total_blocks"], split),
            start_time=b["start_time"],
            end_time=b["end_time"],
            description=EVENT_DESCRIPTION,
        )
        created.append({
            "calendar_event_id": event_id,
            "start_time": to_iso(b["start_time"]),
            "end_time": to_iso(b["end_time"]),
            "block_index": b["block_index"],
            "total_blocks": b["total_blocks"],
        })

    saved = save_scheduled_blocks(reflection_id, created)
    clear_pending_preview()
    logger.info(f"Created {len(created)} {provider.name} events for {reflection['date']}")

    return {"reflection": get_reflection(reflection_id), "saved_blocks": saved}


def approve_pending() -> dict:
    """Confirm the preview that is waiting for approval."""
    pending = get_pending_preview()
    if not pending or not pending["preview"].get("blocks"):
        raise NotFoundError("No pending schedule to approve. Send /preview first.")
    return confirm_schedule(pending["reflection_id"], pending["preview"]["blocks"])


# ============== CALENDAR CONNECTIONS ==============

def calendar_status() -> dict:
    settings = get_settings()
    lark_has_credentials = bool(settings.get("lark_app_id") and settings.get("lark_app_secret"))

    google_connected = GoogleCalendar(disabled=bool(settings.get("google_disabled"))).is_connected()
    try:
        lark_connected = LarkCalendar(
            app_id=settings.get("lark_app_id"),
            app_secret=settings.get("lark_app_secret"),
        ).is_connected()
    except Exception as e:
        logger.warning(f"Lark status check failed: {e}")
        lark_connected = False

    return {
        "provider": settings.get("calendar_provider", "google"),
        "google": {"connected": google_connected},
        "lark": {"connected": lark_connected, "has_credentials": lark_has_credentials},
    }


def set_lark_credentials(app_id: str, app_secret: str) -> None:
    update_settings({"lark_app_id": app_id, "lark_app_secret": app_secret})


def lark_auth_url(session_id: str) -> str:
    settings = get_settings()
    return get_provider(settings, name="lark").build_auth_url(session_id)


def lark_complete_auth(session_id: str, code: str, state: str) -> None:
    """Finish the Lark OAuth flow and switch the calendar over to Lark."""
    if not code:
        raise ValidationError("Missing authorization code", field="code")
    if not oauth_states.consume(session_id, state):
        raise ValidationError("Invalid or expired authorization request. Run /lark_connect again.", field="state")

    settings = get_settings()
    get_provider(settings, name="lark").exchange_code(code)
    store_settings({"calendar_provider": "lark"})
    logger.info("Connected Lark Calendar")


def lark_disconnect() -> None:
    delete_lark_token()


def google_disconnect() -> None:
    store_settings({"google_disabled": True})


def google_enable() -> None:
    store_settings({"google_disabled": False})
