"""
Telegram message and command handlers for the Morning Focus bot.
"""

from datetime import timedelta
from telegram import Update
from telegram.ext import ContextTypes

from focus.config import ALLOWED_USER_ID, UTC_OFFSET_MINUTES, logger
from focus import actions
from focus.errors import FocusError, ValidationError
from focus.scheduler import parse_iso


APPROVE_TRIGGERS = ["approve", "approved", "looks good", "push it", "go ahead", "lgtm", "ok schedule it"]
ACCEPT_SUGGESTION = ["ok", "okay", "yes", "sure", "sounds good", "좋아", "네"]

SETTING_KEYS = {
    "time": "notification_time",
    "provider": "calendar_provider",
    "start": "schedulable_hours_start",
    "end": "schedulable_hours_end",
    "language": "language",
}


# ============== FORMATTING ==============

def _local_hhmm(value) -> str:
    dt = parse_iso(value) if isinstance(value, str) else value
    return (dt + timedelta(minutes=-UTC_OFFSET_MINUTES)).strftime("%H:%M")


def format_preview(preview: dict, schedule_date: str) -> str:
    """Readable version of a preview payload."""
    blocks = preview["blocks"]
    if not blocks:
        return (f"😕 No free slot of at least 30 minutes on {schedule_date} "
                f"in your {preview['provider']} calendar. Try other hours with /hours.")

    msg = f"📋 PROPOSED FOCUS BLOCKS ({schedule_date}, {preview['provider']}):\n\n"
    for b in blocks:
        label = f"{b['blockIndex']}/{b['totalBlocks']}" if b["totalBlocks"] > 1 else "•"
        msg += f"  {label} {_local_hhmm(b['startTimeIso'])}-{_local_hhmm(b['endTimeIso'])}: {preview['titleBase']}\n"
    msg += "\nSay 'approve' to push to your calendar, or send a different number of minutes."
    return msg


def format_history(rows: list[dict], limit: int = 7) -> str:
    if not rows:
        return "No reflections yet. Just send me how today went."

    msg = "📖 Recent reflections:\n"
    for r in rows[:limit]:
        icon = "✅" if r.get("completed") else "⬜"
        task = r.get("top_task") or "(no top task)"
        msg += f"\n{icon} {r['date']}: {task} ({r.get('estimated_duration_minutes', 60)} mins)"
        for b in r.get("blocks", []):
            msg += f"\n    {_local_hhmm(b['start_time'])}-{_local_hhmm(b['end_time'])} [{b['block_index']}/{b['total_blocks']}]"
    return msg


# ============== HELPERS ==============

def _is_allowed(update: Update) -> bool:
    return update.effective_user is not None and update.effective_user.id == ALLOWED_USER_ID


async def _reply_error(update: Update, error: Exception) -> None:
    if isinstance(error, FocusError):
        await update.message.reply_text(f"⚠️ {error}")
    else:
        logger.error(f"Handler error: {error}")
        await update.message.reply_text("⚠️ Something went wrong on my side. Try again in a bit.")


def _latest_reflection() -> dict | None:
    reflection = actions.today_reflection()
    if reflection:
        return reflection
    rows = actions.list_history()
    return rows[0] if rows else None


def _parse_minutes(text: str) -> int | None:
    cleaned = text.lower().replace("minutes", "").replace("mins", "").replace("min", "").replace("분", "").strip()
    if cleaned.isdecimal():
        return int(cleaned)
    return None


async def _send_preview(update: Update, reflection_id: str, schedule_date: str, minutes: int) -> None:
    preview = actions.preview_schedule(reflection_id, schedule_date, minutes)
    await update.message.reply_text(format_preview(preview, schedule_date))


# ============== MESSAGE HANDLER ==============

async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Drive the evening flow: reflection, top task, duration, preview, approve."""
    if not _is_allowed(update):
        await update.message.reply_text("This bot serves a single user.")
        return

    text = update.message.text.strip()
    msg_lower = text.lower()
    logger.info(f"Received: {text[:100]}...")
    state = context.user_data

    try:
        if msg_lower in APPROVE_TRIGGERS:
            result = actions.approve_pending()
            count = len(result["saved_blocks"])
            state.clear()
            await update.message.reply_text(f"📅 Approved! Added {count} focus block{'s' if count > 1 else ''} to your calendar.")
            return

        if state.get("reflection_date") != actions.local_today():
            state.clear()
        stage = state.get("stage")

        if stage == "top_task":
            planned = actions.plan_task(state["reflection_id"], text)
            state["stage"] = "duration"
            state["suggested_minutes"] = planned["suggested_duration_minutes"]
            await update.message.reply_text(
                f"💬 {planned['ai_feedback']}\n\n"
                f"{planned['follow_up_question']} "
                f"(suggested: {planned['suggested_duration_minutes']} mins, reply 'ok' or a number of minutes)"
            )
            return

        if stage == "duration":
            minutes = _parse_minutes(text)
            if minutes is None and msg_lower in ACCEPT_SUGGESTION:
                minutes = state.get("suggested_minutes")
            if minutes is None and not state.get("previewed"):
                await update.message.reply_text("Send a number of minutes (e.g. 90), or 'ok' for the suggestion.")
                return
            if minutes is not None:
                if minutes != state.get("suggested_minutes"):
                    actions.set_duration(state["reflection_id"], minutes)
                await _send_preview(update, state["reflection_id"], actions.local_tomorrow(), minutes)
                state["previewed"] = True
                return
            # anything else after a preview is a fresh reflection

        reflection = actions.create_reflection(actions.local_today(), text)
        state.clear()
        state["stage"] = "top_task"
        state["reflection_id"] = reflection["id"]
        state["reflection_date"] = reflection["date"]
        await update.message.reply_text("📝 Saved. What's the one thing you'll finish first tomorrow morning?")

    except Exception as e:
        await _reply_error(update, e)


# ============== COMMAND HANDLERS ==============

async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    if not _is_allowed(update):
        return
    await update.message.reply_text(
        "🌙 Morning Focus is ready. Each evening, just tell me how the day went.\n"
        "I'll help you pick tomorrow's one thing and block time for it."
    )


async def status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /status command - calendar connections and streak."""
    if not _is_allowed(update):
        return
    try:
        cal = actions.calendar_status()
        streak = actions.get_streak()
        msg = "📊 Status\n\n"
        msg += f"Calendar: {cal['provider']}\n"
        msg += f"  Google: {'connected' if cal['google']['connected'] else 'not connected'}\n"
        lark_creds = "credentials set" if cal["lark"]["has_credentials"] else "no credentials"
        msg += f"  Lark: {'connected' if cal['lark']['connected'] else 'not connected'} ({lark_creds})\n"
        msg += f"\n🔥 Streak: {streak['streak']} day{'s' if streak['streak'] != 1 else ''}"
        await update.message.reply_text(msg)
    except Exception as e:
        await _reply_error(update, e)


async def history(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /history command."""
    if not _is_allowed(update):
        return
    try:
        await update.message.reply_text(format_history(actions.list_history()))
    except Exception as e:
        await _reply_error(update, e)


async def streak(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /streak command."""
    if not _is_allowed(update):
        return
    try:
        result = actions.get_streak()
        if not result["streak"]:
            await update.message.reply_text("No streak yet. Tonight is a good night to start.")
            return
        await update.message.reply_text(f"🔥 {result['streak']} day streak (latest: {result['latest_date']})")
    except Exception as e:
        await _reply_error(update, e)


async def plan(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /plan <task> [minutes] for today's reflection."""
    if not _is_allowed(update):
        return
    args = list(context.args or [])
    try:
        minutes = None
        if len(args) > 1 and args[-1].isdecimal():
            minutes = int(args.pop())
        if not args:
            raise ValidationError("Usage: /plan <top task> [minutes]")

        reflection = actions.today_reflection()
        if not reflection:
            raise ValidationError("Write tonight's reflection first.")

        planned = actions.plan_task(reflection["id"], " ".join(args), minutes)
        context.user_data.update({
            "stage": "duration",
            "reflection_id": reflection["id"],
            "reflection_date": reflection["date"],
            "suggested_minutes": planned["suggested_duration_minutes"],
        })
        await update.message.reply_text(
            f"💬 {planned['ai_feedback']}\n\n"
            f"Duration: {planned['suggested_duration_minutes']} mins. Reply 'ok' to preview, or another number."
        )
    except Exception as e:
        await _reply_error(update, e)


async def preview(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /preview [YYYY-MM-DD] [minutes]."""
    if not _is_allowed(update):
        return
    args = list(context.args or [])
    try:
        reflection = _latest_reflection()
        if not reflection:
            raise ValidationError("Write a reflection first.")

        schedule_date = actions.local_tomorrow()
        minutes = reflection.get("estimated_duration_minutes") or 60
        for arg in args:
            if arg.isdecimal():
                minutes = int(arg)
            else:
                schedule_date = arg

        await _send_preview(update, reflection["id"], schedule_date, minutes)
    except Exception as e:
        await _reply_error(update, e)


async def done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done [YYYY-MM-DD] - toggle the top task's completion."""
    if not _is_allowed(update):
        return
    try:
        if context.args:
            reflection = actions.reflection_for_date(context.args[0])
        else:
            reflection = actions.reflection_for_date(actions.local_yesterday()) or _latest_reflection()
        if not reflection:
            raise ValidationError("No reflection found for that date.")

        updated = actions.toggle_completed(reflection["id"], not reflection.get("completed", False))
        icon = "✅" if updated["completed"] else "⬜"
        await update.message.reply_text(f"{icon} {updated.get('top_task') or 'Top task'} ({updated['date']})")
    except Exception as e:
        await _reply_error(update, e)


async def settings(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings [key value]."""
    if not _is_allowed(update):
        return
    args = list(context.args or [])
    try:
        if len(args) >= 2:
            key = SETTING_KEYS.get(args[0].lower())
            if not key:
                raise ValidationError(f"Unknown setting. Use one of: {', '.join(SETTING_KEYS)}")
            value = args[1]
            if key in ("schedulable_hours_start", "schedulable_hours_end"):
                if not value.isdecimal():
                    raise ValidationError(f"{args[0]} must be a whole number", field=key)
                value = int(value)
            current = actions.update_settings({key: value})
        else:
            current = actions.get_settings_view()

        msg = "⚙️ Settings\n\n"
        msg += f"  Reminder time: {current['notification_time']}\n"
        msg += f"  Calendar: {current['calendar_provider']}\n"
        msg += f"  Schedulable hours: {current['schedulable_hours_start']}:00-{current['schedulable_hours_end']}:00\n"
        msg += f"  Language: {current['language']}\n"
        msg += f"  Lark app: {current.get('lark_app_id') or '-'} / {current.get('lark_app_secret') or '-'}\n"
        msg += "\nChange with /settings <time|provider|start|end|language> <value>"
        await update.message.reply_text(msg)
    except Exception as e:
        await _reply_error(update, e)


async def provider(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /provider google|lark."""
    if not _is_allowed(update):
        return
    try:
        if not context.args:
            raise ValidationError("Usage: /provider google|lark")
        actions.update_settings({"calendar_provider": context.args[0].lower()})
        await update.message.reply_text(f"📅 Calendar provider set to {context.args[0].lower()}.")
    except Exception as e:
        await _reply_error(update, e)


async def hours(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /hours <start> <end>."""
    if not _is_allowed(update):
        return
    args = list(context.args or [])
    try:
        if len(args) != 2 or not all(a.isdecimal() for a in args):
            raise ValidationError("Usage: /hours <start> <end>, e.g. /hours 9 19")
        start_hour, end_hour = int(args[0]), int(args[1])
        if end_hour <= start_hour:
            raise ValidationError("End hour must be after start hour.", field="schedulable_hours_end")
        actions.update_settings({"schedulable_hours_start": start_hour, "schedulable_hours_end": end_hour})
        await update.message.reply_text(f"🕘 Focus blocks will go between {start_hour}:00 and {end_hour}:00.")
    except Exception as e:
        await _reply_error(update, e)


# ============== CALENDAR CONNECTIONS ==============

async def lark_credentials(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /lark_credentials <app_id> <app_secret>."""
    if not _is_allowed(update):
        return
    try:
        if len(context.args or []) != 2:
            raise ValidationError("Usage: /lark_credentials <app_id> <app_secret>")
        actions.set_lark_credentials(context.args[0], context.args[1])
        await update.message.reply_text("🔑 Lark credentials saved. Now run /lark_connect.")
    except Exception as e:
        await _reply_error(update, e)


async def lark_connect(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /lark_connect - send the Lark authorization link."""
    if not _is_allowed(update):
        return
    try:
        url = actions.lark_auth_url(str(update.effective_chat.id))
        await update.message.reply_text(
            f"🔗 Authorize Lark Calendar here:\n{url}\n\n"
            "Then send /lark_code <code> <state> from the page you land on. The link expires in 10 minutes."
        )
    except Exception as e:
        await _reply_error(update, e)


async def lark_code(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /lark_code <code> <state>."""
    if not _is_allowed(update):
        return
    args = list(context.args or [])
    try:
        if len(args) != 2:
            raise ValidationError("Usage: /lark_code <code> <state>")
        actions.lark_complete_auth(str(update.effective_chat.id), args[0], args[1])
        await update.message.reply_text("✅ Lark Calendar connected and set as your calendar.")
    except Exception as e:
        await _reply_error(update, e)


async def lark_disconnect(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_allowed(update):
        return
    try:
        actions.lark_disconnect()
        await update.message.reply_text("Lark Calendar disconnected.")
    except Exception as e:
        await _reply_error(update, e)


async def google_disconnect(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_allowed(update):
        return
    try:
        actions.google_disconnect()
        await update.message.reply_text("Google Calendar disabled. /google_enable turns it back on.")
    except Exception as e:
        await _reply_error(update, e)


async def google_enable(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_allowed(update):
        return
    try:
        actions.google_enable()
        await update.message.reply_text("Google Calendar enabled.")
    except Exception as e:
        await _reply_error(update, e)
