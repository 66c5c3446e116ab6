"""
Evening reminder for the reflection.
"""

from datetime import datetime, timedelta, timezone
from telegram.ext import ContextTypes

from focus.config import ALLOWED_USER_ID, UTC_OFFSET_MINUTES, logger
from focus.db import get_settings, get_reflection_for_date

REMINDER_TEXT = {
    "ko": "🌙 오늘 하루는 어땠나요? 편하게 회고를 보내 주세요.",
    "en": "🌙 How did today go? Send me your evening reflection whenever you're ready.",
}


def reminder_due(now_utc: datetime, notification_time: str, last_sent: str | None) -> str | None:
    """Local date to remind for, if the reminder time has passed and nothing was sent today."""
    local_now = now_utc + timedelta(minutes=-UTC_OFFSET_MINUTES)
    today = local_now.date().isoformat()
    if last_sent == today:
        return None
    if local_now.strftime("%H:%M") < notification_time:
        return None
    return today


async def check_for_reminder(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Periodic job that sends the evening reflection reminder once a day."""
    try:
        settings = get_settings()
        today = reminder_due(
            datetime.now(timezone.utc),
            settings.get("notification_time", "21:00"),
            context.bot_data.get("last_reminder_date"),
        )
        if not today:
            return

        context.bot_data["last_reminder_date"] = today
        if get_reflection_for_date(today):
            return

        language = settings.get("language", "ko")
        await context.bot.send_message(
            chat_id=ALLOWED_USER_ID,
            text=REMINDER_TEXT.get(language, REMINDER_TEXT["en"])
        )
        logger.info(f"Sent evening reminder for {today}")

    except Exception as e:
        logger.error(f"Reminder check error: {e}")
