from telegram import Update
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from focus.config import TELEGRAM_TOKEN, logger
from focus.handlers import (
    handle_message, start, status, history, streak, plan, preview, done,
    settings, provider, hours, lark_credentials, lark_connect, lark_code,
    lark_disconnect, google_disconnect, google_enable,
)
from focus.nudges import check_for_reminder

REMINDER_INTERVAL_SECONDS = 300


# ============== MAIN ==============

def main() -> None:
    """Start the bot."""
    app = Application.builder().token(TELEGRAM_TOKEN).build()

    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("status", status))
    app.add_handler(CommandHandler("history", history))
    app.add_handler(CommandHandler("streak", streak))
    app.add_handler(CommandHandler("plan", plan))
    app.add_handler(CommandHandler("preview", preview))
    app.add_handler(CommandHandler("done", done))
    app.add_handler(CommandHandler("settings", settings))
    app.add_handler(CommandHandler("provider", provider))
    app.add_handler(CommandHandler("hours", hours))
    app.add_handler(CommandHandler("lark_credentials", lark_credentials))
    app.add_handler(CommandHandler("lark_connect", lark_connect))
    app.add_handler(CommandHandler("lark_code", lark_code))
    app.add_handler(CommandHandler("lark_disconnect", lark_disconnect))
    app.add_handler(CommandHandler("google_disconnect", google_disconnect))
    app.add_handler(CommandHandler("google_enable", google_enable))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    app.job_queue.run_repeating(check_for_reminder, interval=REMINDER_INTERVAL_SECONDS, first=10)

    logger.info("Morning Focus is starting...")
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
