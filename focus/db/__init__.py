from focus.db.settings import get_settings, update_settings, DEFAULT_SETTINGS
from focus.db.reflections import (
    list_reflections, get_reflection, get_reflection_for_date,
    create_reflection, set_planned_task, set_duration, set_completed,
    compute_streak
)
from focus.db.blocks import get_blocks_for_reflection, save_scheduled_blocks
from focus.db.pending import store_pending_preview, get_pending_preview, clear_pending_preview
from focus.db.lark_tokens import get_lark_token, save_lark_token, delete_lark_token

__all__ = [
    "get_settings", "update_settings", "DEFAULT_SETTINGS",
    "list_reflections", "get_reflection", "get_reflection_for_date",
    "create_reflection", "set_planned_task", "set_duration", "set_completed",
    "compute_streak",
    "get_blocks_for_reflection", "save_scheduled_blocks",
    "store_pending_preview", "get_pending_preview", "clear_pending_preview",
    "get_lark_token", "save_lark_token", "delete_lark_token",
]
