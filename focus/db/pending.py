import json
from focus.config import get_supabase


# ============== PENDING PREVIEW ==============

def store_pending_preview(reflection_id: str, preview: dict) -> None:
    """Keep the latest preview until the user approves it."""
    get_supabase().table("pending_previews").delete().neq("id", "00000000-0000-0000-0000-000000000000").execute()
    get_supabase().table("pending_previews").insert({
        "reflection_id": reflection_id,
        "preview": json.dumps(preview),
    }).execute()


def get_pending_preview() -> dict | None:
    """Return {"reflection_id", "preview"} if a preview awaits approval."""
    result = get_supabase().table("pending_previews").select("*").order("created_at", desc=True).limit(1).execute()
    if result.data:
        row = result.data[0]
        return {"reflection_id": row["reflection_id"], "preview": json.loads(row["preview"])}
    return None


def clear_pending_preview() -> None:
    """Drop the pending preview after approval."""
    get_supabase().table("pending_previews").delete().neq("id", "00000000-0000-0000-0000-000000000000").execute()
