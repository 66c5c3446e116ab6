from focus.config import get_supabase


def get_blocks_for_reflection(reflection_id: str) -> list[dict]:
    """Stored focus blocks of a reflection, in block order."""
    result = get_supabase().table("scheduled_blocks").select("*").eq(
        "reflection_id", reflection_id
    ).order("block_index").execute()
    return result.data


def save_scheduled_blocks(reflection_id: str, blocks: list[dict]) -> list[dict]:
    """Replace every stored block of a reflection with a new batch.

    Each block needs calendar_event_id, start_time, end_time, block_index
    and total_blocks.
    """
    get_supabase().table("scheduled_blocks").delete().eq("reflection_id", reflection_id).execute()

    stored = []
    for block in blocks:
        entry = {
            "reflection_id": reflection_id,
            "calendar_event_id": block["calendar_event_id"],
            "start_time": block["start_time"],
            "end_time": block["end_time"],
            "block_index": block["block_index"],
            "total_blocks": block["total_blocks"],
        }
        result = get_supabase().table("scheduled_blocks").insert(entry).execute()
        stored.append(result.data[0])
    return stored
