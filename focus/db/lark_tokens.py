from datetime import datetime, timezone
from focus.config import get_supabase


def get_lark_token() -> dict | None:
    """The stored Lark token row, if connected."""
    result = get_supabase().table("lark_tokens").select("*").limit(1).execute()
    return result.data[0] if result.data else None


def save_lark_token(access_token: str, refresh_token: str, expires_at: datetime,
                    refresh_expires_at: datetime, open_id: str | None = None) -> dict:
    """Replace the stored Lark token."""
    delete_lark_token()
    result = get_supabase().table("lark_tokens").insert({
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_at": expires_at.isoformat(),
        "refresh_expires_at": refresh_expires_at.isoformat(),
        "open_id": open_id,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }).execute()
    return result.data[0]


def delete_lark_token() -> None:
    """Forget the Lark connection."""
    get_supabase().table("lark_tokens").delete().neq("id", 0).execute()
