import os
import logging
from dotenv import load_dotenv
load_dotenv()

from supabase import create_client, Client
from anthropic import Anthropic

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("focus")

# Config
TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
SUPABASE_URL = os.environ.get("SUPABASE_URL")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY")
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY")
ANTHROPIC_BASE_URL = os.environ.get("ANTHROPIC_BASE_URL")
AI_MODEL = os.environ.get("AI_MODEL", "claude-sonnet-4-5")
ALLOWED_USER_ID = int(os.environ.get("ALLOWED_USER_ID", 0))

GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET")
GOOGLE_REFRESH_TOKEN = os.environ.get("GOOGLE_REFRESH_TOKEN")

LARK_APP_ID = os.environ.get("LARK_APP_ID")
LARK_APP_SECRET = os.environ.get("LARK_APP_SECRET")
LARK_REDIRECT_URI = os.environ.get("LARK_REDIRECT_URI", "http://localhost:5000/api/calendar/lark/callback")

# Scheduling constants. The offset is minutes added to local time to reach UTC (-540 = UTC+9).
UTC_OFFSET_MINUTES = -540
MIN_BLOCK_MINUTES = 30
EVENT_DESCRIPTION = "Auto-scheduled by Morning Focus"

# Clients, created on first use
_supabase: Client | None = None
_anthropic: Anthropic | None = None


def get_supabase() -> Client:
    """Shared Supabase client."""
    global _supabase
    if _supabase is None:
        _supabase = create_client(SUPABASE_URL, SUPABASE_KEY)
    return _supabase


def get_anthropic() -> Anthropic:
    """Shared Anthropic client."""
    global _anthropic
    if _anthropic is None:
        _anthropic = Anthropic(api_key=ANTHROPIC_API_KEY, base_url=ANTHROPIC_BASE_URL)
    return _anthropic
