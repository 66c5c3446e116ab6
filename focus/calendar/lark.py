"""
Lark Calendar provider.
OAuth (authorize, code exchange, refresh), free/busy and event creation
over the Lark Open API.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import requests

from focus.config import LARK_APP_ID, LARK_APP_SECRET, LARK_REDIRECT_URI
from focus.calendar.base import CalendarProvider
from focus.db import get_lark_token, save_lark_token, delete_lark_token
from focus.errors import ProviderError, ValidationError
from focus.scheduler import BusyInterval, parse_iso

logger = logging.getLogger(__name__)

LARK_BASE_URL = "https://open.larksuite.com"
LARK_AUTH_URL = f"{LARK_BASE_URL}/open-apis/authen/v1/authorize"
LARK_TOKEN_URL = f"{LARK_BASE_URL}/open-apis/authen/v1/oidc/access_token"
LARK_REFRESH_URL = f"{LARK_BASE_URL}/open-apis/authen/v1/oidc/refresh_access_token"
LARK_FREEBUSY_URL = f"{LARK_BASE_URL}/open-apis/calendar/v4/freebusy/list"
LARK_EVENTS_URL = f"{LARK_BASE_URL}/open-apis/calendar/v4/calendars"

LARK_SCOPE = "calendar:calendar offline_access"
LARK_EVENT_TIMEZONE = "Asia/Seoul"
REQUEST_TIMEOUT = 15
REFRESH_MARGIN = timedelta(seconds=60)


# ============== OAUTH STATE ==============

class OAuthStateStore:
    """Pending OAuth states, one per session, each with an expiry."""

    def __init__(self, ttl: timedelta = timedelta(minutes=10)):
        self.ttl = ttl
        self._states: dict[str, tuple[str, datetime]] = {}

    def issue(self, session_id: str, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        state = secrets.token_hex(16)
        self._states[session_id] = (state, now + self.ttl)
        return state

    def consume(self, session_id: str, state: str, now: datetime | None = None) -> bool:
        """Check a returned state. A state is good for one use only."""
        now = now or datetime.now(timezone.utc)
        pending = self._states.pop(session_id, None)
        if pending is None:
            return False
        expected, expires_at = pending
        if expires_at < now:
            return False
        return secrets.compare_digest(expected, state or "")


oauth_states = OAuthStateStore()


# ============== HELPERS ==============

def _post(url: str, what: str, **kwargs) -> dict:
    """POST to the Lark API and unwrap its data. Any non-zero code is a failure."""
    try:
        resp = requests.post(url, timeout=REQUEST_TIMEOUT, **kwargs)
    except requests.RequestException as e:
        logger.error(f"Lark {what} request error: {e}")
        raise ProviderError(f"Lark {what} failed") from e

    try:
        data = resp.json()
    except ValueError:
        data = {}

    if not resp.ok or data.get("code") != 0:
        logger.error(f"Lark {what} failed: {data}")
        raise ProviderError(data.get("msg") or f"Lark {what} failed")
    return data.get("data") or {}


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return parse_iso(value)


# ============== PROVIDER ==============

class LarkCalendar(CalendarProvider):
    name = "lark"

    def __init__(self, app_id: str | None = None, app_secret: str | None = None,
                 redirect_uri: str = LARK_REDIRECT_URI):
        self.app_id = app_id or LARK_APP_ID
        self.app_secret = app_secret or LARK_APP_SECRET
        self.redirect_uri = redirect_uri

    def _credentials(self) -> tuple[str, str]:
        if not self.app_id:
            raise ValidationError("Lark App ID is not set. Use /lark_credentials first.", field="lark_app_id")
        if not self.app_secret:
            raise ValidationError("Lark App Secret is not set. Use /lark_credentials first.", field="lark_app_secret")
        return self.app_id, self.app_secret

    # --- OAuth ---

    def build_auth_url(self, session_id: str) -> str:
        app_id, _ = self._credentials()
        params = {
            "app_id": app_id,
            "redirect_uri": self.redirect_uri,
            "scope": LARK_SCOPE,
            "state": oauth_states.issue(session_id),
        }
        return f"{LARK_AUTH_URL}?{urlencode(params)}"

    def _store_token(self, token_data: dict, fallback_open_id: str | None = None) -> dict:
        now = datetime.now(timezone.utc)
        return save_lark_token(
            access_token=token_data["access_token"],
            refresh_token=token_data["refresh_token"],
            expires_at=now + timedelta(seconds=token_data["expires_in"]),
            refresh_expires_at=now + timedelta(seconds=token_data["refresh_expires_in"]),
            open_id=token_data.get("open_id") or fallback_open_id,
        )

    def exchange_code(self, code: str) -> dict:
        app_id, app_secret = self._credentials()
        token_data = _post(LARK_TOKEN_URL, "token exchange", json={
            "grant_type": "authorization_code",
            "client_id": app_id,
            "client_secret": app_secret,
            "code": code,
            "redirect_uri": self.redirect_uri,
        })
        return self._store_token(token_data)

    def _valid_access_token(self) -> tuple[str, str | None]:
        token = get_lark_token()
        if not token:
            raise ProviderError("Lark Calendar is not connected.")

        now = datetime.now(timezone.utc)
        if _as_datetime(token["expires_at"]) > now + REFRESH_MARGIN:
            return token["access_token"], token.get("open_id")

        if _as_datetime(token["refresh_expires_at"]) < now:
            delete_lark_token()
            raise ProviderError("Lark refresh token expired. Please reconnect with /lark_connect.")

        app_id, app_secret = self._credentials()
        token_data = _post(LARK_REFRESH_URL, "token refresh", json={
            "grant_type": "refresh_token",
            "client_id": app_id,
            "client_secret": app_secret,
            "refresh_token": token["refresh_token"],
        })
        saved = self._store_token(token_data, fallback_open_id=token.get("open_id"))
        logger.info("Refreshed Lark access token")
        return saved["access_token"], saved.get("open_id")

    def is_connected(self) -> bool:
        token = get_lark_token()
        if not token:
            return False
        if _as_datetime(token["refresh_expires_at"]) < datetime.now(timezone.utc):
            delete_lark_token()
            return False
        return True

    # --- Calendar ---

    def fetch_busy(self, time_min: datetime, time_max: datetime) -> list[BusyInterval]:
        access_token, open_id = self._valid_access_token()

        body = {
            "time_min": time_min.astimezone(timezone.utc).isoformat(),
            "time_max": time_max.astimezone(timezone.utc).isoformat(),
        }
        if open_id:
            body["user_id"] = {"user_id": open_id, "user_id_type": "open_id"}

        data = _post(
            LARK_FREEBUSY_URL, "free/busy query",
            headers={"Authorization": f"Bearer {access_token}"},
            json=body,
        )

        busy = []
        for entry in data.get("freebusy_list") or []:
            if entry.get("start_time") and entry.get("end_time"):
                busy.append(BusyInterval(
                    datetime.fromtimestamp(int(entry["start_time"]), tz=timezone.utc),
                    datetime.fromtimestamp(int(entry["end_time"]), tz=timezone.utc),
                ))
        return busy

    def create_event(self, summary: str, start_time: datetime, end_time: datetime,
                     description: str | None = None) -> str:
        access_token, _ = self._valid_access_token()

        data = _post(
            f"{LARK_EVENTS_URL}/primary/events", "create event",
            headers={"Authorization": f"Bearer {access_token}"},
            json={
                "summary": summary,
                "description": description or "",
                "start_time": {
                    "timestamp": str(int(start_time.timestamp())),
                    "timezone": LARK_EVENT_TIMEZONE,
                },
                "end_time": {
                    "timestamp": str(int(end_time.timestamp())),
                    "timezone": LARK_EVENT_TIMEZONE,
                },
                "free_busy_status": "busy",
                "visibility": "default",
            },
        )
        return (data.get("event") or {}).get("event_id", "")
