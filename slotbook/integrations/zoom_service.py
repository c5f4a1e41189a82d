import os
import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import requests

from slotbook.scheduling.errors import ExternalProviderError
from slotbook.timeutils import isoformat_utc


log = logging.getLogger(__name__)

PROVIDER = "zoom"

# Fetch a new token this long before Zoom says the current one expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class ZoomClient:
    """Minimal Zoom API client using Server-to-Server OAuth.

    Env vars:
      - ZOOM_ACCOUNT_ID (required)
      - ZOOM_CLIENT_ID (required)
      - ZOOM_CLIENT_SECRET (required)
      - ZOOM_BASE_URL (optional; default: https://api.zoom.us/v2)
      - ZOOM_OAUTH_URL (optional; default: https://zoom.us/oauth/token)
    """

    def __init__(self, account_id: Optional[str] = None, client_id: Optional[str] = None,
                 client_secret: Optional[str] = None, base_url: Optional[str] = None,
                 oauth_url: Optional[str] = None, timeout: float = 10, clock=time.monotonic):
        self.account_id = (account_id or os.getenv("ZOOM_ACCOUNT_ID", "")).strip()
        self.client_id = (client_id or os.getenv("ZOOM_CLIENT_ID", "")).strip()
        self.client_secret = (client_secret or os.getenv("ZOOM_CLIENT_SECRET", "")).strip()
        self.base_url = (base_url or os.getenv("ZOOM_BASE_URL", "https://api.zoom.us/v2")).rstrip("/")
        self.oauth_url = oauth_url or os.getenv("ZOOM_OAUTH_URL", "https://zoom.us/oauth/token")
        self.timeout = timeout
        self.clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

        if not (self.account_id and self.client_id and self.client_secret):
            raise RuntimeError("Zoom credentials not configured")

    def _access_token(self) -> str:
        if self._token and self.clock() < self._token_expires_at:
            return self._token
        r = requests.post(
            self.oauth_url,
            params={"grant_type": "account_credentials", "account_id": self.account_id},
            auth=(self.client_id, self.client_secret),
            timeout=self.timeout,
        )
        r.raise_for_status()
        data = r.json()
        self._token = data["access_token"]
        self._token_expires_at = self.clock() + int(data.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN_SECONDS
        return self._token

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, send, path: str, **kwargs) -> requests.Response:
        r = send(self._url(path), headers=self._headers(), timeout=self.timeout, **kwargs)
        if r.status_code == 401:
            # Revoked or expired early; one retry with a fresh token
            log.info("Zoom rejected the access token, requesting a new one")
            self._token = None
            r = send(self._url(path), headers=self._headers(), timeout=self.timeout, **kwargs)
        return r

    def create_meeting(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        r = self._request(requests.post, "/users/me/meetings", json=payload)
        r.raise_for_status()
        return r.json()

    def update_meeting(self, meeting_id: str, payload: Dict[str, Any]) -> None:
        r = self._request(requests.patch, f"/meetings/{meeting_id}", json=payload)
        r.raise_for_status()

    def delete_meeting(self, meeting_id: str) -> None:
        r = self._request(requests.delete, f"/meetings/{meeting_id}")
        if r.status_code == 404:
            log.info("Zoom meeting %s already deleted", meeting_id)
            return
        r.raise_for_status()


def meeting_payload(topic: str, start: datetime, duration_minutes: int, tz_name: str) -> Dict[str, Any]:
    return {
        "topic": topic,
        "type": 2,  # scheduled
        "start_time": isoformat_utc(start),
        "duration": duration_minutes,
        "timezone": tz_name,
        "settings": {
            "host_video": True,
            "participant_video": True,
            "join_before_host": False,
            "mute_upon_entry": True,
            "waiting_room": True,
            "auto_recording": "none",
        },
    }


class ZoomMeetingProvider:
    """Meeting adapter for the scheduling core; failures become ``ExternalProviderError``."""

    def __init__(self, client_factory=ZoomClient, **client_kwargs):
        self.client_factory = client_factory
        self.client_kwargs = client_kwargs
        self._client: Optional[ZoomClient] = None

    def _get_client(self) -> ZoomClient:
        if self._client is None:
            try:
                self._client = self.client_factory(**self.client_kwargs)
            except RuntimeError as e:
                raise ExternalProviderError(PROVIDER, str(e))
        return self._client

    def create_meeting(self, topic: str, start: datetime, duration_minutes: int, tz_name: str) -> Tuple[str, str]:
        try:
            meeting = self._get_client().create_meeting(meeting_payload(topic, start, duration_minutes, tz_name))
            return str(meeting["id"]), meeting.get("join_url")
        except (requests.RequestException, KeyError, ValueError) as e:
            raise ExternalProviderError(PROVIDER, f"meeting creation failed: {e}")

    def update_meeting(self, meeting_id: str, topic: str, start: datetime, duration_minutes: int,
                       tz_name: str) -> None:
        payload = meeting_payload(topic, start, duration_minutes, tz_name)
        payload.pop("settings")
        try:
            self._get_client().update_meeting(meeting_id, payload)
        except (requests.RequestException, KeyError, ValueError) as e:
            raise ExternalProviderError(PROVIDER, f"meeting update failed: {e}")

    def delete_meeting(self, meeting_id: str) -> None:
        try:
            self._get_client().delete_meeting(meeting_id)
        except (requests.RequestException, KeyError, ValueError) as e:
            raise ExternalProviderError(PROVIDER, f"meeting deletion failed: {e}")
