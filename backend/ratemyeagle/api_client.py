"""HTTP client for the RateMyEagle API, used by the front end and scripts."""

import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from ratemyeagle.config import get_settings

logger = logging.getLogger(__name__)


class ApiClientError(Exception):
    """Raised for any non-2xx response; ``message`` is the server's ``error``."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class RatingsApiClient:
    """One method per endpoint. Public reads send the anon key as bearer."""

    def __init__(self, base_url: Optional[str] = None, anon_key: Optional[str] = None,
                 timeout: Optional[float] = None, http: Optional[requests.Session] = None):
        settings = get_settings()
        self.base_url = (base_url or f"http://localhost:8000{settings.api_prefix}").rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.http = http or requests.Session()

    def _request(self, method: str, path: str, token: Optional[str] = None, **kwargs) -> dict:
        headers = {}
        bearer = token or self.anon_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        url = f"{self.base_url}{path}"
        try:
            resp = self.http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ApiClientError(f"Request failed: {exc}") from exc

        if not resp.ok:
            try:
                body = resp.json()
            except ValueError:
                body = {"error": resp.text}
            message = body.get("error") or f"{method} {path} failed: {resp.status_code} {resp.reason}"
            logger.warning("%s %s -> %d %s", method, path, resp.status_code, message)
            raise ApiClientError(message, status_code=resp.status_code, details=body.get("details"))
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("%s %s returned a non-JSON body", method, path)
            raise ApiClientError(f"{method} {path} returned an invalid response",
                                 status_code=resp.status_code) from exc

    # ── health ──
    def health_check(self) -> dict:
        return self._request("GET", "/health")

    def setup_database(self) -> dict:
        return self._request("POST", "/setup")

    # ── professors ──
    def fetch_professors(self) -> list[dict]:
        return self._request("GET", "/professors").get("professors", [])

    def fetch_professors_by_department(self, department: str) -> list[dict]:
        path = f"/professors/department/{quote(department, safe='')}"
        return self._request("GET", path).get("professors", [])

    def search_professors(self, query: str) -> list[dict]:
        return self._request("GET", "/professors/search", params={"q": query}).get("professors", [])

    def add_professor(self, professor: dict, access_token: str) -> dict:
        return self._request("POST", "/professors", token=access_token, json=professor)["professor"]

    # ── ratings ──
    def submit_professor_rating(self, professor_id: str, rating: dict, access_token: str) -> dict:
        return self._request("POST", f"/professors/{professor_id}/ratings", token=access_token, json=rating)

    def fetch_professor_ratings(self, professor_id: str) -> dict:
        """Returns ``{"ratings": [...], "stats": {...}}``."""
        return self._request("GET", f"/professors/{professor_id}/ratings")

    def fetch_user_ratings(self, access_token: str) -> list[dict]:
        return self._request("GET", "/users/ratings", token=access_token).get("ratings", [])

    # ── forum ──
    def fetch_forum_messages(self, access_token: Optional[str] = None) -> list[dict]:
        return self._request("GET", "/forum/messages", token=access_token).get("messages", [])

    def post_forum_message(self, content: str, access_token: str) -> dict:
        return self._request("POST", "/forum/messages", token=access_token, json={"content": content})["message"]
