"""
editor/client.py -- HTTP client for the chapter portal API.

One requests.Session per client for connection pooling. Every call has a
timeout; any transport error or non-2xx status becomes PortalError so the
editor has exactly one exception type to handle.

Auth calls return the raw envelope dict. A failed login is a normal
envelope with success=False, not an exception.
"""

import logging
from typing import Any, Optional

import requests

from chapters.models import Activity, ChapterContent

logger = logging.getLogger("chapterportal.client")


class PortalError(Exception):
    """The portal API could not be reached or answered with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PortalClient:
    """Usage:
    client = PortalClient("http://localhost:8000")
    envelope = client.login("admin", "admin123")
    chapter = client.fetch_chapter("qc", envelope["sessionToken"])
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        # Redirects are never expected from the portal API.
        self._session.max_redirects = 3

    # ------------------------------------------------------------------
    # Auth envelope
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> dict:
        return self._action({"action": "login", "username": username, "password": password})

    def logout(self, session_token: str) -> dict:
        return self._action({"action": "logout", "sessionToken": session_token})

    def validate_session(self, session_token: str) -> dict:
        return self._action({"action": "validateSession", "sessionToken": session_token})

    def _action(self, payload: dict) -> dict:
        # The endpoint answers 500 with an envelope on backend faults; surface
        # that as an error rather than a failed envelope.
        return self._request("POST", "/api/v1/auth", json=payload)

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------

    def fetch_chapter(self, chapter_id: str, session_token: str) -> Optional[ChapterContent]:
        """Return the stored chapter, or None if it has never been saved."""
        try:
            data = self._request("GET", f"/api/v1/chapters/{chapter_id}", token=session_token)
        except PortalError as exc:
            if exc.status_code == 404:
                return None
            raise
        return chapter_from_payload(data)

    def save_chapter(self, content: ChapterContent, session_token: str) -> ChapterContent:
        data = self._request(
            "PUT",
            f"/api/v1/chapters/{content.chapter_id}",
            token=session_token,
            json=chapter_to_payload(content),
        )
        return chapter_from_payload(data)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, token: Optional[str] = None, json: Any = None) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            resp = self._session.request(
                method, f"{self.base_url}{path}", json=json, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise PortalError(f"Could not reach the portal: {e}") from e
        if resp.status_code >= 400:
            raise PortalError(_error_message(resp), status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            logger.warning("%s %s returned a non-JSON body", method, path)
            raise PortalError("The portal returned an unreadable response", status_code=resp.status_code) from e

    def close(self) -> None:
        self._session.close()


def _error_message(resp: requests.Response) -> str:
    """Pull a readable message out of either error shape the API produces."""
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        if isinstance(body.get("error"), dict) and body["error"].get("message"):
            return body["error"]["message"]
        if body.get("message"):
            return body["message"]
    return f"HTTP {resp.status_code}"


def chapter_to_payload(content: ChapterContent) -> dict:
    return {
        "title": content.title,
        "description": content.description,
        "imageUrl": content.image_url,
        "activities": [{"id": a.id, "title": a.title, "description": a.description} for a in content.activities],
        "members": content.members,
    }


def chapter_from_payload(data: dict) -> ChapterContent:
    return ChapterContent(
        chapter_id=data["chapterId"],
        title=data.get("title", ""),
        description=data.get("description", ""),
        image_url=data.get("imageUrl", ""),
        activities=[Activity(**a) for a in data.get("activities", [])],
        members=data.get("members", 0),
        updated_at=data.get("updatedAt", ""),
        updated_by=data.get("updatedBy"),
    )
