"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

A session token is accepted from, in priority order:
  1. Authorization: Bearer <token> header -- the editor client.
  2. X-Session-Token header -- front ends that keep the token outside the
     Authorization header.

Both converge on the login-time user snapshot returned by
AuthService.validate_session().

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_chapter_access() raises HTTP 403 unless the user may edit the chapter.

Layer rule: no imports from chapters/ or editor/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request


def _session_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return request.headers.get("X-Session-Token") or None


def try_get_current_user(request: Request) -> dict | None:
    """Return the session's user snapshot, or None if the token is missing, unknown or expired."""
    token = _session_token(request)
    if not token:
        return None
    result = request.app.state.auth_service.validate_session(token)
    return result.user if result.success else None


def get_current_user(request: Request) -> dict:
    """Require a live session. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "A valid session is required."},
        )
    return user


def require_chapter_access(user: dict, chapter_id: str) -> None:
    """Admins may edit any chapter; everyone else only the chapter on their account."""
    if user.get("role") == "admin":
        return
    if user.get("chapterId") != chapter_id:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You do not have access to this chapter."},
        )
