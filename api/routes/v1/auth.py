"""
api/routes/v1/auth.py -- Action-envelope authentication endpoint.

Routes:
  POST /api/v1/auth   -- {action: login|logout|validateSession, ...} -> envelope
  GET  /api/v1/auth   -- plaintext liveness string

Every POST answers HTTP 200 with {success, message, ...} for expected
failures (bad credentials, unknown action, malformed body, expired session),
because the front end branches on `success`, not on status codes. Only an
unexpected backend fault answers 500, still in the same envelope shape.

The body is parsed regardless of Content-Type. Browser clients send
text/plain to avoid a CORS preflight.

Security:
  POST is rate-limited per client IP (AUTH_RATE_LIMIT).
  Cache-Control: no-store on every envelope -- responses may carry a token.
  Server-error text is only included when DEBUG=true.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from api.limiter import auth_rate_limit, limiter
from api.models import AuthActionRequest, AuthEnvelope
from auth.service import AuthResult, AuthService
from core.config import get_settings

logger = logging.getLogger("chapterportal.api.auth")

LIVENESS_TEXT = "Chapter Portal auth service is running"
MSG_INVALID_REQUEST = "Invalid request"
MSG_SERVER_ERROR = "Server error"

# Auth policy:
# - POST /api/v1/auth: public -- login must be unauthenticated; logout and
#   validateSession carry their own token in the body
# - GET  /api/v1/auth: public liveness probe
router = APIRouter()


def _envelope(result: AuthResult, status_code: int = 200) -> JSONResponse:
    dumped = AuthEnvelope.model_validate(result.to_envelope()).model_dump(by_alias=True)
    # Optional top-level keys are omitted, not null. user.chapterId stays even when null.
    body = {k: v for k, v in dumped.items() if v is not None}
    resp = JSONResponse(status_code=status_code, content=body)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(auth_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth", response_model=AuthEnvelope, response_model_by_alias=True)
async def auth_action(request: Request) -> JSONResponse:
    """Dispatch one auth action and return the uniform envelope."""
    try:
        payload = await request.json()
    except ValueError:
        return _envelope(AuthResult(False, MSG_INVALID_REQUEST))
    if not isinstance(payload, dict):
        return _envelope(AuthResult(False, MSG_INVALID_REQUEST))
    try:
        body = AuthActionRequest.model_validate(payload)
    except ValidationError:
        return _envelope(AuthResult(False, MSG_INVALID_REQUEST))

    service: AuthService = request.app.state.auth_service
    try:
        result = await run_in_threadpool(
            service.handle,
            body.action,
            username=body.username,
            password=body.password,
            session_token=body.session_token,
        )
    except Exception as exc:
        logger.exception("Auth action %r failed", body.action)
        message = MSG_SERVER_ERROR
        if get_settings().debug:
            message = f"{MSG_SERVER_ERROR}: {exc}"
        return _envelope(AuthResult(False, message), status_code=500)
    return _envelope(result)


@router.get("/auth", response_class=PlainTextResponse)
async def auth_liveness() -> str:
    """Fixed liveness string for uptime checks against the auth endpoint."""
    return LIVENESS_TEXT
