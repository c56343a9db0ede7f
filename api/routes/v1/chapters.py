"""
api/routes/v1/chapters.py -- Chapter content read/write endpoints.

Routes:
  GET /api/v1/chapters/{chapter_id}   -- current content (requires session)
  PUT /api/v1/chapters/{chapter_id}   -- replace content (requires session)

Access:
  Admins may read and write every chapter. Other roles only the chapter id
  recorded in their session snapshot (chapterId). Because the snapshot is
  taken at login, a changed chapter assignment applies from the next login.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Request

from api.models import ChapterResponse, ChapterUpdate
from auth.dependencies import get_current_user, require_chapter_access
from chapters.store import ChapterStore

logger = logging.getLogger("chapterportal.api.chapters")

ChapterId = Annotated[str, Path(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")]

router = APIRouter()


@router.get("/chapters/{chapter_id}", response_model=ChapterResponse)
def get_chapter(
    request: Request,
    chapter_id: ChapterId,
    user: dict = Depends(get_current_user),
) -> ChapterResponse:
    """Return stored chapter content. 404 if the chapter has never been saved."""
    require_chapter_access(user, chapter_id)
    store: ChapterStore = request.app.state.chapters
    content = store.get(chapter_id)
    if content is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Chapter not found."},
        )
    return ChapterResponse.from_content(content)


@router.put("/chapters/{chapter_id}", response_model=ChapterResponse)
def save_chapter(
    request: Request,
    chapter_id: ChapterId,
    body: ChapterUpdate,
    user: dict = Depends(get_current_user),
) -> ChapterResponse:
    """Replace the chapter record with the submitted content. Last write wins."""
    require_chapter_access(user, chapter_id)
    store: ChapterStore = request.app.state.chapters
    saved = store.save(body.to_content(chapter_id), updated_by=user.get("username"))
    logger.info("Chapter %s saved by %s (%d activities)", chapter_id, user.get("username"), len(saved.activities))
    return ChapterResponse.from_content(saved)
