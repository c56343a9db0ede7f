"""
editor/state.py -- Editable chapter form state.

ChapterEditor holds one ChapterContent and mutates it in place: four scalar
fields plus an ordered, appendable activity list. There is no undo, no dirty
tracking and no conflict detection; save sends the whole record and the last
write wins on the server.

save() is a coroutine. The HTTP call runs in a worker thread so an event
loop driving the editor stays responsive while the request is in flight.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from chapters.models import Activity, ChapterContent
from editor.client import PortalClient, PortalError
from editor.prompts import Prompt

logger = logging.getLogger("chapterportal.editor")

MSG_SAVED = "Chapter changes saved successfully!"
MSG_SAVE_IN_PROGRESS = "A save is already in progress."
MSG_CONFIRM_LOGOUT = "Are you sure you want to logout?"


@dataclass
class SaveResult:
    ok: bool
    message: str
    chapter: Optional[ChapterContent] = None


class ChapterEditor:
    def __init__(
        self,
        client: PortalClient,
        chapter_id: str,
        session_token: str,
        prompt: Prompt,
        content: Optional[ChapterContent] = None,
        on_back: Optional[Callable[[], None]] = None,
    ) -> None:
        self.client = client
        self.session_token: Optional[str] = session_token
        self.prompt = prompt
        self.content = content or ChapterContent(chapter_id=chapter_id)
        self.on_back = on_back
        self.is_saving = False

    @property
    def heading(self) -> str:
        return f"Editing: {self.content.title}"

    def load(self) -> ChapterContent:
        """Replace local state with the stored record, if there is one.

        A chapter that has never been saved keeps the current (usually blank)
        content. PortalError propagates: there is nothing sensible to edit if
        the portal cannot be reached.
        """
        stored = self.client.fetch_chapter(self.content.chapter_id, self._require_token())
        if stored is not None:
            self.content = stored
        return self.content

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------

    def set_title(self, value: str) -> None:
        self.content.title = value

    def set_description(self, value: str) -> None:
        self.content.description = value

    def set_image_url(self, value: str) -> None:
        self.content.image_url = value

    def set_members(self, value: Union[int, str]) -> None:
        """Accept an int or a numeric string from a text input.

        Raises ValueError for anything that is not a whole, non-negative number.
        """
        members = int(value)
        if members < 0:
            raise ValueError("Member count cannot be negative")
        self.content.members = members

    def add_activity(self) -> Activity:
        """Append an empty activity whose id is the current time in milliseconds."""
        new_id = int(time.time() * 1000)
        taken = {a.id for a in self.content.activities}
        while new_id in taken:
            new_id += 1
        activity = Activity(id=new_id)
        self.content.activities.append(activity)
        return activity

    def update_activity(self, index: int, title: Optional[str] = None, description: Optional[str] = None) -> Activity:
        activity = self.content.activities[index]
        if title is not None:
            activity.title = title
        if description is not None:
            activity.description = description
        return activity

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def save(self) -> SaveResult:
        """Send the whole record to the portal and report the outcome.

        Never raises for portal failures; the result carries the message and
        the prompt is notified either way.
        """
        if self.is_saving:
            return SaveResult(False, MSG_SAVE_IN_PROGRESS)
        self.is_saving = True
        try:
            saved = await asyncio.to_thread(self.client.save_chapter, self.content, self._require_token())
        except PortalError as exc:
            logger.warning("Saving chapter %s failed: %s", self.content.chapter_id, exc)
            result = SaveResult(False, f"Could not save changes: {exc}")
        else:
            self.content = saved
            result = SaveResult(True, MSG_SAVED, chapter=saved)
        finally:
            self.is_saving = False
        self.prompt.notify(result.message)
        return result

    def logout(self) -> bool:
        """Ask for confirmation, end the session and leave the editor.

        Returns False if the user declined. A portal failure during logout
        still clears the local token: the session will expire on its own.
        """
        if not self.prompt.confirm(MSG_CONFIRM_LOGOUT):
            return False
        token = self.session_token
        self.session_token = None
        if token:
            try:
                self.client.logout(token)
            except PortalError as exc:
                logger.warning("Logout request failed: %s", exc)
        if self.on_back is not None:
            self.on_back()
        return True

    def _require_token(self) -> str:
        if not self.session_token:
            raise PortalError("Not logged in")
        return self.session_token
