"""
chapters/models.py -- Domain dataclasses for chapter content.

These are pure data containers with zero logic. Persistence lives in
chapters/store.py; the editor mutates them in editor/state.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Activity:
    """One entry in a chapter's ordered activity list.

    id is a client-generated integer (millisecond timestamp when added from
    the editor). It only needs to be unique within its chapter.
    """

    id: int
    title: str = ""
    description: str = ""


@dataclass
class ChapterContent:
    """The editable public profile of a chapter.

    updated_at / updated_by are set by the store on save and are empty for
    a record that has never been persisted.
    """

    chapter_id: str
    title: str = ""
    description: str = ""
    image_url: str = ""
    activities: list[Activity] = field(default_factory=list)
    members: int = 0
    updated_at: str = ""  # ISO 8601, set by store on save
    updated_by: Optional[str] = None  # username of the last editor
