"""
chapters/store.py -- SQLAlchemy-backed persistence for chapter content.

Uses SQLAlchemy Core (not ORM) so the dataclasses in chapters/models.py stay
the authoritative domain representation.

Pattern: Repository + Data Mapper. ChapterStore is the repository;
_row_to_chapter is the mapper. Activities are stored as a JSON array in a
TEXT column; the list is always written whole, so there is no per-activity
table to keep in sync.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ChapterStore()
    store.save(ChapterContent(chapter_id="qc", title="Quezon City Chapter"), updated_by="admin")
    content = store.get("qc")
    store.close()
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from chapters.models import Activity, ChapterContent
from core.clock import to_iso, utc_now

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'chapterportal_chapters.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_chapters = Table(
    "chapters",
    metadata,
    Column("chapter_id", String(64), primary_key=True),
    Column("title", String(255), nullable=False, server_default=""),
    Column("description", Text, nullable=False, server_default=""),
    Column("image_url", Text, nullable=False, server_default=""),
    Column("activities", Text, nullable=False, server_default="[]"),  # JSON array
    Column("members", Integer, nullable=False, server_default="0"),
    Column("updated_at", String(32), nullable=False),
    Column("updated_by", String(255)),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class ChapterStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def get(self, chapter_id: str) -> Optional[ChapterContent]:
        """Return the stored content for chapter_id, or None if it was never saved."""
        with self.engine.connect() as conn:
            row = conn.execute(_chapters.select().where(_chapters.c.chapter_id == chapter_id)).fetchone()
        return _row_to_chapter(row) if row is not None else None

    def save(self, content: ChapterContent, updated_by: Optional[str] = None) -> ChapterContent:
        """Insert or replace the chapter record and return it as stored.

        Last write wins. There is no version column, so two editors saving the
        same chapter overwrite each other without warning.
        """
        values = {
            "title": content.title,
            "description": content.description,
            "image_url": content.image_url,
            "activities": json.dumps([asdict(a) for a in content.activities]),
            "members": content.members,
            "updated_at": to_iso(utc_now()),
            "updated_by": updated_by,
        }
        with self.engine.connect() as conn:
            exists = conn.execute(
                select(_chapters.c.chapter_id).where(_chapters.c.chapter_id == content.chapter_id)
            ).fetchone()
            if exists is None:
                conn.execute(_chapters.insert().values(chapter_id=content.chapter_id, **values))
            else:
                conn.execute(_chapters.update().where(_chapters.c.chapter_id == content.chapter_id).values(**values))
            conn.commit()
        saved = self.get(content.chapter_id)
        if saved is None:
            raise RuntimeError(f"Chapter {content.chapter_id!r} not found after write")
        return saved

    def list_ids(self) -> list[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(_chapters.c.chapter_id).order_by(_chapters.c.chapter_id)).fetchall()
        return [r.chapter_id for r in rows]

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_chapter(row) -> ChapterContent:
    activities = [Activity(**a) for a in json.loads(row.activities or "[]")]
    return ChapterContent(
        chapter_id=row.chapter_id,
        title=row.title,
        description=row.description,
        image_url=row.image_url,
        activities=activities,
        members=row.members,
        updated_at=row.updated_at,
        updated_by=row.updated_by,
    )
