"""
CourseStore - Persist learner state in ~/.techtutor/techtutor.db.

Stores per-student:
- Chapter completion ledger
- The generated topic list (course structure)
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from techtutor.config import DEFAULT_DB_PATH
from techtutor.schemas import ChapterPath, ChapterProgress, Topic


logger = logging.getLogger(__name__)


def drop_topic_keys(entries: dict[str, bool], removed: set[int]) -> dict[str, bool]:
    """
    Re-key progress entries after topics are removed.

    Entries of removed topics are dropped and later topics move down by the
    number of removed topics before them. Unparseable keys are dropped.
    """
    rekeyed = {}
    for key, done in entries.items():
        try:
            path = ChapterPath.from_key(key)
        except ValueError as e:
            logger.warning(f"Dropping malformed progress key {key!r}: {e}")
            continue
        if path.topic_index in removed:
            continue
        shift = sum(1 for index in removed if index < path.topic_index)
        if shift:
            path = path.model_copy(update={"topic_index": path.topic_index - shift})
        rekeyed[path.key] = done
    return rekeyed


class CourseStore:
    """
    SQLite persistence for the progress ledger and topic list.

    Each method opens its own connection, so a store can be shared between
    Streamlit reruns without holding a handle open.
    """

    def __init__(self, db_path: Optional[Path] = None, student_id: str = "default"):
        """
        Initialize the store.

        Args:
            db_path: Path to the database (default: ~/.techtutor/techtutor.db)
            student_id: Student identifier for multi-user support
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.student_id = student_id
        self._ensure_database()

    def _ensure_database(self):
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS chapter_progress (
                    student_id TEXT NOT NULL,
                    chapter_key TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT,
                    PRIMARY KEY (student_id, chapter_key)
                );

                CREATE TABLE IF NOT EXISTS course_topics (
                    student_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    topic_json TEXT NOT NULL,
                    PRIMARY KEY (student_id, position)
                );

                CREATE INDEX IF NOT EXISTS idx_chapter_progress_student
                ON chapter_progress(student_id);
            """)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # -------------------------------------------------------------------------
    # Progress ledger
    # -------------------------------------------------------------------------

    def get_progress(self) -> dict[str, bool]:
        """Get the completion flag for every recorded chapter key."""
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """SELECT chapter_key, completed FROM chapter_progress
                   WHERE student_id = ?""",
                (self.student_id,)
            )
            return {row["chapter_key"]: bool(row["completed"]) for row in cursor.fetchall()}
        finally:
            conn.close()

    def get_chapter_progress(self, chapter_key: str) -> ChapterProgress:
        """Get the stored row for one chapter."""
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """SELECT chapter_key, completed, completed_at FROM chapter_progress
                   WHERE student_id = ? AND chapter_key = ?""",
                (self.student_id, chapter_key)
            )
            row = cursor.fetchone()
            if not row:
                return ChapterProgress(chapter_key=chapter_key)

            return ChapterProgress(
                chapter_key=row["chapter_key"],
                completed=bool(row["completed"]),
                completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
            )
        finally:
            conn.close()

    def set_progress(self, chapter_key: str, completed: bool = True):
        """Set the completion flag for a chapter key."""
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat() if completed else None
            conn.execute(
                """INSERT INTO chapter_progress (student_id, chapter_key, completed, completed_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(student_id, chapter_key) DO UPDATE SET
                     completed = excluded.completed,
                     completed_at = COALESCE(chapter_progress.completed_at, excluded.completed_at)""",
                (self.student_id, chapter_key, int(completed), now)
            )
            conn.commit()
        finally:
            conn.close()

    def clear_progress(self, chapter_key: str):
        """Remove the entry for one chapter key."""
        conn = self._get_connection()
        try:
            conn.execute(
                """DELETE FROM chapter_progress
                   WHERE student_id = ? AND chapter_key = ?""",
                (self.student_id, chapter_key)
            )
            conn.commit()
        finally:
            conn.close()

    def replace_progress(self, entries: dict[str, bool]):
        """Replace the whole ledger in one transaction."""
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat()
            conn.execute(
                "DELETE FROM chapter_progress WHERE student_id = ?",
                (self.student_id,)
            )
            conn.executemany(
                """INSERT INTO chapter_progress (student_id, chapter_key, completed, completed_at)
                   VALUES (?, ?, ?, ?)""",
                [
                    (self.student_id, key, int(done), now if done else None)
                    for key, done in entries.items()
                ]
            )
            conn.commit()
        finally:
            conn.close()

    def reset_progress(self):
        """Reset all progress for the current student."""
        conn = self._get_connection()
        try:
            conn.execute(
                "DELETE FROM chapter_progress WHERE student_id = ?",
                (self.student_id,)
            )
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Progress reset for student: {self.student_id}")

    # -------------------------------------------------------------------------
    # Topic list
    # -------------------------------------------------------------------------

    def load_topics(self) -> list[Topic]:
        """
        Load the saved topic list in course order.

        Unreadable rows are dropped. Progress keys are re-aligned to the
        surviving topics and the compacted list is saved back, so positional
        keys keep pointing at the same chapters.
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """SELECT position, topic_json FROM course_topics
                   WHERE student_id = ?
                   ORDER BY position""",
                (self.student_id,)
            )
            rows = cursor.fetchall()
        finally:
            conn.close()

        topics = []
        skipped = set()
        for index, row in enumerate(rows):
            try:
                topics.append(Topic.model_validate(json.loads(row["topic_json"])))
            except (ValidationError, json.JSONDecodeError) as e:
                logger.warning(f"Dropping unreadable topic at position {row['position']}: {e}")
                skipped.add(index)

        if skipped:
            self.replace_progress(drop_topic_keys(self.get_progress(), skipped))
            self.save_topics(topics)
        return topics

    def save_topics(self, topics: list[Topic]):
        """Replace the saved topic list."""
        conn = self._get_connection()
        try:
            conn.execute(
                "DELETE FROM course_topics WHERE student_id = ?",
                (self.student_id,)
            )
            conn.executemany(
                """INSERT INTO course_topics (student_id, position, topic_json)
                   VALUES (?, ?, ?)""",
                [
                    (self.student_id, position, topic.model_dump_json())
                    for position, topic in enumerate(topics)
                ]
            )
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Saved {len(topics)} topics for student: {self.student_id}")
