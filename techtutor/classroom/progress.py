"""
ProgressLedger - Track which chapters the learner has completed.

Entries are keyed "{topic}-{subtopic}-{chapter}" and only ever move from
incomplete to complete; reset_all() is the single way back.

Provides:
- Idempotent chapter completion
- Subtopic/topic completion rollups
- Completion statistics
- Re-keying when a topic is removed
"""

import logging
from typing import Optional

from techtutor.schemas import ChapterPath, ProgressSummary

from .storage import CourseStore, drop_topic_keys
from .tree import CourseTree


logger = logging.getLogger(__name__)


class ProgressLedger:
    """
    Completed-chapter ledger backed by an optional CourseStore.

    The in-memory mapping is authoritative for reads; every change is
    written through to the store when one is configured.
    """

    def __init__(self, tree: CourseTree, store: Optional[CourseStore] = None):
        """
        Initialize the ledger.

        Args:
            tree: Course tree used for subtopic/topic rollups
            store: Optional persistence; existing entries are loaded from it
        """
        self.tree = tree
        self.store = store
        self._entries: dict[str, bool] = store.get_progress() if store else {}

    @staticmethod
    def chapter_key(path: ChapterPath) -> str:
        return path.key

    # -------------------------------------------------------------------------
    # Chapter Progress
    # -------------------------------------------------------------------------

    def mark_complete(self, path: ChapterPath) -> bool:
        """
        Mark a chapter complete.

        Returns True if the chapter was newly marked, False if it already was.
        """
        key = self.chapter_key(path)
        if self._entries.get(key):
            return False

        self._entries[key] = True
        if self.store:
            self.store.set_progress(key, True)
        logger.info(f"Chapter completed: {key}")
        return True

    def is_complete(self, path: ChapterPath) -> bool:
        return bool(self._entries.get(self.chapter_key(path)))

    def is_subtopic_complete(self, topic_index: int, subtopic_index: int) -> bool:
        """True iff every chapter in the subtopic is complete."""
        subtopic = self.tree.get_subtopic(topic_index, subtopic_index)
        return all(
            self.is_complete(ChapterPath(
                topic_index=topic_index,
                subtopic_index=subtopic_index,
                chapter_index=chapter_index,
            ))
            for chapter_index in range(len(subtopic.chapters))
        )

    def is_topic_complete(self, topic_index: int) -> bool:
        topic = self.tree.get_topic(topic_index)
        return all(
            self.is_subtopic_complete(topic_index, subtopic_index)
            for subtopic_index in range(len(topic.subtopics))
        )

    def completed_keys(self) -> set[str]:
        return {key for key, done in self._entries.items() if done}

    def snapshot(self) -> dict[str, bool]:
        return dict(self._entries)

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_completion_stats(self) -> ProgressSummary:
        """Get completion statistics for the current tree."""
        total = self.tree.chapter_count()
        completed = sum(1 for path in self.tree.iter_paths() if self.is_complete(path))
        completed_topics = sum(
            1 for topic_index in range(len(self.tree)) if self.is_topic_complete(topic_index)
        )
        return ProgressSummary(
            total_chapters=total,
            completed=completed,
            completion_percent=round(completed / total * 100, 1) if total > 0 else 0,
            completed_topics=completed_topics,
            total_topics=len(self.tree),
        )

    # -------------------------------------------------------------------------
    # Reset / re-keying
    # -------------------------------------------------------------------------

    def reset_all(self):
        """Clear every entry."""
        self._entries.clear()
        if self.store:
            self.store.reset_progress()
        logger.info("All progress cleared")

    def remove_topic(self, topic_index: int):
        """
        Drop entries for a removed topic and shift later topics down by one.

        Must be called alongside CourseTree.remove_topic so that keys keep
        pointing at the same chapters.
        """
        rekeyed = drop_topic_keys(self._entries, {topic_index})
        if self.store:
            self.store.replace_progress(rekeyed)
        self._entries = rekeyed
        logger.info(f"Progress re-keyed after removing topic {topic_index}")
