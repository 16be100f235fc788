"""
NavigationController - Chapter navigation and course-level actions.

Provides:
- Go-to / next / previous navigation with completion on leave
- Chapter actions (retry, quiz, visualization, display language)
- Topic generation, removal and progress reset
- Course tree with status indicators for the sidebar
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from techtutor.errors import ChapterNotReadyError, ConfigurationError
from techtutor.schemas import (
    ChapterPath,
    ChapterStatus,
    ContentState,
    QuizStatus,
    Topic,
    VisualConcept,
)
from techtutor.services import GeminiService
from techtutor.session import ContentPipeline, QuizEngine, SessionContext

from .progress import ProgressLedger
from .storage import CourseStore
from .tree import CourseTree


@dataclass
class NavigationChapter:
    """Chapter with navigation metadata."""
    path: ChapterPath
    title: str
    status: ChapterStatus


@dataclass
class NavigationSubtopic:
    title: str
    chapters: list[NavigationChapter]
    completed_count: int
    total_count: int

    @property
    def is_complete(self) -> bool:
        return self.total_count > 0 and self.completed_count == self.total_count


@dataclass
class NavigationTopic:
    """Topic with subtopics and navigation metadata."""
    index: int
    title: str
    subtopics: list[NavigationSubtopic]
    completed_count: int
    total_count: int

    @property
    def is_complete(self) -> bool:
        return self.total_count > 0 and self.completed_count == self.total_count


class NavigationController:
    """
    Move the learner through the course.

    Combines CourseTree (structure), ProgressLedger (completion) and the
    session components for the open chapter. A chapter is recorded complete
    when the learner leaves it after its content loaded.
    """

    def __init__(
        self,
        tree: CourseTree,
        ledger: ProgressLedger,
        pipeline: ContentPipeline,
        quiz: QuizEngine,
        context: SessionContext,
        service: Optional[GeminiService] = None,
        store: Optional[CourseStore] = None,
    ):
        """
        Initialize the controller.

        Args:
            tree: Course structure
            ledger: Completion ledger for the same tree
            pipeline: Content pipeline for the open chapter
            quiz: Quiz engine for the open chapter
            context: Session display state
            service: Generation collaborator, needed for add_topic
            store: Optional persistence for the topic list
        """
        self.tree = tree
        self.ledger = ledger
        self.pipeline = pipeline
        self.quiz = quiz
        self.context = context
        self.service = service
        self.store = store
        self.current_path: Optional[ChapterPath] = None

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    async def go_to(self, path: ChapterPath) -> bool:
        """
        Open a chapter.

        Raises OutOfRangeError (without changing state) for an invalid path.

        Returns:
            True if the chapter's load result was committed
        """
        chapter = self.tree.resolve_chapter(path)
        self._leave_current()
        self.current_path = path
        return await self.pipeline.load_chapter(path, chapter.title)

    def can_go_next(self) -> bool:
        return self.current_path is not None and not self.tree.is_last(self.current_path)

    def can_go_prev(self) -> bool:
        return self.current_path is not None and not self.tree.is_first(self.current_path)

    async def next(self) -> bool:
        """Open the following chapter; False (no change) at the end."""
        if not self.can_go_next():
            return False
        await self.go_to(self.tree.next_path(self.current_path))
        return True

    async def prev(self) -> bool:
        """Open the preceding chapter; False (no change) at the start."""
        if not self.can_go_prev():
            return False
        await self.go_to(self.tree.prev_path(self.current_path))
        return True

    def close_chapter(self) -> Optional[ChapterPath]:
        """
        Leave the open chapter without opening another.

        Returns:
            The path recorded as complete, if any
        """
        finished = self._leave_current()
        self.current_path = None
        return finished

    def _leave_current(self) -> Optional[ChapterPath]:
        self.quiz.exit()
        finished = self.pipeline.leave()
        if finished is not None:
            self.ledger.mark_complete(finished)
        return finished

    # -------------------------------------------------------------------------
    # Chapter Actions
    # -------------------------------------------------------------------------

    async def retry(self) -> bool:
        if self.current_path is None:
            raise ChapterNotReadyError("No chapter is open")
        return await self.pipeline.retry()

    def _require_ready(self):
        if self.pipeline.state != ContentState.READY or self.pipeline.content is None:
            raise ChapterNotReadyError("Chapter content is not loaded")

    async def start_quiz(self) -> QuizStatus:
        self._require_ready()
        content = self.pipeline.content
        return await self.quiz.load_quiz(content.title, content.raw_content)

    async def visualize(self) -> Optional[VisualConcept]:
        self._require_ready()
        return await self.pipeline.visualize()

    async def set_language(self, language: str) -> bool:
        """
        Switch display language and re-translate what is on screen.

        Returns:
            True if the language changed
        """
        if not self.context.set_language(language):
            return False
        await asyncio.gather(
            self.pipeline.refresh_translation(),
            self.quiz.refresh_translation(),
        )
        return True

    # -------------------------------------------------------------------------
    # Course Structure
    # -------------------------------------------------------------------------

    async def add_topic(self, title: str) -> int:
        """
        Generate a topic outline and append it to the course.

        Raises GenerationError if the outline cannot be generated; the
        course is unchanged in that case.

        Returns:
            Index of the new topic
        """
        title = title.strip()
        if not title:
            raise ValueError("Topic title must not be empty")
        if self.service is None:
            raise ConfigurationError("No generation service configured")

        subtopics = await self.service.generate_topic_structure(title)
        index = self.tree.append_topic(Topic(title=title, subtopics=subtopics))
        self._save_topics()
        return index

    def remove_topic(self, topic_index: int) -> Topic:
        """
        Remove a topic and re-key progress for the topics after it.

        The open chapter is left first, so in-flight work for it is
        discarded and it is recorded complete if it had loaded. Progress is
        re-keyed before the tree changes; if that fails the course is
        unchanged.
        """
        self.tree.get_topic(topic_index)
        if self.current_path is not None:
            self.close_chapter()
        self.ledger.remove_topic(topic_index)
        topic = self.tree.remove_topic(topic_index)
        self._save_topics()
        return topic

    def reset_progress(self):
        self.ledger.reset_all()

    def _save_topics(self):
        if self.store:
            self.store.save_topics(self.tree.topics)

    # -------------------------------------------------------------------------
    # Course Tree
    # -------------------------------------------------------------------------

    def get_chapter_status(self, path: ChapterPath) -> ChapterStatus:
        if path == self.current_path:
            return ChapterStatus.CURRENT
        if self.ledger.is_complete(path):
            return ChapterStatus.COMPLETED
        return ChapterStatus.NOT_STARTED

    def get_status_indicator(self, path: ChapterPath) -> str:
        """
        Get status indicator for sidebar display.

        Returns:
            → for current
            ✓ for completed
            ○ for not started
        """
        status = self.get_chapter_status(path)
        if status == ChapterStatus.CURRENT:
            return "→"
        elif status == ChapterStatus.COMPLETED:
            return "✓"
        return "○"

    def get_navigation_tree(self) -> list[NavigationTopic]:
        """Full course tree with per-chapter status and completion counts."""
        return [
            self._build_topic(topic_index, topic)
            for topic_index, topic in enumerate(self.tree.topics)
        ]

    def get_topic_overview(self, topic_index: int) -> NavigationTopic:
        """
        One topic's subtopics and chapters for the topic index view.

        Raises OutOfRangeError for an unknown topic.
        """
        return self._build_topic(topic_index, self.tree.get_topic(topic_index))

    def _build_topic(self, topic_index: int, topic: Topic) -> NavigationTopic:
        nav_subtopics = []
        for subtopic_index, subtopic in enumerate(topic.subtopics):
            nav_chapters = []
            for chapter_index, chapter in enumerate(subtopic.chapters):
                path = ChapterPath(
                    topic_index=topic_index,
                    subtopic_index=subtopic_index,
                    chapter_index=chapter_index,
                )
                nav_chapters.append(NavigationChapter(
                    path=path,
                    title=chapter.title,
                    status=self.get_chapter_status(path),
                ))
            nav_subtopics.append(NavigationSubtopic(
                title=subtopic.title,
                chapters=nav_chapters,
                completed_count=sum(1 for c in nav_chapters if self.ledger.is_complete(c.path)),
                total_count=len(nav_chapters),
            ))

        return NavigationTopic(
            index=topic_index,
            title=topic.title,
            subtopics=nav_subtopics,
            completed_count=sum(s.completed_count for s in nav_subtopics),
            total_count=sum(s.total_count for s in nav_subtopics),
        )

    def get_recommended_path(self) -> Optional[ChapterPath]:
        """
        Get the chapter to suggest next.

        Priority:
        1. First incomplete chapter
        2. First chapter
        """
        for path in self.tree.iter_paths():
            if not self.ledger.is_complete(path):
                return path
        return self.tree.first_path()

    def get_chapter_position(self, path: ChapterPath) -> tuple[int, int]:
        """
        Get chapter position within its subtopic as (current, total).

        Returns (0, total) if the subtopic exists but the chapter does not.
        """
        subtopic = self.tree.get_subtopic(path.topic_index, path.subtopic_index)
        total = len(subtopic.chapters)
        if path.chapter_index >= total:
            return (0, total)
        return (path.chapter_index + 1, total)

    def get_progress_summary(self) -> dict:
        """Get progress summary for display."""
        stats = self.ledger.get_completion_stats()
        topic_stats = [
            {
                "index": nav_topic.index,
                "title": nav_topic.title,
                "completed": nav_topic.completed_count,
                "total": nav_topic.total_count,
            }
            for nav_topic in self.get_navigation_tree()
        ]
        return {
            **stats.model_dump(),
            "topics": topic_stats,
            "current_path": self.current_path,
            "recommended_path": self.get_recommended_path(),
        }
