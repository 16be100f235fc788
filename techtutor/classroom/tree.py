"""
CourseTree - Topic -> Subtopic -> Chapter hierarchy and path resolution.

Provides:
- Chapter lookup by ChapterPath with bounds checking
- First/last detection and next/previous path stepping
- Whole-topic append and removal
- Title search across all three levels
"""

import logging
from typing import Iterable, Iterator, Optional

from techtutor.errors import OutOfRangeError
from techtutor.schemas import Chapter, ChapterPath, SearchResult, Subtopic, Topic


logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 3


class CourseTree:
    """
    Ordered list of topics for one course.

    Read-only apart from append_topic/remove_topic. Topics are validated
    Pydantic models, so every topic has a subtopic and every subtopic has a
    chapter, which keeps first/last and stepping well defined.
    """

    def __init__(self, topics: Optional[Iterable[Topic]] = None):
        self._topics: list[Topic] = list(topics or [])

    @property
    def topics(self) -> list[Topic]:
        """Copy of the topic list."""
        return list(self._topics)

    def __len__(self) -> int:
        return len(self._topics)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_topic(self, topic_index: int) -> Topic:
        if not 0 <= topic_index < len(self._topics):
            raise OutOfRangeError(
                f"Topic index {topic_index} out of range (0-{len(self._topics) - 1})"
            )
        return self._topics[topic_index]

    def get_subtopic(self, topic_index: int, subtopic_index: int) -> Subtopic:
        topic = self.get_topic(topic_index)
        if not 0 <= subtopic_index < len(topic.subtopics):
            raise OutOfRangeError(
                f"Subtopic index {subtopic_index} out of range for topic {topic_index}"
            )
        return topic.subtopics[subtopic_index]

    def resolve_chapter(self, path: ChapterPath) -> Chapter:
        """
        Get the chapter at a path.

        Raises:
            OutOfRangeError: If any index exceeds its container
        """
        try:
            subtopic = self.get_subtopic(path.topic_index, path.subtopic_index)
        except OutOfRangeError as e:
            raise OutOfRangeError(str(e), path=path) from e
        if path.chapter_index >= len(subtopic.chapters):
            raise OutOfRangeError(
                f"Chapter index {path.chapter_index} out of range for {path}",
                path=path,
            )
        return subtopic.chapters[path.chapter_index]

    def is_valid(self, path: ChapterPath) -> bool:
        try:
            self.resolve_chapter(path)
        except OutOfRangeError:
            return False
        return True

    def breadcrumb(self, path: ChapterPath) -> tuple[str, str, str]:
        """Get (topic, subtopic, chapter) titles for a path."""
        chapter = self.resolve_chapter(path)
        topic = self._topics[path.topic_index]
        subtopic = topic.subtopics[path.subtopic_index]
        return topic.title, subtopic.title, chapter.title

    def iter_paths(self) -> Iterator[ChapterPath]:
        """Yield every chapter path in course order."""
        for t, topic in enumerate(self._topics):
            for s, subtopic in enumerate(topic.subtopics):
                for c in range(len(subtopic.chapters)):
                    yield ChapterPath(topic_index=t, subtopic_index=s, chapter_index=c)

    def chapter_count(self, topic_index: Optional[int] = None) -> int:
        """Number of chapters in the whole course or in one topic."""
        topics = self._topics if topic_index is None else [self.get_topic(topic_index)]
        return sum(len(sub.chapters) for topic in topics for sub in topic.subtopics)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def first_path(self) -> Optional[ChapterPath]:
        if not self._topics:
            return None
        return ChapterPath(topic_index=0, subtopic_index=0, chapter_index=0)

    def last_path(self) -> Optional[ChapterPath]:
        if not self._topics:
            return None
        t = len(self._topics) - 1
        s = len(self._topics[t].subtopics) - 1
        c = len(self._topics[t].subtopics[s].chapters) - 1
        return ChapterPath(topic_index=t, subtopic_index=s, chapter_index=c)

    def is_first(self, path: ChapterPath) -> bool:
        self.resolve_chapter(path)
        return path == self.first_path()

    def is_last(self, path: ChapterPath) -> bool:
        self.resolve_chapter(path)
        return path == self.last_path()

    def next_path(self, path: ChapterPath) -> Optional[ChapterPath]:
        """
        Step forward one chapter, carrying into the next subtopic/topic.

        Returns None if path is the last chapter.
        """
        self.resolve_chapter(path)
        t, s, c = path.as_tuple()
        topic = self._topics[t]

        if c + 1 < len(topic.subtopics[s].chapters):
            return ChapterPath(topic_index=t, subtopic_index=s, chapter_index=c + 1)
        if s + 1 < len(topic.subtopics):
            return ChapterPath(topic_index=t, subtopic_index=s + 1, chapter_index=0)
        if t + 1 < len(self._topics):
            return ChapterPath(topic_index=t + 1, subtopic_index=0, chapter_index=0)
        return None

    def prev_path(self, path: ChapterPath) -> Optional[ChapterPath]:
        """
        Step back one chapter, borrowing the last chapter of the previous
        subtopic/topic.

        Returns None if path is the first chapter.
        """
        self.resolve_chapter(path)
        t, s, c = path.as_tuple()

        if c > 0:
            return ChapterPath(topic_index=t, subtopic_index=s, chapter_index=c - 1)
        if s > 0:
            last_chapter = len(self._topics[t].subtopics[s - 1].chapters) - 1
            return ChapterPath(topic_index=t, subtopic_index=s - 1, chapter_index=last_chapter)
        if t > 0:
            prev_topic = self._topics[t - 1]
            last_sub = len(prev_topic.subtopics) - 1
            last_chapter = len(prev_topic.subtopics[last_sub].chapters) - 1
            return ChapterPath(topic_index=t - 1, subtopic_index=last_sub, chapter_index=last_chapter)
        return None

    # -------------------------------------------------------------------------
    # Structural mutation
    # -------------------------------------------------------------------------

    def append_topic(self, topic: Topic) -> int:
        """Append a topic and return its index."""
        self._topics.append(topic)
        logger.info(f"Topic added: {topic.title} ({len(topic.subtopics)} subtopics)")
        return len(self._topics) - 1

    def remove_topic(self, topic_index: int) -> Topic:
        """Remove a topic; later topics shift down by one index."""
        topic = self.get_topic(topic_index)
        del self._topics[topic_index]
        logger.info(f"Topic removed: {topic.title}")
        return topic

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def search(self, query: str) -> list[SearchResult]:
        """
        Find chapters whose chapter, subtopic or topic title contains query.

        Queries shorter than three characters return nothing.
        """
        query = query.strip().lower()
        if len(query) < MIN_SEARCH_LENGTH:
            return []

        results = []
        for path in self.iter_paths():
            topic_title, subtopic_title, chapter_title = self.breadcrumb(path)
            if any(query in title.lower() for title in (chapter_title, subtopic_title, topic_title)):
                results.append(SearchResult(
                    path=path,
                    topic_title=topic_title,
                    subtopic_title=subtopic_title,
                    chapter_title=chapter_title,
                ))
        return results
