"""
TechTutor Classroom - Runtime components for the course and its navigation.

This module provides:
- CourseTree: topic/subtopic/chapter structure and path stepping
- CourseStore: SQLite persistence for topics and progress
- ProgressLedger: completed-chapter tracking
- NavigationController: navigation and course-level actions
"""

from .tree import (
    CourseTree,
    MIN_SEARCH_LENGTH,
)

from .storage import (
    CourseStore,
)

from .progress import (
    ProgressLedger,
)

from .navigator import (
    NavigationController,
    NavigationChapter,
    NavigationSubtopic,
    NavigationTopic,
)

__all__ = [
    # Tree
    "CourseTree",
    "MIN_SEARCH_LENGTH",
    # Storage
    "CourseStore",
    # Progress
    "ProgressLedger",
    # Navigator
    "NavigationController",
    "NavigationChapter",
    "NavigationSubtopic",
    "NavigationTopic",
]
