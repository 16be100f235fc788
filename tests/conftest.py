"""
Shared fixtures for TechTutor tests.

ScriptedChannel stands in for the generation backend: each action has a
default responder, tests can queue one-off results or errors, and defer()
holds calls open until the test releases them.
"""

import asyncio
import base64
from collections import defaultdict
from typing import Any

import pytest

from techtutor.classroom import CourseStore, CourseTree, NavigationController, ProgressLedger
from techtutor.errors import GenerationError
from techtutor.schemas import Chapter, ChapterPath, Subtopic, Topic
from techtutor.services import GeminiService
from techtutor.session import (
    ContentPipeline,
    QuizEngine,
    ResearchAssistant,
    SessionContext,
    Translator,
    TutorChat,
)


SAMPLE_QUIZ = [
    {
        "question": "What does CPU stand for?",
        "options": ["Core Power Unit", "Central Processing Unit", "Central Program Utility", "Control Path Unit"],
        "correctAnswerIndex": 1,
        "explanation": "CPU is short for Central Processing Unit.",
    },
    {
        "question": "Which memory is volatile?",
        "options": ["SSD", "RAM", "ROM", "HDD"],
        "correctAnswerIndex": 1,
        "explanation": "RAM loses its contents without power.",
    },
    {
        "question": "Which unit does arithmetic?",
        "options": ["MMU", "Cache", "ALU", "Bus"],
        "correctAnswerIndex": 2,
        "explanation": "The ALU performs arithmetic and logic.",
    },
]

SAMPLE_STRUCTURE = [
    {"title": "Foundations", "chapters": [{"title": "What is Networking?"}, {"title": "The OSI Model"}]},
    {"title": "Protocols", "chapters": [{"title": "TCP and UDP"}]},
]

SAMPLE_IMAGE = base64.b64encode(b"\x89PNG fake image").decode("ascii")

SAMPLE_RESEARCH = {
    "text": "WebAssembly now supports garbage collection.",
    "citations": [
        {"web": {"uri": "https://webassembly.org/news", "title": "WebAssembly News"}},
        {"web": {"uri": "https://example.org/wasm-gc"}},
        {},
    ],
}


def _default_responders() -> dict[str, Any]:
    return {
        "generateChapterContent": lambda p: {"text": f"Content for {p['title']}"},
        "generateQuiz": lambda p: SAMPLE_QUIZ,
        "generateTopicStructure": lambda p: SAMPLE_STRUCTURE,
        "translateContent": lambda p: {"text": f"[{p['language']}] {p['text']}"},
        "generateVisualConcept": lambda p: {"imageData": SAMPLE_IMAGE, "mimeType": "image/png"},
        "sendMessage": lambda p: {"text": f"Reply to {p['message']}"},
        "groundedSearch": lambda p: SAMPLE_RESEARCH,
    }


class ScriptedChannel:
    """In-memory GenerationChannel with scripted and deferrable responses."""

    def __init__(self):
        self.responders = _default_responders()
        self.queued: dict[str, list[Any]] = defaultdict(list)
        self.pending: dict[str, list[asyncio.Future]] = defaultdict(list)
        self.calls: list[tuple[str, dict]] = []
        self._deferred: dict[str, int] = defaultdict(int)

    def respond(self, action: str, result: Any):
        """Queue a one-off result (value, callable or exception) for action."""
        self.queued[action].append(result)

    def defer(self, action: str, count: int = 1):
        """Hold the next count calls for action until released."""
        self._deferred[action] += count

    def release(self, action: str, result: Any, index: int = 0):
        """Resolve a held call for action, the oldest by default (-1 for newest)."""
        self.pending[action].pop(index).set_result(result)

    def release_all(self, action: str, result: Any):
        while self.pending[action]:
            self.release(action, result)

    def calls_for(self, action: str) -> list[dict]:
        return [payload for name, payload in self.calls if name == action]

    async def call(self, action: str, payload: dict[str, Any]) -> Any:
        self.calls.append((action, payload))

        if self._deferred[action] > 0:
            self._deferred[action] -= 1
            future = asyncio.get_running_loop().create_future()
            self.pending[action].append(future)
            result = await future
        elif self.queued[action]:
            result = self.queued[action].pop(0)
        else:
            result = self.responders[action]

        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(payload)
        return result


async def settle():
    """Let scheduled tasks run up to their next blocking await."""
    for _ in range(20):
        await asyncio.sleep(0)


def path(t: int, s: int, c: int) -> ChapterPath:
    return ChapterPath(topic_index=t, subtopic_index=s, chapter_index=c)


def failure(message: str = "Backend unavailable") -> GenerationError:
    return GenerationError(message, status_code=500)


@pytest.fixture
def sample_topics() -> list[Topic]:
    """Two topics: 0 has subtopics of 2 and 1 chapters, 1 has one of 2."""
    return [
        Topic(title="Computer Hardware", subtopics=[
            Subtopic(title="Processors", chapters=[
                Chapter(title="What is a CPU?"),
                Chapter(title="Instruction Pipelines"),
            ]),
            Subtopic(title="Memory", chapters=[
                Chapter(title="RAM and Caches"),
            ]),
        ]),
        Topic(title="Cloud Computing", subtopics=[
            Subtopic(title="Basics", chapters=[
                Chapter(title="What is the Cloud?"),
                Chapter(title="Service Models"),
            ]),
        ]),
    ]


@pytest.fixture
def channel() -> ScriptedChannel:
    return ScriptedChannel()


@pytest.fixture
def service(channel) -> GeminiService:
    return GeminiService(channel)


@pytest.fixture
def context() -> SessionContext:
    return SessionContext()


@pytest.fixture
def translator(service, context) -> Translator:
    return Translator(service, context)


@pytest.fixture
def pipeline(service, context, translator) -> ContentPipeline:
    return ContentPipeline(service, context, translator)


@pytest.fixture
def quiz_engine(service, context, translator) -> QuizEngine:
    return QuizEngine(service, context, translator)


@pytest.fixture
def tutor_chat(service, context) -> TutorChat:
    return TutorChat(service, context)


@pytest.fixture
def research(service, context) -> ResearchAssistant:
    return ResearchAssistant(service, context)


@pytest.fixture
def tree(sample_topics) -> CourseTree:
    return CourseTree(sample_topics)


@pytest.fixture
def store(tmp_path) -> CourseStore:
    return CourseStore(tmp_path / "techtutor.db")


@pytest.fixture
def ledger(tree, store) -> ProgressLedger:
    return ProgressLedger(tree, store)


@pytest.fixture
def controller(tree, ledger, pipeline, quiz_engine, context, service, store) -> NavigationController:
    return NavigationController(
        tree=tree,
        ledger=ledger,
        pipeline=pipeline,
        quiz=quiz_engine,
        context=context,
        service=service,
        store=store,
    )
