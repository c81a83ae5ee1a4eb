"""Shared fixtures: an in-memory stand-in for the tutoring service and a cache."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from adaptive_tutor.data_models import (
    ActivityRecord,
    ContentUnit,
    LearningMode,
    ModeRecommendation,
    Quiz,
    QuizAttempt,
    QuizQuestion,
    SavedQuizResult,
    Topic,
    TopicSet,
)
from adaptive_tutor.service.client import LatestQuizResult, TopicSaveResult
from adaptive_tutor.storage import InMemoryCacheStore


def make_topics(subject: str, mode: LearningMode, count: int = 3, prefix: str = "Topic") -> List[Topic]:
    return [
        Topic(id=f"{subject}-{mode.value}-{idx}", title=f"{prefix} {idx}", learning_type=mode)
        for idx in range(1, count + 1)
    ]


def make_quiz(mode: Optional[LearningMode] = LearningMode.TEXT) -> Quiz:
    return Quiz(
        questions=[
            QuizQuestion(id=1, question="2 + 2?", options=["3", "4", "5"], correct_answer="4"),
            QuizQuestion(id=2, question="Capital of France?", options=["Paris", "Rome"], correct_answer="Paris"),
            QuizQuestion(id=3, question="Water is wet.", type="true_false", options=["True", "False"], correct_answer="True"),
            QuizQuestion(id=4, question="Square root of 9?", type="short_answer", correct_answer="3"),
            QuizQuestion(id=5, question="5 * 5?", options=["10", "25"], correct_answer="25"),
        ],
        total_points=5,
        learning_mode=mode,
    )


class FakeService:
    """
    Records every call and answers from configurable attributes.

    Attributes ending in `_error` are raised instead of answering when set;
    `save_quiz_errors` is consumed one entry per call.
    """

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.remote_topics: Optional[TopicSet] = None
        self.get_topics_error: Optional[Exception] = None
        self.generate_topics_error: Optional[Exception] = None
        self.save_topics_result = TopicSaveResult()
        self.save_topics_error: Optional[Exception] = None
        self.delete_topics_error: Optional[Exception] = None
        self.content_error: Optional[Exception] = None
        self.content_gate: Optional[asyncio.Event] = None
        self.content_count = 0
        self.quiz = make_quiz()
        self.quiz_error: Optional[Exception] = None
        self.quiz_gate: Optional[asyncio.Event] = None
        self.save_quiz_errors: List[Exception] = []
        self.recommendation: Optional[ModeRecommendation] = None
        self.recommend_error: Optional[Exception] = None
        self.learning_types: Dict[str, Any] = {"completed": False, "completedTypes": []}
        self.learning_types_error: Optional[Exception] = None
        self.activity_error: Optional[Exception] = None
        self.history_results: List[Dict[str, Any]] = []
        self.latest = LatestQuizResult(result=None)

    def names(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def get_topics(self, subject, mode=None):
        self.calls.append(("get_topics", subject, mode))
        if self.get_topics_error is not None:
            raise self.get_topics_error
        return self.remote_topics

    async def save_topics(self, subject, topics, mode):
        self.calls.append(("save_topics", subject, list(topics), mode))
        if self.save_topics_error is not None:
            raise self.save_topics_error
        return self.save_topics_result

    async def delete_topics(self, subject):
        self.calls.append(("delete_topics", subject))
        if self.delete_topics_error is not None:
            raise self.delete_topics_error
        self.remote_topics = None

    async def generate_topics(self, subject, mode, count=10):
        self.calls.append(("generate_topics", subject, mode, count))
        if self.generate_topics_error is not None:
            raise self.generate_topics_error
        return make_topics(subject, mode, count, prefix="Generated")

    async def generate_content(self, subject, topic, mode, difficulty="medium"):
        self.calls.append(("generate_content", subject, topic, mode, difficulty))
        if self.content_gate is not None:
            await self.content_gate.wait()
        if self.content_error is not None:
            raise self.content_error
        self.content_count += 1
        return ContentUnit(
            title=f"{topic} #{self.content_count}",
            learning_mode=mode,
            summary=f"Summary of {topic}",
        )

    async def generate_quiz(self, subject, topic, mode, difficulty="medium", num_questions=5, content=None):
        self.calls.append(("generate_quiz", subject, topic, mode, difficulty, num_questions, content))
        if self.quiz_gate is not None:
            await self.quiz_gate.wait()
        if self.quiz_error is not None:
            raise self.quiz_error
        return self.quiz

    async def save_quiz(self, attempt: QuizAttempt):
        self.calls.append(("save_quiz", attempt))
        if self.save_quiz_errors:
            raise self.save_quiz_errors.pop(0)
        return SavedQuizResult(id="saved-1", subject=attempt.subject, score=attempt.score)

    async def latest_quiz_result(self, subject, topic=None):
        self.calls.append(("latest_quiz_result", subject, topic))
        return self.latest

    async def quiz_history(self, subject=None, limit=20):
        self.calls.append(("quiz_history", subject, limit))
        return list(self.history_results)

    async def recommend_mode(self, subject=None):
        self.calls.append(("recommend_mode", subject))
        if self.recommend_error is not None:
            raise self.recommend_error
        if self.recommendation is None:
            return ModeRecommendation(recommended_mode=LearningMode.TEXT)
        return self.recommendation

    async def check_learning_types(self, subject):
        self.calls.append(("check_learning_types", subject))
        if self.learning_types_error is not None:
            raise self.learning_types_error
        return self.learning_types

    async def log_activity(self, record: ActivityRecord):
        self.calls.append(("log_activity", record))
        if self.activity_error is not None:
            raise self.activity_error
        return {"ok": True}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def service():
    """Fresh fake tutoring service."""
    return FakeService()


@pytest.fixture
def cache():
    """Empty in-memory cache."""
    return InMemoryCacheStore()


@pytest.fixture
def clock():
    return FakeClock()
