"""
Assessment session state machine.

A session walks one learner through a topic: pick a mode, study the material,
take a quiz, review the result, then either start over or continue in another
mode. Every awaited call records the session epoch it started under; results
that come back after the learner has moved on are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

from adaptive_tutor.data_models import (
    ActivityRecord,
    ContentUnit,
    Difficulty,
    EngagementSignals,
    LearningMode,
    ModeRecommendation,
    Quiz,
    QuizAttempt,
    QuizEvaluation,
    SavedQuizResult,
)
from adaptive_tutor.errors import InvalidTransition, TutorClientError
from adaptive_tutor.learning.content import ContentResolver
from adaptive_tutor.learning.engagement import EngagementTracker
from adaptive_tutor.learning.grading import EXCELS_THRESHOLD, grade_quiz
from adaptive_tutor.learning.recommendation import RecommendationConsumer, preferred_mode
from adaptive_tutor.service.client import ContentServiceClient

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    SELECTING = "selecting"
    LEARNING = "learning"
    QUIZZING = "quizzing"
    REVIEWING = "reviewing"


class AssessmentSession:
    """
    Drive one (subject, topic) through SELECTING → LEARNING → QUIZZING → REVIEWING.

    Parameters
    ----------
    subject, topic : str
        What is being studied.
    service : ContentServiceClient
        Used for quiz generation, activity logging and quiz persistence.
    content_resolver : ContentResolver
        Supplies the study material for the selected mode.
    recommendations : RecommendationConsumer
        Refreshed after every submitted quiz.
    tracker : EngagementTracker, optional
        Engagement signals for the current learning epoch.
    save_attempts, retry_backoff_seconds
        Bounded retry policy for saving a graded attempt. The delay doubles after
        each failed attempt.

    Notes
    -----
    The activity record is sent before the quiz is generated so engagement is
    always persisted ahead of the score. Save failures never fail the session:
    the attempt is returned and kept in `pending_saves` for a later
    `retry_pending_saves()`.
    """

    def __init__(
        self,
        subject: str,
        topic: str,
        *,
        service: ContentServiceClient,
        content_resolver: ContentResolver,
        recommendations: RecommendationConsumer,
        tracker: Optional[EngagementTracker] = None,
        difficulty: Difficulty = "medium",
        num_questions: int = 5,
        excels_threshold: float = EXCELS_THRESHOLD,
        save_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.subject = subject
        self.topic = topic
        self.service = service
        self.content_resolver = content_resolver
        self.recommendations = recommendations
        self.tracker = tracker or EngagementTracker()
        self.difficulty = difficulty
        self.num_questions = num_questions
        self.excels_threshold = excels_threshold
        self.save_attempts = max(1, save_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep
        self._clock = clock

        self.state = SessionState.SELECTING
        self.epoch = 0
        self.mode: Optional[LearningMode] = None
        self.content: Optional[ContentUnit] = None
        self.content_error: Optional[TutorClientError] = None
        self.quiz: Optional[Quiz] = None
        self.answers: Dict[int, str] = {}
        self.evaluation: Optional[QuizEvaluation] = None
        self.attempt: Optional[QuizAttempt] = None
        self.saved_result: Optional[SavedQuizResult] = None
        self.recommendation: Optional[ModeRecommendation] = None
        self.pending_saves: List[QuizAttempt] = []
        self._activity_logged = False
        self._quiz_started_at: Optional[float] = None
        self._generating = False

    # Transitions

    async def select_mode(self, mode: LearningMode | str) -> Optional[ContentUnit]:
        self._require("select a mode", SessionState.SELECTING, SessionState.REVIEWING)
        return await self._enter_learning(LearningMode(mode))

    async def start_quiz(self) -> Optional[Quiz]:
        """
        Freeze engagement, log it, and generate a quiz for the current mode.

        Returns None when the session moved on while the quiz was generated.
        Generation errors propagate and leave the session in LEARNING.
        """
        self._require("start a quiz", SessionState.LEARNING)
        if self._generating:
            raise InvalidTransition("A quiz is already being generated for this session.")
        epoch = self.epoch
        mode = self.mode
        signals = self.tracker.finalize()
        self._generating = True
        try:
            if not self._activity_logged:
                await self._log_activity(mode, signals)
                self._activity_logged = True
            grounding = self.content.grounding_text() if self.content is not None else None
            quiz = await self.service.generate_quiz(
                self.subject,
                self.topic,
                mode,
                difficulty=self.difficulty,
                num_questions=self.num_questions,
                content=grounding or None,
            )
        finally:
            self._generating = False

        if self._is_stale(epoch, SessionState.LEARNING):
            logger.info("Discarding quiz generated for a superseded session (%s/%s)", self.subject, self.topic)
            return None
        self.quiz = quiz
        self.answers = {}
        self._quiz_started_at = self._clock()
        self.state = SessionState.QUIZZING
        logger.info("Quiz ready for %s/%s in %s mode (%d questions)", self.subject, self.topic, mode, len(quiz.questions))
        return quiz

    def answer(self, question_id: int, value: str) -> None:
        self._require("answer a question", SessionState.QUIZZING)
        assert self.quiz is not None
        if all(question.id != question_id for question in self.quiz.questions):
            raise ValueError(f"Unknown question id {question_id}")
        self.answers[question_id] = value

    async def submit(self, answers: Optional[Mapping[int, str]] = None) -> QuizAttempt:
        """Grade, persist, then refresh the recommendation."""
        self._require("submit a quiz", SessionState.QUIZZING)
        assert self.quiz is not None and self.mode is not None
        if answers:
            for question_id, value in answers.items():
                self.answer(question_id, value)

        evaluation = grade_quiz(self.quiz, self.answers, self.excels_threshold)
        time_taken = None
        if self._quiz_started_at is not None:
            time_taken = int(self._clock() - self._quiz_started_at)
        attempt = QuizAttempt(
            subject=self.subject,
            topic=self.topic,
            mode=self.mode,
            difficulty=self.difficulty,
            total_questions=evaluation.total_questions,
            correct_answers=evaluation.correct_count,
            score=evaluation.score,
            responses=evaluation.responses,
            engagement=self.tracker.finalize(),
            time_taken=time_taken,
        )
        self.evaluation = evaluation
        self.attempt = attempt
        self.saved_result = None
        self.state = SessionState.REVIEWING
        epoch = self.epoch
        logger.info(
            "Graded %s/%s: %d/%d (%.1f%%)%s",
            self.subject,
            self.topic,
            evaluation.correct_count,
            evaluation.total_questions,
            evaluation.score,
            " excels" if evaluation.excels else "",
        )

        saved = await self._persist(attempt)
        recommendation = await self.recommendations.get_recommendation(self.subject)
        if self._is_stale(epoch, SessionState.REVIEWING):
            logger.info("Session moved on before the save completed; result not applied")
            return attempt
        self.saved_result = saved
        if recommendation is not None:
            self.recommendation = recommendation
        return attempt

    def retry(self) -> None:
        """Go back to mode selection, discarding the quiz and its result."""
        self._require("retry", SessionState.REVIEWING)
        self.epoch += 1
        self.state = SessionState.SELECTING
        self._clear_quiz()

    async def continue_with_mode(self, mode: Optional[LearningMode | str] = None) -> Optional[ContentUnit]:
        """Start a new learning epoch, in the recommended mode unless one is given."""
        self._require("continue", SessionState.REVIEWING)
        next_mode = LearningMode(mode) if mode is not None else preferred_mode(self.recommendation)
        return await self._enter_learning(next_mode)

    def leave(self) -> None:
        """Abandon whatever is in progress; late results are discarded."""
        if self.state is SessionState.LEARNING:
            self.tracker.finalize()
        self.epoch += 1
        self.state = SessionState.SELECTING
        self.mode = None
        self.content = None
        self.content_error = None
        self._clear_quiz()

    # Learning-state helpers

    async def reload_content(self, regenerate: bool = False) -> Optional[ContentUnit]:
        self._require("reload content", SessionState.LEARNING)
        assert self.mode is not None
        return await self._load_content(self.mode, regenerate=regenerate)

    def record_audio_play(self) -> None:
        self._require("record audio playback", SessionState.LEARNING)
        self.tracker.record_play()

    @property
    def engagement(self) -> EngagementSignals:
        return self.tracker.snapshot()

    async def retry_pending_saves(self) -> int:
        """Try again to persist attempts whose save failed; returns how many succeeded."""
        remaining: List[QuizAttempt] = []
        saved = 0
        for attempt in self.pending_saves:
            try:
                await self.service.save_quiz(attempt)
            except TutorClientError as exc:
                logger.warning("Pending quiz save for %s/%s still failing: %s", attempt.subject, attempt.topic, exc)
                remaining.append(attempt)
            else:
                saved += 1
        self.pending_saves = remaining
        return saved

    # Internals

    def _require(self, action: str, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(state.value for state in states)
            raise InvalidTransition(f"Cannot {action} while {self.state.value}; expected {allowed}.")

    def _is_stale(self, epoch: int, state: SessionState) -> bool:
        return epoch != self.epoch or self.state is not state

    def _clear_quiz(self) -> None:
        self.quiz = None
        self.answers = {}
        self.evaluation = None
        self.attempt = None
        self.saved_result = None
        self._quiz_started_at = None

    async def _enter_learning(self, mode: LearningMode) -> Optional[ContentUnit]:
        self.epoch += 1
        self.state = SessionState.LEARNING
        self.mode = mode
        self.content = None
        self.content_error = None
        self._activity_logged = False
        self._clear_quiz()
        self.tracker.reset(mode)
        logger.info("Learning %s/%s in %s mode", self.subject, self.topic, mode)
        return await self._load_content(mode)

    async def _load_content(self, mode: LearningMode, regenerate: bool = False) -> Optional[ContentUnit]:
        epoch = self.epoch
        resolver = self.content_resolver
        load = resolver.regenerate_content if regenerate else resolver.resolve_content
        try:
            content = await load(self.subject, self.topic, mode, self.difficulty)
        except TutorClientError as exc:
            if self._is_stale(epoch, SessionState.LEARNING):
                return None
            logger.warning("Failed to load %s content for %s/%s: %s", mode, self.subject, self.topic, exc)
            self.content = None
            self.content_error = exc
            return None
        if self._is_stale(epoch, SessionState.LEARNING):
            logger.info("Discarding content for a superseded session (%s/%s)", self.subject, self.topic)
            return None
        self.content = content
        self.content_error = None
        if mode is LearningMode.TEXT:
            self.tracker.start_reading()
        return content

    async def _log_activity(self, mode: Optional[LearningMode], signals: EngagementSignals) -> None:
        if mode is None:
            return
        record = ActivityRecord(
            subject=self.subject,
            activity_type=mode,
            reading_time=signals.reading_time_seconds,
            playback_time=signals.audio_play_count,
        )
        try:
            await self.service.log_activity(record)
        except TutorClientError as exc:
            logger.warning("Failed to log activity for %s (continuing): %s", self.subject, exc)

    async def _persist(self, attempt: QuizAttempt) -> Optional[SavedQuizResult]:
        delay = self.retry_backoff_seconds
        last_error: Optional[TutorClientError] = None
        for number in range(1, self.save_attempts + 1):
            try:
                result = await self.service.save_quiz(attempt)
            except TutorClientError as exc:
                if not exc.retryable or number == self.save_attempts:
                    last_error = exc
                    break
                logger.warning(
                    "Quiz save attempt %d/%d failed, retrying in %.1fs: %s",
                    number,
                    self.save_attempts,
                    delay,
                    exc,
                )
                await self._sleep(delay)
                delay *= 2
            else:
                logger.info("Saved quiz attempt for %s/%s (id=%s)", attempt.subject, attempt.topic, result.id)
                return result
        logger.error(
            "Quiz result for %s/%s could not be saved (data-loss risk): %s",
            attempt.subject,
            attempt.topic,
            last_error,
        )
        self.pending_saves.append(attempt)
        return None
