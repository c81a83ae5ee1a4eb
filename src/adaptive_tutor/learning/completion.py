from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from adaptive_tutor.data_models import (
    ALL_MODES,
    CompletionStatus,
    LearningMode,
    ModeStats,
    QuizAttempt,
)
from adaptive_tutor.errors import NotFound, TutorClientError
from adaptive_tutor.service.client import ContentServiceClient

logger = logging.getLogger(__name__)

NOT_COMPLETED = CompletionStatus(completed=False)


def _build_status(
    completed_modes: Iterable[LearningMode],
    mode_scores: Mapping[LearningMode, float],
    every_score_zero: bool,
) -> CompletionStatus:
    modes = set(completed_modes)
    ordered = [mode for mode in ALL_MODES if mode in modes]
    completed = len(ordered) == len(ALL_MODES)
    return CompletionStatus(
        completed=completed,
        all_scores_zero=completed and every_score_zero,
        completed_modes=ordered,
        mode_scores=dict(mode_scores),
    )


def completion_from_stats(mode_stats: Mapping[LearningMode, ModeStats]) -> CompletionStatus:
    """Derive completion from per-mode statistics: a mode counts once it has a session."""
    assessed = {mode: stats for mode, stats in mode_stats.items() if stats.total_sessions > 0}
    scores = {mode: stats.total_score / stats.total_sessions for mode, stats in assessed.items()}
    return _build_status(
        assessed, scores, every_score_zero=all(s.total_score == 0 for s in assessed.values())
    )


def completion_from_attempts(
    attempts: Iterable[QuizAttempt], subject: Optional[str] = None
) -> CompletionStatus:
    """Derive completion from an attempt history, optionally restricted to one subject."""
    wanted = subject.lower().strip() if subject is not None else None
    by_mode: Dict[LearningMode, List[float]] = {}
    for attempt in attempts:
        if wanted is not None and attempt.subject.lower().strip() != wanted:
            continue
        by_mode.setdefault(attempt.mode, []).append(attempt.score)
    scores = {mode: sum(values) / len(values) for mode, values in by_mode.items()}
    every_zero = all(score == 0 for values in by_mode.values() for score in values)
    return _build_status(by_mode, scores, every_score_zero=every_zero)


def completion_from_payload(payload: Mapping[str, Any]) -> CompletionStatus:
    """
    Interpret a learning-type check response.

    The completed flag is recomputed from `completedTypes` when present, so the
    result always satisfies the every-mode rule; the server flag is only used
    when the list is missing.
    """
    raw_types = payload.get("completedTypes")
    raw_scores = payload.get("typeScores") or {}
    scores: Dict[LearningMode, float] = {}
    for name, value in raw_scores.items():
        try:
            scores[LearningMode(name)] = float(value)
        except (TypeError, ValueError):
            logger.debug("Ignoring score for unknown learning type %r", name)
    every_zero = bool(payload.get("allScoresZero", False))

    if raw_types is None:
        completed = bool(payload.get("completed", False))
        return CompletionStatus(
            completed=completed,
            all_scores_zero=completed and every_zero,
            completed_modes=list(ALL_MODES) if completed else [],
            mode_scores=scores,
        )

    modes = []
    for name in raw_types:
        try:
            modes.append(LearningMode(name))
        except ValueError:
            logger.debug("Ignoring unknown learning type %r", name)
    return _build_status(modes, scores, every_score_zero=every_zero)


@dataclass(frozen=True)
class GateDecision:
    """Where the learner may go next for a subject."""

    allowed: bool
    status: CompletionStatus
    missing_modes: List[LearningMode] = field(default_factory=list)

    @property
    def route(self) -> str:
        return "topics" if self.allowed else "assessment"


class CompletionGate:
    """Gate access to a subject's topic list on having been assessed in every mode."""

    def __init__(self, service: ContentServiceClient):
        self.service = service

    async def check_completion(self, subject: str) -> CompletionStatus:
        """Ask the service for the learner's completion state; any failure counts as incomplete."""
        try:
            payload = await self.service.check_learning_types(subject)
        except NotFound:
            return NOT_COMPLETED
        except TutorClientError as exc:
            logger.warning("Learning-type check failed for %s, treating as incomplete: %s", subject, exc)
            return NOT_COMPLETED
        try:
            status = completion_from_payload(payload)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Malformed learning-type check for %s, treating as incomplete: %s", subject, exc)
            return NOT_COMPLETED
        logger.info(
            "Learning types for %s: completed=%s modes=%s",
            subject,
            status.completed,
            [mode.value for mode in status.completed_modes],
        )
        return status

    async def gate_topic_list(self, subject: str) -> GateDecision:
        status = await self.check_completion(subject)
        return GateDecision(allowed=status.completed, status=status, missing_modes=status.missing_modes)
