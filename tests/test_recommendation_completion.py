"""Tests for the recommendation consumer and the completion gate."""

from __future__ import annotations

import pytest

from adaptive_tutor.data_models import (
    EngagementSignals,
    LearningMode,
    ModeRecommendation,
    ModeStats,
    QuizAttempt,
)
from adaptive_tutor.errors import AuthRequired, NotFound, TransientNetwork, ValidationFailure
from adaptive_tutor.learning.completion import (
    CompletionGate,
    completion_from_attempts,
    completion_from_payload,
    completion_from_stats,
)
from adaptive_tutor.learning.recommendation import RecommendationConsumer, preferred_mode


def _attempt(mode: LearningMode, score: float, subject: str = "math") -> QuizAttempt:
    return QuizAttempt(
        subject=subject,
        topic="algebra",
        mode=mode,
        total_questions=5,
        correct_answers=int(score / 20),
        score=score,
        responses=[],
        engagement=EngagementSignals(),
    )


# Recommendation


async def test_recommendation_is_not_cached(service):
    consumer = RecommendationConsumer(service)
    service.recommendation = ModeRecommendation(recommended_mode=LearningMode.VISUAL)
    first = await consumer.get_recommendation("math")
    service.recommendation = ModeRecommendation(recommended_mode=LearningMode.AUDIO)
    second = await consumer.get_recommendation("math")

    assert first.recommended_mode is LearningMode.VISUAL
    assert second.recommended_mode is LearningMode.AUDIO
    assert service.names().count("recommend_mode") == 2


@pytest.mark.parametrize("error", [TransientNetwork("down"), AuthRequired("no token"), ValidationFailure("bad")])
async def test_recommendation_failure_returns_none(service, error):
    service.recommend_error = error

    assert await RecommendationConsumer(service).get_recommendation("math") is None


def test_preferred_mode_order():
    assert preferred_mode(None) is LearningMode.TEXT
    assert preferred_mode(ModeRecommendation(recommended_mode=LearningMode.AUDIO)) is LearningMode.AUDIO
    assert (
        preferred_mode(
            ModeRecommendation(
                recommended_mode=LearningMode.AUDIO, best_performing_mode=LearningMode.VISUAL
            )
        )
        is LearningMode.VISUAL
    )


async def test_preferred_mode_for_falls_back_to_text(service):
    service.recommend_error = TransientNetwork("down")

    assert await RecommendationConsumer(service).preferred_mode_for("math") is LearningMode.TEXT


# Completion


def test_visual_and_text_without_audio_is_incomplete():
    status = completion_from_attempts(
        [_attempt(LearningMode.VISUAL, 80), _attempt(LearningMode.TEXT, 60)]
    )

    assert status.completed is False
    assert status.completed_modes == [LearningMode.VISUAL, LearningMode.TEXT]
    assert status.missing_modes == [LearningMode.AUDIO]
    assert status.all_scores_zero is False


def test_all_modes_assessed_is_complete_even_with_zero_scores():
    status = completion_from_attempts(
        [_attempt(mode, 0) for mode in (LearningMode.TEXT, LearningMode.AUDIO, LearningMode.VISUAL)]
    )

    assert status.completed is True
    assert status.all_scores_zero is True
    assert status.missing_modes == []


def test_all_scores_zero_requires_completion():
    status = completion_from_attempts([_attempt(LearningMode.TEXT, 0)])

    assert status.completed is False
    assert status.all_scores_zero is False


def test_attempts_for_other_subjects_are_ignored():
    attempts = [_attempt(mode, 50, subject="physics") for mode in LearningMode]
    attempts.append(_attempt(LearningMode.TEXT, 50))

    assert completion_from_attempts(attempts, subject="Math").completed is False
    assert completion_from_attempts(attempts, subject="physics").completed is True


def test_completion_from_stats_counts_sessions():
    status = completion_from_stats(
        {
            LearningMode.VISUAL: ModeStats(total_sessions=2, total_score=150),
            LearningMode.AUDIO: ModeStats(total_sessions=0),
            LearningMode.TEXT: ModeStats(total_sessions=1, total_score=90),
        }
    )

    assert status.completed is False
    assert status.mode_scores == {LearningMode.VISUAL: 75.0, LearningMode.TEXT: 90.0}


def test_payload_completion_is_recomputed_from_types():
    """A server flag that disagrees with the listed modes is not trusted."""
    status = completion_from_payload(
        {"completed": True, "completedTypes": ["visual", "text"], "typeScores": {"visual": 70, "text": 90}}
    )

    assert status.completed is False
    assert status.completed_modes == [LearningMode.VISUAL, LearningMode.TEXT]
    assert status.mode_scores[LearningMode.TEXT] == 90.0


async def test_check_completion_reads_service(service):
    service.learning_types = {
        "completed": True,
        "allScoresZero": False,
        "completedTypes": ["text", "audio", "visual"],
    }

    status = await CompletionGate(service).check_completion("math")

    assert status.completed is True
    assert status.completed_modes == [LearningMode.VISUAL, LearningMode.AUDIO, LearningMode.TEXT]


@pytest.mark.parametrize(
    "error",
    [NotFound("none", status_code=404), AuthRequired("no token"), TransientNetwork("down")],
)
async def test_check_completion_fails_closed(service, error):
    service.learning_types_error = error

    status = await CompletionGate(service).check_completion("math")

    assert status.completed is False


async def test_check_completion_fails_closed_on_malformed_payload(service):
    service.learning_types = {"completedTypes": 42}

    status = await CompletionGate(service).check_completion("math")

    assert status.completed is False


async def test_gate_routes_to_assessment_with_missing_modes(service):
    service.learning_types = {"completed": False, "completedTypes": ["visual"]}

    decision = await CompletionGate(service).gate_topic_list("math")

    assert decision.allowed is False
    assert decision.route == "assessment"
    assert decision.missing_modes == [LearningMode.AUDIO, LearningMode.TEXT]


async def test_gate_allows_topic_list_when_complete(service):
    service.learning_types = {"completed": True, "completedTypes": ["visual", "audio", "text"]}

    decision = await CompletionGate(service).gate_topic_list("math")

    assert decision.allowed is True
    assert decision.route == "topics"
