from __future__ import annotations

import logging
from typing import Optional

from adaptive_tutor.data_models import DEFAULT_MODE, LearningMode, ModeRecommendation
from adaptive_tutor.errors import TutorClientError
from adaptive_tutor.service.client import ContentServiceClient

logger = logging.getLogger(__name__)


def preferred_mode(recommendation: Optional[ModeRecommendation]) -> LearningMode:
    """Mode the learner excels in, else the recommended one, else text."""
    if recommendation is None:
        return DEFAULT_MODE
    return recommendation.best_performing_mode or recommendation.recommended_mode or DEFAULT_MODE


class RecommendationConsumer:
    """
    Read-through access to the service's learning-mode recommendation.

    Nothing is cached: every call reflects the latest attempt history. Failures
    are logged and reported as None so dependent flows can fall back to the
    default mode.
    """

    def __init__(self, service: ContentServiceClient):
        self.service = service

    async def get_recommendation(self, subject: Optional[str]) -> Optional[ModeRecommendation]:
        try:
            recommendation = await self.service.recommend_mode(subject)
        except TutorClientError as exc:
            logger.warning("Failed to get mode recommendation for %s: %s", subject, exc)
            return None
        logger.info(
            "Recommendation for %s: recommended=%s best=%s confidence=%.2f",
            subject,
            recommendation.recommended_mode.value,
            recommendation.best_performing_mode.value if recommendation.best_performing_mode else "-",
            recommendation.confidence,
        )
        return recommendation

    async def preferred_mode_for(self, subject: Optional[str]) -> LearningMode:
        return preferred_mode(await self.get_recommendation(subject))
