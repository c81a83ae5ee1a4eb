from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from adaptive_tutor.errors import AuthRequired, TutorClientError
from adaptive_tutor.learning.recommendation import RecommendationConsumer, preferred_mode
from adaptive_tutor.service.client import ContentServiceClient, LatestQuizResult

logger = logging.getLogger(__name__)


def progress_percentage(completed_topics: Iterable[str], total_topics: int) -> int:
    """
    Share of a subject's topics that have at least one quiz result, 0-100.

    Topic names are compared case-insensitively and counted once. The result is
    rounded half up and clamped, so extra history entries never push it past 100.
    """
    if total_topics <= 0:
        return 0
    completed = {topic.lower().strip() for topic in completed_topics if topic and topic.strip()}
    percentage = math.floor(len(completed) * 100 / total_topics + 0.5)
    return int(min(100, max(0, percentage)))


class AttemptHistory:
    """Read access to persisted quiz attempts."""

    def __init__(self, service: ContentServiceClient):
        self.service = service

    async def history(self, subject: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        return await self.service.quiz_history(subject, limit=limit)

    async def latest(self, subject: str, topic: Optional[str] = None) -> Optional[LatestQuizResult]:
        try:
            latest = await self.service.latest_quiz_result(subject, topic)
        except AuthRequired:
            raise
        except TutorClientError as exc:
            logger.warning("Failed to load latest quiz result for %s/%s: %s", subject, topic, exc)
            return None
        return latest if latest.result else None

    async def already_completed(self, subject: str, topic: str) -> bool:
        """A topic counts as completed once its latest attempt exists."""
        return await self.latest(subject, topic) is not None


class SubjectProgress:
    """
    Progress through a subject's topic list.

    Topics are looked up for the learner's preferred mode (best performing,
    else recommended, else text); any failure is reported as zero progress.
    """

    def __init__(
        self,
        service: ContentServiceClient,
        recommendations: RecommendationConsumer,
        history: Optional[AttemptHistory] = None,
    ):
        self.service = service
        self.recommendations = recommendations
        self.history = history or AttemptHistory(service)

    async def progress(self, subject: str) -> int:
        if not subject:
            return 0
        mode = preferred_mode(await self.recommendations.get_recommendation(subject))
        try:
            topic_set = await self.service.get_topics(subject, mode)
        except TutorClientError as exc:
            logger.warning("Failed to load topics for progress of %s: %s", subject, exc)
            return 0
        total = len(topic_set.topics) if topic_set is not None else 0
        if total == 0:
            return 0
        try:
            results = await self.history.history(subject)
        except TutorClientError as exc:
            logger.warning("Failed to load quiz history for progress of %s: %s", subject, exc)
            return 0
        completed = [str(entry.get("topic") or "") for entry in results if isinstance(entry, dict)]
        return progress_percentage(completed, total)
