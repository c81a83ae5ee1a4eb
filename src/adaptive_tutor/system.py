from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from adaptive_tutor.config import Settings, load_settings
from adaptive_tutor.data_models import Difficulty, LearningMode, Quiz
from adaptive_tutor.errors import AuthRequired, TutorClientError
from adaptive_tutor.learning import (
    AssessmentSession,
    AttemptHistory,
    CompletionGate,
    ContentResolver,
    EngagementTracker,
    InFlightRegistry,
    RecommendationConsumer,
    SubjectProgress,
    TopicResolver,
)
from adaptive_tutor.learning.quiz_utils import quiz_to_markdown as _quiz_to_markdown
from adaptive_tutor.service import (
    ContentServiceClient,
    CredentialProvider,
    EnvCredentialProvider,
    StaticCredentialProvider,
)
from adaptive_tutor.storage import CacheStore, create_cache_store
from adaptive_tutor.utils.logging import configure_logging

logger = logging.getLogger(__name__)


class LearningSystem:
    """
    Facade wiring the learning core together.

    One instance owns the HTTP client, the cache store and the in-flight
    registry shared by the content and topic resolvers. Front-ends (the CLI, or
    a presentation layer embedding the package) talk to this object and create
    an `AssessmentSession` per studied topic.

    Attributes
    ----------
    settings : Settings
        Validated configuration.
    service : ContentServiceClient
        Async client for the tutoring API.
    cache : CacheStore
        Local store for resolved topics and content.
    content, topics : ContentResolver, TopicResolver
        Layered resolvers for study material and topic lists.
    recommendations : RecommendationConsumer
        Read-through access to the mode recommendation.
    completion : CompletionGate
        Decides whether a subject's topic list is unlocked.
    history, progress : AttemptHistory, SubjectProgress
        Quiz history and per-subject progress.
    """

    def __init__(
        self,
        settings: Settings,
        credentials: Optional[CredentialProvider] = None,
        cache: Optional[CacheStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        configure_logging(settings.logging.level, settings.logging.json_output)

        self.cache = cache or create_cache_store(settings.cache.backend, settings.cache.path)
        self.credentials = credentials or EnvCredentialProvider(settings.api.token_env)
        self.service = ContentServiceClient(
            settings.api.base_url,
            self.credentials,
            timeout_seconds=settings.api.timeout_seconds,
            client=http_client,
        )

        self.inflight = InFlightRegistry()
        self.content = ContentResolver(self.service, self.cache, self.inflight)
        self.topics = TopicResolver(
            self.service, self.cache, self.inflight, topic_count=settings.topics.count
        )
        self.recommendations = RecommendationConsumer(self.service)
        self.completion = CompletionGate(self.service)
        self.history = AttemptHistory(self.service)
        self.progress = SubjectProgress(self.service, self.recommendations, self.history)
        logger.info("Learning system ready (api=%s, cache=%s)", settings.api.base_url, settings.cache.backend)

    @classmethod
    def from_config(
        cls,
        config_path: str | Path | None = None,
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> "LearningSystem":
        """
        Build a system from a YAML config file.

        A token given here is used as-is; otherwise it is read from the
        environment variable named by `api.token_env` on every request.
        """
        settings = load_settings(config_path)
        if settings.cache.backend == "file":
            Path(settings.cache.path).parent.mkdir(parents=True, exist_ok=True)
        credentials = StaticCredentialProvider(token) if token else None
        return cls(settings, credentials=credentials, **kwargs)

    def new_session(
        self,
        subject: str,
        topic: str,
        difficulty: Optional[Difficulty] = None,
        tracker: Optional[EngagementTracker] = None,
    ) -> AssessmentSession:
        quiz = self.settings.quiz
        return AssessmentSession(
            subject,
            topic,
            service=self.service,
            content_resolver=self.content,
            recommendations=self.recommendations,
            tracker=tracker,
            difficulty=difficulty or quiz.difficulty,
            num_questions=quiz.num_questions,
            excels_threshold=quiz.excels_threshold,
            save_attempts=quiz.save_attempts,
            retry_backoff_seconds=quiz.retry_backoff_seconds,
        )

    async def create_quiz(self, subject: str, topic: str, mode: LearningMode | str) -> Quiz:
        """
        Generate a standalone quiz grounded on the topic's study material.

        Material that cannot be resolved is skipped and the quiz is generated
        without grounding.
        """
        learning_mode = LearningMode(mode)
        quiz_settings = self.settings.quiz
        grounding = None
        try:
            unit = await self.content.resolve_content(subject, topic, learning_mode, quiz_settings.difficulty)
            grounding = unit.grounding_text() or None
        except AuthRequired:
            raise
        except TutorClientError as exc:
            logger.warning("Generating quiz for %s/%s without study material: %s", subject, topic, exc)
        return await self.service.generate_quiz(
            subject,
            topic,
            learning_mode,
            difficulty=quiz_settings.difficulty,
            num_questions=quiz_settings.num_questions,
            content=grounding,
        )

    def quiz_to_markdown(self, quiz_payload: Quiz | dict, topic: str = "Quiz") -> str:
        quiz = quiz_payload if isinstance(quiz_payload, Quiz) else Quiz.model_validate(quiz_payload)
        return _quiz_to_markdown(quiz, topic=topic)

    async def aclose(self) -> None:
        await self.service.aclose()

    async def __aenter__(self) -> "LearningSystem":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
