from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from adaptive_tutor.data_models import LearningMode, Topic, TopicSet
from adaptive_tutor.errors import (
    AuthRequired,
    Conflict,
    TransientNetwork,
    TutorClientError,
    ValidationFailure,
)
from adaptive_tutor.learning.inflight import InFlightRegistry
from adaptive_tutor.learning.strategies import (
    CACHE_LOOKUP,
    REMOTE_GENERATE,
    REMOTE_SHARED,
    Strategy,
    first_success,
)
from adaptive_tutor.service.client import ContentServiceClient
from adaptive_tutor.storage.cache_store import CacheStore, cache_key

logger = logging.getLogger(__name__)

DEFAULT_TOPIC_COUNT = 10


class TopicResolver:
    """
    Resolve the topic list for a subject in a given learning mode.

    Chain
    -----
    1. Remote lookup, which returns the learner's own topics or, failing that,
       topics another learner generated for the same subject and mode (shared).
    2. The local cache entry for the subject, regardless of its mode tag, so a
       learner who is offline still sees a list.
    3. Generation of a fresh list, which is then saved remotely. If the service
       answers that a list already exists (another device or session won the
       race) the server's list is used instead of the local one.

    Whatever list is finally used is written to the cache.
    """

    def __init__(
        self,
        service: ContentServiceClient,
        cache: CacheStore,
        inflight: Optional[InFlightRegistry] = None,
        topic_count: int = DEFAULT_TOPIC_COUNT,
    ):
        self.service = service
        self.cache = cache
        self.inflight = inflight or InFlightRegistry()
        self.topic_count = topic_count
        self._generations: Dict[str, int] = {}

    async def resolve_topics(self, subject: str, mode: LearningMode | str) -> TopicSet:
        learning_mode = LearningMode(mode)
        subject_key = cache_key(subject)
        regenerate_key = ("topics-regenerate", subject_key)
        if self.inflight.is_pending(regenerate_key):
            logger.info("Waiting for topic regeneration of %s", subject)
            return await self.inflight.run(
                regenerate_key, lambda: self._regenerate(subject, learning_mode)
            )
        return await self.inflight.run(
            ("topics", subject_key, learning_mode.value),
            lambda: self._resolve(subject, learning_mode),
        )

    async def regenerate_topics(self, subject: str, mode: LearningMode | str) -> TopicSet:
        """
        Delete remote and cached topics for the subject, then generate a new list.

        Resolutions already running for the subject are superseded: they still
        return to their callers but no longer write to the cache.
        """
        learning_mode = LearningMode(mode)
        subject_key = cache_key(subject)
        regenerate_key = ("topics-regenerate", subject_key)
        if not self.inflight.is_pending(regenerate_key):
            self._generations[subject_key] = self._generation(subject_key) + 1
            try:
                await self.service.delete_topics(subject)
            except AuthRequired:
                raise
            except TutorClientError as exc:
                logger.warning("Failed to delete remote topics for %s: %s", subject, exc)
            self._purge_cache(subject)
        return await self.inflight.run(
            regenerate_key, lambda: self._regenerate(subject, learning_mode)
        )

    def _generation(self, subject_key: str) -> int:
        return self._generations.get(subject_key, 0)

    async def _regenerate(self, subject: str, mode: LearningMode) -> TopicSet:
        generation = self._generation(cache_key(subject))
        topic_set = await self._generate(subject, mode)
        self._store(topic_set, generation)
        return topic_set

    async def _resolve(self, subject: str, mode: LearningMode) -> TopicSet:
        generation = self._generation(cache_key(subject))
        resolution = await first_success(
            [
                Strategy(
                    REMOTE_SHARED,
                    lambda: self._from_remote(subject, mode),
                    tolerate=(TransientNetwork, ValidationFailure),
                ),
                Strategy(CACHE_LOOKUP, lambda: self._from_cache(subject)),
                Strategy(REMOTE_GENERATE, lambda: self._generate(subject, mode)),
            ],
            label=f"topics for {subject}/{mode.value}",
        )
        topic_set = resolution.value
        if resolution.source != CACHE_LOOKUP:
            self._store(topic_set, generation)
        return topic_set

    async def _from_remote(self, subject: str, mode: LearningMode) -> Optional[TopicSet]:
        topic_set = await self.service.get_topics(subject, mode)
        if topic_set is None:
            logger.info("No remote topics (own or shared) for %s/%s", subject, mode.value)
            return None
        if topic_set.is_shared:
            logger.info("Using shared topics from other learners for %s/%s", subject, mode.value)
        return topic_set

    async def _from_cache(self, subject: str) -> Optional[TopicSet]:
        key = cache_key(subject)
        try:
            entry = self.cache.get(key)
        except Exception as exc:
            logger.warning("Topic cache read failed for %s: %s", key, exc)
            return None
        if entry is None:
            return None
        try:
            topic_set = TopicSet.model_validate({"subject": subject, **entry.payload})
        except ValidationError as exc:
            logger.warning("Discarding unreadable cached topics for %s: %s", key, exc)
            self._purge_cache(subject)
            return None
        if not topic_set.topics:
            return None
        # Cached lists are the learner's own copy, whatever their origin.
        return topic_set.model_copy(update={"is_shared": False})

    async def _generate(self, subject: str, mode: LearningMode) -> TopicSet:
        generated = await self.service.generate_topics(subject, mode, self.topic_count)
        logger.info("Generated %d topics for %s/%s", len(generated), subject, mode.value)
        try:
            result = await self.service.save_topics(subject, generated, mode)
        except Conflict:
            existing = await self._fetch_existing(subject, mode)
            if existing is not None:
                return existing
            logger.warning("Server reported a topic conflict for %s but returned none", subject)
            return self._own_set(subject, generated, mode)
        except AuthRequired:
            raise
        except TutorClientError as exc:
            logger.warning("Failed to save topics for %s, keeping local copy: %s", subject, exc)
            return self._own_set(subject, generated, mode)

        if result.already_exists:
            logger.info("Topics for %s already exist on the server; using the server's set", subject)
            if result.topics:
                return TopicSet(
                    subject=subject,
                    topics=result.topics,
                    learning_type=result.learning_type or mode,
                    is_shared=False,
                )
            existing = await self._fetch_existing(subject, mode)
            if existing is not None:
                return existing
            logger.warning("Server reported existing topics for %s but none could be fetched", subject)
        return self._own_set(subject, generated, mode)

    async def _fetch_existing(self, subject: str, mode: LearningMode) -> Optional[TopicSet]:
        try:
            return await self.service.get_topics(subject, mode)
        except AuthRequired:
            raise
        except TutorClientError as exc:
            logger.warning("Failed to load existing topics for %s: %s", subject, exc)
            return None

    @staticmethod
    def _own_set(subject: str, topics: List[Topic], mode: LearningMode) -> TopicSet:
        return TopicSet(subject=subject, topics=topics, learning_type=mode, is_shared=False)

    def _store(self, topic_set: TopicSet, generation: int) -> None:
        key = cache_key(topic_set.subject)
        if generation != self._generation(key):
            logger.info("Topics for %s were regenerated meanwhile; not caching the superseded list", key)
            return
        payload = topic_set.to_wire()
        payload.pop("subject", None)
        payload.pop("isShared", None)
        try:
            self.cache.set(key, payload)
        except Exception as exc:
            logger.warning("Failed to cache topics for %s (non-critical): %s", key, exc)

    def _purge_cache(self, subject: str) -> None:
        try:
            self.cache.delete(cache_key(subject))
        except Exception as exc:
            logger.warning("Failed to clear cached topics for %s: %s", subject, exc)
