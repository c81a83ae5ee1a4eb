from __future__ import annotations

import logging
from typing import Dict, Optional

from pydantic import ValidationError

from adaptive_tutor.data_models import ALL_MODES, ContentUnit, LearningMode
from adaptive_tutor.learning.inflight import InFlightRegistry
from adaptive_tutor.learning.strategies import (
    CACHE_LOOKUP,
    REMOTE_GENERATE,
    Strategy,
    first_success,
)
from adaptive_tutor.service.client import ContentServiceClient
from adaptive_tutor.storage.cache_store import CacheStore, cache_key

logger = logging.getLogger(__name__)


class ContentResolver:
    """
    Resolve study material for a (subject, topic, mode) triple.

    Resolution order is a cache lookup on the exact triple followed by remote
    generation. A cache hit never touches the network. Freshly generated units
    are written back to the cache on a best-effort basis: a failing cache write
    is logged and the unit is still returned. Remote failures propagate to the
    caller unchanged; no placeholder content is invented locally.

    Concurrent requests for the same triple share a single remote call through
    the in-flight registry.
    """

    def __init__(
        self,
        service: ContentServiceClient,
        cache: CacheStore,
        inflight: Optional[InFlightRegistry] = None,
    ):
        self.service = service
        self.cache = cache
        self.inflight = inflight or InFlightRegistry()
        self._generations: Dict[str, int] = {}

    async def resolve_content(
        self,
        subject: str,
        topic: str,
        mode: LearningMode | str,
        difficulty: str = "medium",
    ) -> ContentUnit:
        learning_mode = LearningMode(mode)
        key = cache_key(subject, topic, learning_mode)
        if self.inflight.is_pending(("content-regenerate", key)):
            logger.info("Waiting for content regeneration of %s", key)
            return await self.inflight.run(
                ("content-regenerate", key),
                lambda: self._regenerate(subject, topic, learning_mode, difficulty, key),
            )
        return await self.inflight.run(
            ("content", key),
            lambda: self._resolve(subject, topic, learning_mode, difficulty, key),
        )

    async def regenerate_content(
        self,
        subject: str,
        topic: str,
        mode: LearningMode | str,
        difficulty: str = "medium",
    ) -> ContentUnit:
        """
        Drop the cached unit for this exact triple and generate a new one.

        A resolution still running for the triple keeps its result for its own
        callers, but that result is no longer written to the cache.
        """
        learning_mode = LearningMode(mode)
        key = cache_key(subject, topic, learning_mode)
        if not self.inflight.is_pending(("content-regenerate", key)):
            self._invalidate(key)
        return await self.inflight.run(
            ("content-regenerate", key),
            lambda: self._regenerate(subject, topic, learning_mode, difficulty, key),
        )

    def purge(self, subject: str, topic: str, mode: Optional[LearningMode | str] = None) -> None:
        """Remove cached content for one mode of a topic, or for all modes when none is given."""
        modes = [LearningMode(mode)] if mode is not None else list(ALL_MODES)
        for learning_mode in modes:
            self._invalidate(cache_key(subject, topic, learning_mode))

    async def _resolve(
        self, subject: str, topic: str, mode: LearningMode, difficulty: str, key: str
    ) -> ContentUnit:
        generation = self._generations.get(key, 0)
        resolution = await first_success(
            [
                Strategy(CACHE_LOOKUP, lambda: self._from_cache(key)),
                Strategy(
                    REMOTE_GENERATE,
                    lambda: self._generate(subject, topic, mode, difficulty, key, generation),
                ),
            ],
            label=f"content {key}",
        )
        return resolution.value

    async def _regenerate(
        self, subject: str, topic: str, mode: LearningMode, difficulty: str, key: str
    ) -> ContentUnit:
        generation = self._generations.get(key, 0)
        return await self._generate(subject, topic, mode, difficulty, key, generation)

    async def _from_cache(self, key: str) -> Optional[ContentUnit]:
        try:
            entry = self.cache.get(key)
        except Exception as exc:
            logger.warning("Content cache read failed for %s: %s", key, exc)
            return None
        if entry is None:
            return None
        try:
            unit = ContentUnit.model_validate(entry.payload["content"])
        except (KeyError, TypeError, ValidationError) as exc:
            logger.warning("Discarding unreadable cached content for %s: %s", key, exc)
            self._delete(key)
            return None
        logger.info("Using cached content for %s (cached %s)", key, entry.cached_at.isoformat())
        return unit

    async def _generate(
        self,
        subject: str,
        topic: str,
        mode: LearningMode,
        difficulty: str,
        key: str,
        generation: int,
    ) -> ContentUnit:
        logger.info("Generating new content for %s", key)
        unit = await self.service.generate_content(subject, topic, mode, difficulty)
        if generation != self._generations.get(key, 0):
            logger.info("Content for %s was invalidated meanwhile; not caching the superseded unit", key)
            return unit
        try:
            self.cache.set(
                key,
                {
                    "content": unit.to_wire(),
                    "subject": subject.lower().strip(),
                    "topic": topic.lower().strip(),
                    "learningMode": mode.value,
                },
            )
        except Exception as exc:
            logger.warning("Failed to cache content for %s (non-critical): %s", key, exc)
        return unit

    def _invalidate(self, key: str) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1
        self._delete(key)

    def _delete(self, key: str) -> None:
        try:
            self.cache.delete(key)
        except Exception as exc:
            logger.warning("Failed to purge cached content for %s: %s", key, exc)
