"""Tests for content resolution: cache first, then generation."""

from __future__ import annotations

import asyncio

import pytest

from adaptive_tutor.data_models import LearningMode
from adaptive_tutor.errors import TransientNetwork
from adaptive_tutor.learning.content import ContentResolver
from adaptive_tutor.storage import CacheStore, cache_key


class BrokenCache(CacheStore):
    """Cache whose every operation fails."""

    def get(self, key):
        raise OSError("disk gone")

    def set(self, key, payload):
        raise OSError("disk full")

    def delete(self, key):
        raise OSError("disk gone")


@pytest.fixture
def resolver(service, cache):
    return ContentResolver(service, cache)


async def test_second_resolution_is_served_from_cache(resolver, service, cache):
    """Resolving the same triple twice generates once and returns equal units."""
    first = await resolver.resolve_content("Math", "Algebra", LearningMode.TEXT)
    second = await resolver.resolve_content("math", " algebra ", "text")

    assert first == second
    assert service.names().count("generate_content") == 1
    assert "math:algebra:text" in cache


async def test_cache_is_keyed_by_exact_mode(resolver, service):
    await resolver.resolve_content("math", "algebra", LearningMode.TEXT)
    visual = await resolver.resolve_content("math", "algebra", LearningMode.VISUAL)

    assert visual.learning_mode is LearningMode.VISUAL
    assert service.names().count("generate_content") == 2


async def test_cache_hit_makes_no_remote_call(service, cache):
    cache.set(
        cache_key("math", "algebra", LearningMode.TEXT),
        {"content": {"title": "Cached algebra", "learningMode": "text"}},
    )
    resolver = ContentResolver(service, cache)

    unit = await resolver.resolve_content("math", "algebra", LearningMode.TEXT)

    assert unit.title == "Cached algebra"
    assert service.calls == []


async def test_regenerate_replaces_cached_unit(resolver, service, cache):
    original = await resolver.resolve_content("math", "algebra", LearningMode.TEXT)
    fresh = await resolver.regenerate_content("math", "algebra", LearningMode.TEXT)

    assert fresh.title != original.title
    cached = await resolver.resolve_content("math", "algebra", LearningMode.TEXT)
    assert cached.title == fresh.title
    assert service.names().count("generate_content") == 2


async def test_regenerate_only_purges_its_own_triple(resolver, cache):
    await resolver.resolve_content("math", "algebra", LearningMode.TEXT)
    await resolver.resolve_content("math", "algebra", LearningMode.AUDIO)

    await resolver.regenerate_content("math", "algebra", LearningMode.TEXT)

    assert "math:algebra:audio" in cache


async def test_generation_failure_propagates_and_caches_nothing(resolver, service, cache):
    service.content_error = TransientNetwork("offline")

    with pytest.raises(TransientNetwork):
        await resolver.resolve_content("math", "algebra", LearningMode.TEXT)
    assert len(cache) == 0


async def test_unreadable_cache_entry_is_purged_and_regenerated(resolver, service, cache):
    key = cache_key("math", "algebra", LearningMode.TEXT)
    cache.set(key, {"content": {"title": "missing mode"}})

    unit = await resolver.resolve_content("math", "algebra", LearningMode.TEXT)

    assert unit.title == "algebra #1"
    assert cache.get(key).payload["content"]["title"] == "algebra #1"


async def test_cache_failures_do_not_surface(service):
    resolver = ContentResolver(service, BrokenCache())

    unit = await resolver.resolve_content("math", "algebra", LearningMode.TEXT)

    assert unit.learning_mode is LearningMode.TEXT


async def test_concurrent_requests_share_one_generation(resolver, service):
    service.content_gate = asyncio.Event()
    first = asyncio.ensure_future(resolver.resolve_content("math", "algebra", LearningMode.TEXT))
    second = asyncio.ensure_future(resolver.resolve_content("math", "algebra", LearningMode.TEXT))
    await asyncio.sleep(0)
    service.content_gate.set()

    a, b = await asyncio.gather(first, second)

    assert a is b
    assert service.names().count("generate_content") == 1


async def test_purge_without_mode_clears_every_mode(resolver, cache):
    for mode in LearningMode:
        await resolver.resolve_content("math", "algebra", mode)
    await resolver.resolve_content("math", "geometry", LearningMode.TEXT)

    resolver.purge("math", "algebra")

    assert len(cache) == 1
    assert "math:geometry:text" in cache


async def test_regenerate_during_resolution_generates_its_own_unit(resolver, service, cache):
    """A slow first generation finishing after regeneration must not overwrite the new unit."""
    first_entered = asyncio.Event()
    release = asyncio.Event()
    original = service.generate_content

    async def gated_generate(subject, topic, mode, difficulty="medium"):
        unit = await original(subject, topic, mode, difficulty)
        if unit.title.endswith("#1"):
            first_entered.set()
            await release.wait()
        return unit

    service.generate_content = gated_generate
    pending = asyncio.ensure_future(resolver.resolve_content("math", "algebra", LearningMode.TEXT))
    await first_entered.wait()

    fresh = await resolver.regenerate_content("math", "algebra", LearningMode.TEXT)
    release.set()
    stale = await pending

    assert stale.title == "algebra #1"
    assert fresh.title == "algebra #2"
    assert service.names().count("generate_content") == 2
    cached = await resolver.resolve_content("math", "algebra", LearningMode.TEXT)
    assert cached.title == "algebra #2"


async def test_purge_discards_result_of_running_generation(resolver, service, cache):
    service.content_gate = asyncio.Event()
    pending = asyncio.ensure_future(resolver.resolve_content("math", "algebra", LearningMode.TEXT))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    resolver.purge("math", "algebra", LearningMode.TEXT)
    service.content_gate.set()
    await pending

    assert len(cache) == 0
