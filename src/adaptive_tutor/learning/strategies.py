"""Named resolution strategies evaluated in order until one produces a value."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, Tuple, Type, TypeVar

from adaptive_tutor.errors import NotFound

logger = logging.getLogger(__name__)

T = TypeVar("T")

CACHE_LOOKUP = "cache_lookup"
REMOTE_SHARED = "remote_shared"
REMOTE_GENERATE = "remote_generate"


@dataclass(frozen=True)
class Strategy(Generic[T]):
    """
    One step of a fallback chain.

    `run` returns the resolved value or None for a miss. Exceptions listed in
    `tolerate` are logged and treated as a miss; anything else propagates and
    stops the chain.
    """

    name: str
    run: Callable[[], Awaitable[Optional[T]]]
    tolerate: Tuple[Type[BaseException], ...] = ()


@dataclass(frozen=True)
class Resolution(Generic[T]):
    value: T
    source: str


async def first_success(strategies: Sequence[Strategy[T]], *, label: str = "value") -> Resolution[T]:
    """Run strategies in order and return the first non-None value with its source name."""
    for strategy in strategies:
        try:
            value = await strategy.run()
        except strategy.tolerate as exc:
            logger.warning("%s strategy for %s failed, trying next: %s", strategy.name, label, exc)
            continue
        if value is not None:
            logger.debug("Resolved %s via %s", label, strategy.name)
            return Resolution(value=value, source=strategy.name)
    raise NotFound(f"No strategy produced a {label}.")
