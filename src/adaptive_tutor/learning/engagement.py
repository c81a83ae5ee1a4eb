from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from adaptive_tutor.data_models import EngagementSignals, LearningMode

logger = logging.getLogger(__name__)


class EngagementTracker:
    """
    Accumulate exposure signals for one learning session.

    Only the signal that belongs to the active mode is ever reported: text
    sessions report reading time, audio sessions report the play count and
    visual sessions report neither. Reading time is measured with a monotonic
    clock between `start_reading` and `pause_reading` (or `finalize`), so wall
    clock changes do not affect it.

    Once `finalize` has been called the signals are frozen. Later calls return
    the same value and further plays or reading starts are ignored until the
    tracker is `reset` for a new session.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.mode: Optional[LearningMode] = None
        self._elapsed = 0.0
        self._reading_since: Optional[float] = None
        self._plays = 0
        self._final: Optional[EngagementSignals] = None

    def reset(self, mode: LearningMode | str) -> None:
        self.mode = LearningMode(mode)
        self._elapsed = 0.0
        self._reading_since = None
        self._plays = 0
        self._final = None

    @property
    def is_finalized(self) -> bool:
        return self._final is not None

    def start_reading(self) -> None:
        """Begin timing once text content has finished loading."""
        if self._final is not None or self.mode is not LearningMode.TEXT:
            return
        if self._reading_since is None:
            self._reading_since = self._clock()

    def pause_reading(self) -> None:
        if self._reading_since is None:
            return
        self._elapsed += max(0.0, self._clock() - self._reading_since)
        self._reading_since = None

    def record_play(self) -> None:
        if self._final is not None or self.mode is not LearningMode.AUDIO:
            return
        self._plays += 1
        logger.debug("Audio play recorded (%d total)", self._plays)

    @property
    def reading_time_seconds(self) -> int:
        elapsed = self._elapsed
        if self._reading_since is not None:
            elapsed += max(0.0, self._clock() - self._reading_since)
        return int(math.floor(elapsed))

    def snapshot(self) -> EngagementSignals:
        """Current signals without freezing them."""
        if self._final is not None:
            return self._final
        if self.mode is LearningMode.TEXT:
            return EngagementSignals(reading_time_seconds=self.reading_time_seconds)
        if self.mode is LearningMode.AUDIO:
            return EngagementSignals(audio_play_count=self._plays)
        return EngagementSignals()

    def finalize(self) -> EngagementSignals:
        if self._final is None:
            self.pause_reading()
            self._final = self.snapshot()
            logger.info(
                "Engagement for %s: reading=%ss plays=%s",
                self.mode.value if self.mode else "-",
                self._final.reading_time_seconds,
                self._final.audio_play_count,
            )
        return self._final
