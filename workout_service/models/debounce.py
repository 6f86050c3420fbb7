"""
REPCOACH Workout Service - Debouncers

HysteresisDebouncer: N consecutive identical raw phases before the
confirmed phase follows.
EventDebouncer: minimum time between two emitted events.
"""

import logging
from typing import Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class HysteresisDebouncer:
    """
    Frame debouncer keeping ``(last_raw, streak)``.

    A raw value equal to ``last_raw`` extends the streak; any other value
    restarts it at 0. The confirmed value becomes ``last_raw`` once
    ``streak >= k``, where ``k`` is the per-phase requirement if given,
    else the default ``required_frames``.
    """

    def __init__(
        self,
        initial: Hashable,
        required_frames: int = 1,
        per_phase: Optional[Dict[Hashable, int]] = None,
    ):
        self.initial = initial
        self.required_frames = max(0, int(required_frames))
        self.per_phase = dict(per_phase or {})
        self._cap = max([self.required_frames, *self.per_phase.values()])
        self.reset()

    def reset(self):
        self.confirmed = self.initial
        self.last_raw = self.initial
        self.streak = 0
        self.streak_started_at: Optional[float] = None
        self._fed = False

    def required_for(self, raw: Hashable) -> int:
        return self.per_phase.get(raw, self.required_frames)

    def update(self, raw: Hashable, now: Optional[float] = None, required: Optional[int] = None):
        """
        Feed one raw classification and return the confirmed value.

        Args:
            raw: this frame's raw phase
            now: frame timestamp, recorded as the streak start on change
            required: per-call override of k (adaptive exercises)
        """
        cap = max(self._cap, required or 0)
        if raw == self.last_raw and self._fed:
            self.streak = min(self.streak + 1, cap)
        else:
            self.last_raw = raw
            self.streak = 0
            self.streak_started_at = now
            self._fed = True

        k = self.required_for(raw) if required is None else required
        if self.streak >= k and self.confirmed != self.last_raw:
            logger.debug(f"Phase confirmed: {self.confirmed} -> {self.last_raw} (streak {self.streak})")
            self.confirmed = self.last_raw
        return self.confirmed

    @property
    def is_stable(self) -> bool:
        """True when the current raw streak has met its requirement."""
        return self.streak >= self.required_for(self.last_raw)


class EventDebouncer:
    """Minimum interval between two events (rep counts)."""

    def __init__(self, floor_seconds: float):
        self.floor_seconds = floor_seconds
        self.last_event_at: Optional[float] = None

    def ready(self, now: float, floor: Optional[float] = None) -> bool:
        if self.last_event_at is None:
            return True
        limit = self.floor_seconds if floor is None else floor
        return (now - self.last_event_at) >= limit

    def mark(self, now: float):
        self.last_event_at = now

    def since_last(self, now: float) -> Optional[float]:
        if self.last_event_at is None:
            return None
        return now - self.last_event_at

    def reset(self):
        self.last_event_at = None
