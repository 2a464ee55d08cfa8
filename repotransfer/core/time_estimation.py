# repotransfer/core/time_estimation.py

import logging
import time
from typing import Callable, Optional

from .utils import format_duration, size_to_string

logger = logging.getLogger(__name__)

# Shorter windows make the speed jump around between chunks
MIN_SAMPLE_SECONDS = 1.0


class TimeEstimator:
    """Smoothed transfer speed and remaining-time estimate."""

    def __init__(self, smoothing: float = 0.3, clock: Callable[[], float] = time.time):
        self.smoothing = smoothing
        self.clock = clock
        self.speed_bytes_per_sec = 0.0
        self._last_sample_time = clock()
        self._pending_bytes = 0

    def add_transferred_bytes(self, size_bytes: int) -> None:
        """
        Record bytes moved since the previous call and refresh the speed.

        Args:
            size_bytes: Bytes transferred by a worker
        """
        self._pending_bytes += size_bytes
        now = self.clock()
        time_delta = now - self._last_sample_time
        if time_delta < MIN_SAMPLE_SECONDS:
            return

        instant_speed = self._pending_bytes / time_delta
        if self.speed_bytes_per_sec == 0:
            self.speed_bytes_per_sec = instant_speed
        else:
            # Exponential moving average
            alpha = self.smoothing
            self.speed_bytes_per_sec = alpha * instant_speed + (1 - alpha) * self.speed_bytes_per_sec
        self._last_sample_time = now
        self._pending_bytes = 0

    def estimate_remaining_seconds(self, remaining_bytes: int) -> Optional[float]:
        if self.speed_bytes_per_sec <= 0:
            return None
        return max(remaining_bytes, 0) / self.speed_bytes_per_sec


def speed_to_string(speed_bytes_per_sec: float) -> str:
    if speed_bytes_per_sec <= 0:
        return "Not available yet"
    return f"{size_to_string(int(speed_bytes_per_sec))}/s"


def eta_to_string(eta_seconds: Optional[float]) -> str:
    if eta_seconds is None:
        return "Not available yet"
    return format_duration(eta_seconds)
