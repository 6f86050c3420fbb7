"""
REPCOACH Frame Dispatcher

Single-worker ThreadPoolExecutor that runs frame analysis off the
event loop. Keeps every Nth frame and drops, never queues, frames that
arrive while the previous one is still being processed.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Optional

from core.config import settings

logger = logging.getLogger(__name__)


class FrameStatus(str, Enum):
    ACCEPTED = "accepted"
    SKIPPED = "skipped"  # not an Nth frame
    DROPPED = "dropped"  # worker busy
    CLOSED = "closed"


class FrameDispatcher:
    """
    Backpressure by dropping frames.

    Features:
    - One frame in flight at a time
    - Every-Nth-frame sampling
    - Async-compatible submission
    - Drop / completion statistics
    """

    def __init__(
        self,
        processor: Callable[..., Any],
        sample_rate: Optional[int] = None,
        name: str = "frame_dispatcher",
    ):
        self.processor = processor
        self.sample_rate = max(1, sample_rate or settings.FRAME_SAMPLE_RATE)
        self.name = name

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{name}_")
        self._lock = threading.Lock()
        self._in_flight: Optional[Future] = None
        self._closed = False

        # Stats
        self._frame_index = 0
        self._received = 0
        self._skipped = 0
        self._dropped = 0
        self._completed_count = 0
        self._failed_count = 0
        self.last_status: Optional[FrameStatus] = None

        logger.info(f"🧵 FrameDispatcher '{name}' initialized (every {self.sample_rate} frame(s))")

    def submit(self, frame: Any, *args, **kwargs) -> Optional[Future]:
        """
        Offer a frame to the worker.

        Returns:
            Future for the processor result, or None when the frame was
            skipped by sampling, dropped because the worker is busy, or
            the dispatcher is shut down (see ``last_status``).
        """
        with self._lock:
            if self._closed:
                self.last_status = FrameStatus.CLOSED
                return None

            index = self._frame_index
            self._frame_index += 1
            self._received += 1

            if index % self.sample_rate != 0:
                self._skipped += 1
                self.last_status = FrameStatus.SKIPPED
                return None

            if self._in_flight is not None and not self._in_flight.done():
                self._dropped += 1
                self.last_status = FrameStatus.DROPPED
                logger.debug(f"{self.name}: frame {index} dropped (worker busy)")
                return None

            future = self._executor.submit(self._run_frame, frame, args, kwargs)
            self._in_flight = future
            self.last_status = FrameStatus.ACCEPTED
            return future

    async def submit_async(self, frame: Any, *args, **kwargs) -> Optional[Any]:
        """Submit and await the result (None when the frame was not accepted)."""
        future = self.submit(frame, *args, **kwargs)
        if future is None:
            return None
        return await asyncio.wrap_future(future)

    def _run_frame(self, frame: Any, args: tuple, kwargs: dict) -> Any:
        try:
            result = self.processor(frame, *args, **kwargs)
        except Exception as e:
            with self._lock:
                self._failed_count += 1
            logger.error(f"{self.name}: frame processing failed: {e}")
            raise

        with self._lock:
            self._completed_count += 1
        return result

    @property
    def is_busy(self) -> bool:
        future = self._in_flight
        return future is not None and not future.done()

    def reset_sampling(self):
        """Restart the every-Nth count so the next frame is kept."""
        with self._lock:
            self._frame_index = 0

    # ========================================
    # Lifecycle
    # ========================================

    def shutdown(self, wait: bool = True):
        """Stop accepting frames and shut the worker down."""
        with self._lock:
            self._closed = True
        logger.info(f"Shutting down FrameDispatcher '{self.name}'...")
        self._executor.shutdown(wait=wait)
        logger.info(f"FrameDispatcher '{self.name}' shutdown complete")

    def get_stats(self) -> dict:
        """Get dispatcher statistics."""
        return {
            "name": self.name,
            "sample_rate": self.sample_rate,
            "received_frames": self._received,
            "skipped_frames": self._skipped,
            "dropped_frames": self._dropped,
            "completed_frames": self._completed_count,
            "failed_frames": self._failed_count,
            "busy": self.is_busy,
        }
