#!/usr/bin/env python3
"""
Background frame processing.

A single worker thread owns the predictor, so frames are processed strictly
one at a time and in arrival order. The frame queue is bounded: frames from
a live source are dropped while the worker is busy, frames from a recorded
source wait for room.
"""

import logging
import queue
import threading
from typing import Optional

import numpy as np

from .config import FRAME_QUEUE_SIZE
from .predictor import Predictor

logger = logging.getLogger(__name__)

_STOP = object()


class FrameWorker:
    """Feeds frames to a predictor from a dedicated thread."""

    def __init__(self, predictor: Predictor, queue_size: int = FRAME_QUEUE_SIZE):
        """
        Initialize the worker.

        Args:
            predictor: Predictor that processes the frames
            queue_size: Number of frames that may wait for processing
        """
        self.predictor = predictor
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._thread: Optional[threading.Thread] = None

        self.frames_submitted = 0
        self.frames_dropped = 0
        self.frames_processed = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return

        self._thread = threading.Thread(target=self._run, name="frame-worker", daemon=True)
        self._thread.start()
        logger.info("Frame worker started")

    def submit(self, frame: np.ndarray, block: bool = False) -> bool:
        """
        Queue a frame.

        Live sources submit without blocking, so frames that arrive while the
        worker is busy are dropped. Recorded sources block until there is room.

        Args:
            frame: BGR frame
            block: Wait for room in the queue instead of dropping the frame

        Returns:
            False if the frame was dropped because the worker is busy
        """
        self.frames_submitted += 1
        if block:
            self._queue.put(frame)
            return True

        try:
            self._queue.put_nowait(frame)
        except queue.Full:
            self.frames_dropped += 1
            logger.debug("Worker busy, dropping late frame")
            return False
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop after the frames already queued have been processed."""
        if self._thread is None:
            return

        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None
        logger.info(
            f"Frame worker stopped: {self.frames_processed} processed, "
            f"{self.frames_dropped} dropped"
        )

    def _run(self) -> None:
        while True:
            frame = self._queue.get()
            try:
                if frame is _STOP:
                    return
                self.predictor.process_frame(frame)
                self.frames_processed += 1
            except Exception:
                logger.exception("Error processing frame")
            finally:
                self._queue.task_done()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()
