#!/usr/bin/env python3
"""
Per-frame fall detection pipeline.

Every frame runs through the same steps, in order:
  pose estimation -> window update -> tensor assembly -> classification

Results are published on an ``EventChannel``: the recognized points for every
frame with a pose, an ``ActionEvent`` whenever classification succeeds, and a
``FallAlertEvent`` when the alert monitor fires.
"""

import logging
import threading
import time
from typing import Optional

import numpy as np

from .alerts import FallAlertMonitor
from .assembler import ModelInputAssembler
from .classifier import ActionClassifier, ClassificationResult
from .events import ActionEvent, EventChannel, FallAlertEvent, PointsEvent
from .exceptions import AssemblyError
from .pose import PoseObservation
from .pose_estimator import PoseEstimator
from .window import PoseWindow

logger = logging.getLogger(__name__)


class Predictor:
    """Estimates poses and labels the action of a single video stream."""

    def __init__(
        self,
        classifier: ActionClassifier,
        estimator: Optional[PoseEstimator] = None,
        window: Optional[PoseWindow] = None,
        assembler: Optional[ModelInputAssembler] = None,
        alert_monitor: Optional[FallAlertMonitor] = None,
        events: Optional[EventChannel] = None,
    ):
        """
        Initialize the predictor.

        Args:
            classifier: Action classifier, may be shared between predictors
            estimator: Pose estimator, created on first frame if omitted
            window: Pose window for this stream
            assembler: Model input assembler
            alert_monitor: Fall alert monitor
            events: Channel results are published on
        """
        self.classifier = classifier
        self.window = window or PoseWindow()
        self.assembler = assembler or ModelInputAssembler(num_frames=self.window.capacity)
        self.alert_monitor = alert_monitor or FallAlertMonitor()
        self.events = events or EventChannel()

        self._estimator = estimator
        self._frame_counter = 0
        self._counter_lock = threading.Lock()

    @property
    def estimator(self) -> PoseEstimator:
        if self._estimator is None:
            with self._counter_lock:
                if self._estimator is None:
                    self._estimator = PoseEstimator()
        return self._estimator

    @property
    def frame_count(self) -> int:
        return self._frame_counter

    def process_frame(self, frame: np.ndarray) -> Optional[ClassificationResult]:
        """
        Process a video frame.

        Args:
            frame: BGR frame

        Returns:
            Classification result, or None if no pose was found or no
            classification is available for this frame
        """
        start_time = time.time()
        frame_id = self._next_frame_id()

        observation = self.estimator.estimate(frame)
        if observation is None:
            logger.debug(f"No pose in frame {frame_id}")
            return None

        return self._handle_observation(observation, frame_id, start_time)

    def process_observation(self, observation: PoseObservation) -> Optional[ClassificationResult]:
        """Run the pipeline on a pose produced by an external estimator."""
        return self._handle_observation(observation, self._next_frame_id(), time.time())

    def reset(self) -> None:
        """Forget the current window and alert cooldown."""
        self.window.clear()
        self.alert_monitor.reset()

    def close(self) -> None:
        if self._estimator is not None:
            self._estimator.close()

    def _next_frame_id(self) -> int:
        with self._counter_lock:
            self._frame_counter += 1
            return self._frame_counter

    def _handle_observation(
        self, observation: PoseObservation, frame_id: int, start_time: float
    ) -> Optional[ClassificationResult]:
        self.events.publish(
            PointsEvent(points=observation.recognized_points(), frame_id=frame_id)
        )

        self.window.append(observation)

        try:
            tensor = self.assembler.build(self.window.snapshot())
        except AssemblyError as e:
            logger.error(f"Skipping classification for frame {frame_id}: {e}")
            return None

        result = self.classifier.classify(tensor)
        if result is None:
            return None

        self.events.publish(
            ActionEvent(
                label=result.label,
                confidence=result.confidence,
                frame_id=frame_id,
                processing_time_ms=(time.time() - start_time) * 1000,
            )
        )

        if self.alert_monitor.update(result):
            self.events.publish(
                FallAlertEvent(label=result.label, confidence=result.confidence, frame_id=frame_id)
            )

        return result
