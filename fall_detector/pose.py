#!/usr/bin/env python3
"""
Pose observation types.

A ``PoseObservation`` is the per-frame output of the pose estimator: a fixed
set of 18 named body keypoints, each with a normalised 2D coordinate and a
confidence score. Observations are immutable once created.
"""

import time
from dataclasses import dataclass, field
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .config import NUM_CHANNELS, NUM_KEYPOINTS
from .exceptions import PoseConversionError

# Keypoint layout expected by the action classifier (channel order x, y, confidence)
KEYPOINT_NAMES: Tuple[str, ...] = (
    "nose",
    "neck",
    "right_shoulder",
    "right_elbow",
    "right_wrist",
    "left_shoulder",
    "left_elbow",
    "left_wrist",
    "right_hip",
    "right_knee",
    "right_ankle",
    "left_hip",
    "left_knee",
    "left_ankle",
    "right_eye",
    "left_eye",
    "right_ear",
    "left_ear",
)


class Keypoint(NamedTuple):
    """A single body keypoint in normalised image coordinates (origin top-left)."""

    name: str
    x: float
    y: float
    confidence: float


@dataclass(frozen=True)
class PoseObservation:
    """
    Immutable set of body keypoints detected in one frame.

    Keypoints are stored in ``KEYPOINT_NAMES`` order. Joints the estimator did
    not report are present with zero coordinates and zero confidence.
    """

    keypoints: Tuple[Keypoint, ...]
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if len(self.keypoints) != NUM_KEYPOINTS:
            raise ValueError(
                f"Expected {NUM_KEYPOINTS} keypoints, got {len(self.keypoints)}"
            )

    @classmethod
    def from_array(
        cls, values: Sequence[Sequence[float]], timestamp: Optional[float] = None
    ) -> "PoseObservation":
        """
        Build an observation from an array of shape [18, 3] (x, y, confidence).

        Args:
            values: Keypoint values in ``KEYPOINT_NAMES`` order
            timestamp: Capture time, defaults to now

        Returns:
            New observation
        """
        rows = np.asarray(values, dtype=np.float64)
        if rows.shape != (NUM_KEYPOINTS, NUM_CHANNELS):
            raise ValueError(
                f"Expected keypoint array of shape {(NUM_KEYPOINTS, NUM_CHANNELS)}, got {rows.shape}"
            )

        keypoints = tuple(
            Keypoint(name, float(x), float(y), float(c))
            for name, (x, y, c) in zip(KEYPOINT_NAMES, rows)
        )
        if timestamp is None:
            return cls(keypoints)
        return cls(keypoints, timestamp)

    @classmethod
    def from_keypoints(
        cls, keypoints: Iterable[Keypoint], timestamp: Optional[float] = None
    ) -> "PoseObservation":
        """Build an observation from named keypoints; unnamed joints are zero-filled."""
        by_name = {kp.name: kp for kp in keypoints}
        unknown = set(by_name) - set(KEYPOINT_NAMES)
        if unknown:
            raise ValueError(f"Unknown keypoint names: {sorted(unknown)}")

        ordered = tuple(
            by_name.get(name, Keypoint(name, 0.0, 0.0, 0.0)) for name in KEYPOINT_NAMES
        )
        if timestamp is None:
            return cls(ordered)
        return cls(ordered, timestamp)

    def get(self, name: str) -> Keypoint:
        """Return the keypoint with the given name."""
        return self.keypoints[KEYPOINT_NAMES.index(name)]

    def keypoints_array(self) -> np.ndarray:
        """
        Convert the observation into one frame of model input.

        Returns:
            float32 array of shape [1, 3, 18]: x, y and confidence channels

        Raises:
            PoseConversionError: if any keypoint value is not finite
        """
        values = np.array(
            [[kp.x, kp.y, kp.confidence] for kp in self.keypoints], dtype=np.float32
        )
        if not np.all(np.isfinite(values)):
            raise PoseConversionError("Pose observation contains non-finite keypoint values")

        return values.T.reshape(1, NUM_CHANNELS, NUM_KEYPOINTS)

    def recognized_points(self) -> List[Tuple[float, float]]:
        """Return the (x, y) coordinates of every keypoint with non-zero confidence."""
        return [(kp.x, kp.y) for kp in self.keypoints if kp.confidence > 0.0]
