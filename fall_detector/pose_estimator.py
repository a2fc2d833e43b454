#!/usr/bin/env python3
"""
Pose estimation with MediaPipe.

MediaPipe reports 33 landmarks per person; the action classifier expects the
18-keypoint layout in ``KEYPOINT_NAMES``. This module runs the estimator on a
BGR frame and performs that mapping.
"""

import logging
from typing import Any, Optional

import cv2
import mediapipe as mp
import numpy as np

from .config import MIN_DETECTION_CONFIDENCE, MIN_TRACKING_CONFIDENCE, MODEL_COMPLEXITY
from .pose import KEYPOINT_NAMES, PoseObservation

logger = logging.getLogger(__name__)

# MediaPipe landmark index for every keypoint except the neck
MEDIAPIPE_INDEX = {
    "nose": 0,
    "right_shoulder": 12,
    "right_elbow": 14,
    "right_wrist": 16,
    "left_shoulder": 11,
    "left_elbow": 13,
    "left_wrist": 15,
    "right_hip": 24,
    "right_knee": 26,
    "right_ankle": 28,
    "left_hip": 23,
    "left_knee": 25,
    "left_ankle": 27,
    "right_eye": 5,
    "left_eye": 2,
    "right_ear": 8,
    "left_ear": 7,
}


def landmarks_to_keypoints(landmarks: np.ndarray) -> np.ndarray:
    """
    Map MediaPipe landmarks to the 18-keypoint layout.

    The neck is not a MediaPipe landmark; it is placed at the shoulder
    midpoint with the lower of the two shoulder visibilities.

    Args:
        landmarks: Array of shape [33, 3] (x, y, visibility)

    Returns:
        Array of shape [18, 3] (x, y, confidence) in ``KEYPOINT_NAMES`` order
    """
    keypoints = np.zeros((len(KEYPOINT_NAMES), 3), dtype=np.float64)

    for i, name in enumerate(KEYPOINT_NAMES):
        if name == "neck":
            left = landmarks[MEDIAPIPE_INDEX["left_shoulder"]]
            right = landmarks[MEDIAPIPE_INDEX["right_shoulder"]]
            keypoints[i] = [
                (left[0] + right[0]) / 2.0,
                (left[1] + right[1]) / 2.0,
                min(left[2], right[2]),
            ]
        else:
            keypoints[i] = landmarks[MEDIAPIPE_INDEX[name]][:3]

    keypoints[:, 2] = np.clip(keypoints[:, 2], 0.0, 1.0)
    return keypoints


class PoseEstimator:
    """Estimates one body pose per video frame."""

    def __init__(
        self,
        min_detection_confidence: float = MIN_DETECTION_CONFIDENCE,
        min_tracking_confidence: float = MIN_TRACKING_CONFIDENCE,
        model_complexity: int = MODEL_COMPLEXITY,
        backend: Optional[Any] = None,
    ):
        """
        Initialize the pose estimator.

        Args:
            min_detection_confidence: Minimum detection confidence for MediaPipe
            min_tracking_confidence: Minimum tracking confidence for MediaPipe
            model_complexity: MediaPipe pose model complexity (0, 1 or 2)
            backend: Object with a MediaPipe-compatible ``process(rgb)`` method
        """
        if backend is None:
            backend = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=model_complexity,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        self.pose = backend

    def estimate(self, frame: np.ndarray) -> Optional[PoseObservation]:
        """
        Estimate the pose in a BGR frame.

        Args:
            frame: Input frame

        Returns:
            Pose observation, or None if no person was found or estimation failed
        """
        try:
            image_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            results = self.pose.process(image_rgb)
        except Exception as e:
            logger.warning(f"Pose estimation failed: {e}")
            return None

        if not results.pose_landmarks:
            return None

        landmarks = np.array(
            [[lm.x, lm.y, lm.visibility] for lm in results.pose_landmarks.landmark]
        )
        if landmarks.shape[0] <= max(MEDIAPIPE_INDEX.values()):
            logger.warning(f"Unexpected landmark count: {landmarks.shape[0]}")
            return None

        return PoseObservation.from_array(landmarks_to_keypoints(landmarks))

    def close(self) -> None:
        """Release the pose backend."""
        close = getattr(self.pose, "close", None)
        if close is not None:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
