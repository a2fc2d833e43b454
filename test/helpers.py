"""Synthetic pose observations shared by the tests."""

import numpy as np

from fall_detector.pose import KEYPOINT_NAMES, PoseObservation

# Rough keypoint heights (normalised, y grows downwards) of an upright person
_STANDING_Y = {
    "nose": 0.15, "neck": 0.25, "right_shoulder": 0.25, "right_elbow": 0.40,
    "right_wrist": 0.52, "left_shoulder": 0.25, "left_elbow": 0.40, "left_wrist": 0.52,
    "right_hip": 0.55, "right_knee": 0.72, "right_ankle": 0.90, "left_hip": 0.55,
    "left_knee": 0.72, "left_ankle": 0.90, "right_eye": 0.13, "left_eye": 0.13,
    "right_ear": 0.14, "left_ear": 0.14,
}


def standing_observation(offset: float = 0.0) -> PoseObservation:
    """Upright body centred horizontally; ``offset`` shifts it to the right."""
    values = []
    for name in KEYPOINT_NAMES:
        x = 0.5 + offset
        if name.startswith("left"):
            x += 0.05
        elif name.startswith("right"):
            x -= 0.05
        values.append([x, _STANDING_Y[name], 0.9])
    return PoseObservation.from_array(values)


def horizontal_observation() -> PoseObservation:
    """Body lying on the floor: x and y of the standing pose swapped."""
    values = [[_STANDING_Y[name], 0.85, 0.8] for name in KEYPOINT_NAMES]
    return PoseObservation.from_array(values)


def numbered_observation(index: int) -> PoseObservation:
    """Observation whose every x coordinate equals ``index + 1``, to track frame order."""
    values = np.full((len(KEYPOINT_NAMES), 3), 0.5)
    values[:, 0] = index + 1
    return PoseObservation.from_array(values)


def broken_observation() -> PoseObservation:
    """Observation that cannot be converted into model input."""
    values = np.full((len(KEYPOINT_NAMES), 3), 0.5)
    values[3, 1] = np.nan
    return PoseObservation.from_array(values)
