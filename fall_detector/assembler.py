#!/usr/bin/env python3
"""
Model input assembly.

Turns a snapshot of the pose window into the fixed-shape tensor the action
classifier consumes: [frames, channels, keypoints] = [60, 3, 18]. Windows
shorter than 60 frames are padded with zero frames at the end.
"""

import logging
from enum import Enum
from typing import List, Sequence, Union

import numpy as np

from .config import FAILED_FRAME_POLICY, NUM_CHANNELS, NUM_KEYPOINTS, PREDICTION_WINDOW_SIZE
from .exceptions import AssemblyError, PoseConversionError
from .pose import PoseObservation

logger = logging.getLogger(__name__)


class FailedFramePolicy(str, Enum):
    """What to do with a frame whose observation cannot be converted."""

    # Replace the frame with zeros in place; the tensor always has full length
    ZERO_FILL = "zero_fill"
    # Drop the frame without back-filling; the tensor comes out one frame short
    SKIP = "skip"


class ModelInputAssembler:
    """Builds [frames, 3, 18] model input tensors from pose windows."""

    def __init__(
        self,
        num_frames: int = PREDICTION_WINDOW_SIZE,
        failed_frame_policy: Union[FailedFramePolicy, str] = FAILED_FRAME_POLICY,
    ):
        """
        Initialize the assembler.

        Args:
            num_frames: Number of frames in the model input
            failed_frame_policy: Handling of frames that fail to convert
        """
        self.num_frames = num_frames
        self.failed_frame_policy = FailedFramePolicy(failed_frame_policy)

    @property
    def frame_shape(self):
        return (1, NUM_CHANNELS, NUM_KEYPOINTS)

    @property
    def output_shape(self):
        return (self.num_frames, NUM_CHANNELS, NUM_KEYPOINTS)

    def build(self, window: Sequence[PoseObservation]) -> np.ndarray:
        """
        Assemble the model input tensor.

        Real frames come first in arrival order, followed by one zero frame for
        every slot the window has not filled yet.

        Args:
            window: Pose observations, oldest first

        Returns:
            float32 tensor, normally of shape [num_frames, 3, 18]. With the
            SKIP policy each failed conversion shortens the frame axis by one.

        Raises:
            AssemblyError: if no frame slices could be produced
        """
        num_available = len(window)
        slices: List[np.ndarray] = []

        for frame_index in range(min(num_available, self.num_frames)):
            try:
                slices.append(window[frame_index].keypoints_array())
            except PoseConversionError as e:
                if self.failed_frame_policy is FailedFramePolicy.ZERO_FILL:
                    logger.debug(f"Frame {frame_index} failed to convert, zero-filling: {e}")
                    slices.append(self._zero_frame())
                else:
                    logger.debug(f"Frame {frame_index} failed to convert, skipping: {e}")

        for _ in range(self.num_frames - num_available):
            slices.append(self._zero_frame())

        if not slices:
            raise AssemblyError("No frames available to assemble model input")

        return np.concatenate(slices, axis=0)

    def _zero_frame(self) -> np.ndarray:
        return np.zeros(self.frame_shape, dtype=np.float32)
