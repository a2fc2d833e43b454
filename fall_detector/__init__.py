"""
Fall Detector - real-time fall detection from body pose sequences.

Each video frame is run through a pose estimator; the last 60 poses are
assembled into a [60, 3, 18] tensor and labelled by a pretrained action
classifier. Results are published to subscribers on an event channel.
"""

from .alerts import FallAlertMonitor
from .assembler import FailedFramePolicy, ModelInputAssembler
from .classifier import ActionClassifier, ClassificationResult
from .events import ActionEvent, EventChannel, FallAlertEvent, PointsEvent
from .exceptions import AssemblyError, FallDetectorError, PoseConversionError
from .pose import KEYPOINT_NAMES, Keypoint, PoseObservation
from .pose_estimator import PoseEstimator
from .predictor import Predictor
from .window import PoseWindow
from .worker import FrameWorker

__all__ = [
    "ActionClassifier",
    "ActionEvent",
    "AssemblyError",
    "ClassificationResult",
    "EventChannel",
    "FailedFramePolicy",
    "FallAlertEvent",
    "FallAlertMonitor",
    "FallDetectorError",
    "FrameWorker",
    "KEYPOINT_NAMES",
    "Keypoint",
    "ModelInputAssembler",
    "PointsEvent",
    "PoseConversionError",
    "PoseEstimator",
    "PoseObservation",
    "PoseWindow",
    "Predictor",
]

__version__ = "1.0.0"
