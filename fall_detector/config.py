#!/usr/bin/env python3
"""
Configuration for the Fall Detector.

Values are read from the environment (and an optional ``.env`` file) once at
import time. Constructors throughout the package default to these constants,
so a deployment only needs to set environment variables.
"""

import os
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _get_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# Window / tensor layout
PREDICTION_WINDOW_SIZE = int(os.getenv("PREDICTION_WINDOW_SIZE", 60))
NUM_CHANNELS = 3  # x, y, confidence
NUM_KEYPOINTS = 18
FAILED_FRAME_POLICY = os.getenv("FAILED_FRAME_POLICY", "zero_fill")

# Action classifier
MODEL_PATH = os.getenv("MODEL_PATH", "./models/fall_detection.onnx")
CLASS_NAMES = _get_list("CLASS_NAMES", "Falling,Other")
APPLY_SOFTMAX = _get_bool("APPLY_SOFTMAX", "true")
USE_GPU = _get_bool("USE_GPU", "false")

# Pose estimation
MIN_DETECTION_CONFIDENCE = float(os.getenv("MIN_DETECTION_CONFIDENCE", 0.5))
MIN_TRACKING_CONFIDENCE = float(os.getenv("MIN_TRACKING_CONFIDENCE", 0.5))
MODEL_COMPLEXITY = int(os.getenv("MODEL_COMPLEXITY", 1))

# Fall alerting
FALL_LABEL = os.getenv("FALL_LABEL", "Falling")
FALL_CONFIDENCE_THRESHOLD = float(os.getenv("FALL_CONFIDENCE_THRESHOLD", 0.97))
FALL_ALERT_COOLDOWN = float(os.getenv("FALL_ALERT_COOLDOWN", 3.0))

# Runtime
FRAME_QUEUE_SIZE = int(os.getenv("FRAME_QUEUE_SIZE", 1))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
METRICS_ENABLED = _get_bool("METRICS_ENABLED", "true")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_onnx_providers(use_gpu: bool = USE_GPU) -> List[str]:
    """Return the ONNX Runtime execution providers to try, in order."""
    if use_gpu:
        return ["CUDAExecutionProvider", "CPUExecutionProvider"]
    return ["CPUExecutionProvider"]
