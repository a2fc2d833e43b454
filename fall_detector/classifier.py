#!/usr/bin/env python3
"""
Action classification dispatch.

Wraps an ONNX Runtime session around the pretrained action classifier. The
classifier is treated as opaque: it consumes a [60, 3, 18] pose tensor and
returns a label together with a probability per label.
"""

import logging
import os
import threading
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import onnxruntime as ort
from pydantic import BaseModel, Field

from .config import (APPLY_SOFTMAX, CLASS_NAMES, MODEL_PATH, NUM_CHANNELS, NUM_KEYPOINTS,
                     PREDICTION_WINDOW_SIZE, get_onnx_providers)

logger = logging.getLogger(__name__)


class ClassificationResult(BaseModel):
    """Top label of one classifier call."""

    label: str = Field(..., description="Predicted action label")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Probability of the label")
    probabilities: Dict[str, float] = Field(
        default_factory=dict, description="Probability for every known label"
    )


class ActionClassifier:
    """
    Pretrained sequence classifier backed by ONNX Runtime.

    ``classify`` never raises: a missing model, a tensor of the wrong shape or
    an inference failure all yield ``None`` so callers can treat it as "no
    classification this frame".
    """

    def __init__(
        self,
        model_path: str = MODEL_PATH,
        class_names: Sequence[str] = CLASS_NAMES,
        providers: Optional[List[str]] = None,
        apply_softmax: bool = APPLY_SOFTMAX,
        input_shape: Sequence[int] = (PREDICTION_WINDOW_SIZE, NUM_CHANNELS, NUM_KEYPOINTS),
        session: Optional[Any] = None,
    ):
        """
        Initialize the classifier.

        Args:
            model_path: Path to the ONNX model
            class_names: Label for each score of a score-vector model
            providers: ONNX Runtime providers
            apply_softmax: Turn raw scores into probabilities
            input_shape: Expected tensor shape, without batch axis
            session: Pre-built inference session (skips loading ``model_path``)
        """
        self.model_path = model_path
        self.class_names = list(class_names)
        self.providers = providers or get_onnx_providers()
        self.apply_softmax = apply_softmax
        self.input_shape = tuple(input_shape)

        self._session = session
        self._input_name: Optional[str] = None
        self._add_batch_axis = False
        self._load_failed = False
        self._lock = threading.Lock()

        if session is not None:
            self._inspect_session(session)

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    def load(self) -> bool:
        """
        Create the inference session if it does not exist yet.

        Returns:
            True if a session is available
        """
        with self._lock:
            if self._session is not None:
                return True

            if not os.path.exists(self.model_path):
                if not self._load_failed:
                    logger.error(f"Model file not found: {self.model_path}")
                self._load_failed = True
                return False

            try:
                logger.info(f"Creating ONNX Runtime session with providers: {self.providers}")
                session = ort.InferenceSession(self.model_path, providers=self.providers)
                self._inspect_session(session)
            except Exception as e:
                if not self._load_failed:
                    logger.error(f"Could not load model {self.model_path}: {e}")
                self._load_failed = True
                return False

            self._session = session
            self._load_failed = False
            return True

    def classify(self, tensor: np.ndarray) -> Optional[ClassificationResult]:
        """
        Run the classifier on one assembled window.

        Args:
            tensor: Model input of shape [60, 3, 18]

        Returns:
            Top label and its confidence, or None if no classification is available
        """
        shape = getattr(tensor, "shape", None)
        if shape is None or tuple(shape) != self.input_shape:
            logger.warning(f"Rejecting model input of shape {shape}, expected {self.input_shape}")
            return None

        if not self.load():
            return None

        try:
            input_data = np.asarray(tensor, dtype=np.float32)
            if self._add_batch_axis:
                input_data = input_data[np.newaxis, ...]

            outputs = self._session.run(None, {self._input_name: input_data})
            return self._decode(outputs)
        except Exception as e:
            logger.error(f"Action classification failed: {e}")
            return None

    def _inspect_session(self, session: Any) -> None:
        model_input = session.get_inputs()[0]
        self._input_name = model_input.name

        # Models exported with a leading batch dimension take [1, 60, 3, 18]
        input_rank = len(model_input.shape or [])
        self._add_batch_axis = input_rank == len(self.input_shape) + 1

        logger.info(f"Model input name: {self._input_name}, rank {input_rank}")

    def _decode(self, outputs: List[Any]) -> Optional[ClassificationResult]:
        # Classifier-style export: (labels, [{label: probability}])
        if len(outputs) >= 2 and _is_probability_map(outputs[1]):
            label = _first_item(outputs[0])
            probabilities = {str(k): float(v) for k, v in _first_item(outputs[1]).items()}
            label = str(label)
            confidence = probabilities.get(label, 0.0)
            return ClassificationResult(
                label=label,
                confidence=_clip_probability(confidence),
                probabilities=probabilities,
            )

        scores = np.asarray(outputs[0], dtype=np.float64).reshape(-1)
        if len(scores) != len(self.class_names):
            logger.error(
                f"Model returned {len(scores)} scores for {len(self.class_names)} class names"
            )
            return None

        if self.apply_softmax:
            exp_scores = np.exp(scores - np.max(scores))
            scores = exp_scores / exp_scores.sum()

        probabilities = {name: float(p) for name, p in zip(self.class_names, scores)}
        label = self.class_names[int(np.argmax(scores))]
        return ClassificationResult(
            label=label,
            confidence=_clip_probability(probabilities.get(label, 0.0)),
            probabilities=probabilities,
        )


def _is_probability_map(output: Any) -> bool:
    if isinstance(output, dict):
        return True
    return isinstance(output, (list, tuple)) and len(output) > 0 and isinstance(output[0], dict)


def _first_item(output: Any) -> Any:
    if isinstance(output, dict):
        return output
    if isinstance(output, np.ndarray):
        return output.reshape(-1)[0]
    return output[0]


def _clip_probability(value: float) -> float:
    return float(min(max(value, 0.0), 1.0))
