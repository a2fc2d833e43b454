#!/usr/bin/env python3
"""
Command-line fall detector.

Reads frames from a webcam or video file with OpenCV and runs them through
the fall detection pipeline on a background worker. Labels and fall alerts
are written to the log.
"""

import argparse
import logging
import sys
from typing import List, Optional, Union

import cv2

from .assembler import FailedFramePolicy, ModelInputAssembler
from .classifier import ActionClassifier
from .config import (CLASS_NAMES, FAILED_FRAME_POLICY, LOG_FORMAT, LOG_LEVEL, MODEL_PATH,
                     PREDICTION_WINDOW_SIZE, get_onnx_providers)
from .events import ActionEvent, FallAlertEvent
from .predictor import Predictor
from .worker import FrameWorker

logger = logging.getLogger(__name__)


def parse_source(value: str) -> Union[int, str]:
    """Webcam indices are given as integers, anything else is a path or URL."""
    try:
        return int(value)
    except ValueError:
        return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Real-time fall detection from a video source")
    parser.add_argument(
        "--source",
        type=parse_source,
        default=0,
        help="Webcam index or path to a video file",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=MODEL_PATH,
        help="Path to the ONNX action classifier",
    )
    parser.add_argument(
        "--class-names",
        type=lambda s: [name.strip() for name in s.split(",") if name.strip()],
        default=CLASS_NAMES,
        help="Comma-separated labels for score-vector models",
    )
    parser.add_argument(
        "--failed-frame-policy",
        type=str,
        default=FAILED_FRAME_POLICY,
        choices=[policy.value for policy in FailedFramePolicy],
        help="How frames whose pose cannot be converted are handled",
    )
    parser.add_argument(
        "--gpu",
        action="store_true",
        help="Use the CUDA execution provider when available",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the script."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=args.log_level, format=LOG_FORMAT)
    logger.info(f"Running with arguments: {args}")

    classifier = ActionClassifier(
        model_path=args.model,
        class_names=args.class_names,
        providers=get_onnx_providers(args.gpu),
    )
    if not classifier.load():
        return 1

    predictor = Predictor(
        classifier=classifier,
        assembler=ModelInputAssembler(
            num_frames=PREDICTION_WINDOW_SIZE,
            failed_frame_policy=args.failed_frame_policy,
        ),
    )
    predictor.events.subscribe(
        ActionEvent,
        lambda event: logger.info(
            f"Frame {event.frame_id}: {event.label} ({event.confidence:.3f})"
        ),
    )
    predictor.events.subscribe(
        FallAlertEvent,
        lambda event: logger.warning(
            f"FALL ALERT at frame {event.frame_id} ({event.confidence:.3f})"
        ),
    )

    capture = cv2.VideoCapture(args.source)
    if not capture.isOpened():
        logger.error(f"Cannot open source: {args.source}")
        return 1

    # Webcams produce frames in real time, so late ones are dropped.
    # Video files are read as fast as the worker can process them.
    live = isinstance(args.source, int)

    try:
        with FrameWorker(predictor) as worker:
            while True:
                ret, frame = capture.read()
                if not ret:
                    break
                worker.submit(frame, block=not live)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        capture.release()
        predictor.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
