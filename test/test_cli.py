#!/usr/bin/env python3
"""
Tests for the command-line runner.
"""

import os
import sys
import threading
import time
import unittest
from unittest.mock import MagicMock, patch

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fall_detector.cli import main, parse_source


class TestCli(unittest.TestCase):
    """Tests for the CLI main loop with a mocked OpenCV capture."""

    def setUp(self):
        """Set up test fixtures."""
        self.frame = np.zeros((10, 10, 3), dtype=np.uint8)

        self.capture = MagicMock()
        self.capture.isOpened.return_value = True

        self.predictor = MagicMock()

        patches = [
            patch("fall_detector.cli.cv2.VideoCapture", return_value=self.capture),
            patch("fall_detector.cli.ActionClassifier"),
            patch("fall_detector.cli.Predictor", return_value=self.predictor),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def test_parse_source(self):
        self.assertEqual(parse_source("0"), 0)
        self.assertEqual(parse_source("clip.mp4"), "clip.mp4")

    def test_video_file_processes_every_frame(self):
        self.capture.read.side_effect = [(True, self.frame)] * 200 + [(False, None)]
        self.predictor.process_frame.side_effect = lambda frame: time.sleep(0.002)

        self.assertEqual(main(["--source", "clip.mp4"]), 0)

        self.assertEqual(self.predictor.process_frame.call_count, 200)
        self.capture.release.assert_called_once()
        self.predictor.close.assert_called_once()

    def test_camera_drops_late_frames(self):
        release = threading.Event()
        reads = {"count": 0}

        def read():
            reads["count"] += 1
            if reads["count"] > 50:
                release.set()
                return False, None
            return True, self.frame

        self.capture.read.side_effect = read
        self.predictor.process_frame.side_effect = lambda frame: release.wait(5)

        self.assertEqual(main(["--source", "0"]), 0)

        self.assertGreaterEqual(self.predictor.process_frame.call_count, 1)
        self.assertLessEqual(self.predictor.process_frame.call_count, 2)

    def test_unopened_source_fails(self):
        self.capture.isOpened.return_value = False

        self.assertEqual(main(["--source", "missing.mp4"]), 1)
        self.predictor.process_frame.assert_not_called()


if __name__ == '__main__':
    unittest.main()
