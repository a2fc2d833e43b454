#!/usr/bin/env python3
"""
Unit tests for the pose window and model input assembly.
"""

import os
import sys
import threading
import unittest

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fall_detector.assembler import FailedFramePolicy, ModelInputAssembler
from fall_detector.exceptions import AssemblyError, PoseConversionError
from fall_detector.pose import KEYPOINT_NAMES, Keypoint, PoseObservation
from fall_detector.window import PoseWindow
from helpers import broken_observation, numbered_observation, standing_observation


class TestPoseObservation(unittest.TestCase):
    """Tests for PoseObservation."""

    def test_keypoints_array_layout(self):
        """Channels are x, y, confidence across the 18 keypoints."""
        observation = standing_observation()
        array = observation.keypoints_array()

        self.assertEqual(array.shape, (1, 3, 18))
        self.assertEqual(array.dtype, np.float32)
        for i, keypoint in enumerate(observation.keypoints):
            self.assertAlmostEqual(array[0, 0, i], keypoint.x, places=5)
            self.assertAlmostEqual(array[0, 1, i], keypoint.y, places=5)
            self.assertAlmostEqual(array[0, 2, i], keypoint.confidence, places=5)

    def test_non_finite_values_fail_conversion(self):
        with self.assertRaises(PoseConversionError):
            broken_observation().keypoints_array()

    def test_from_keypoints_fills_missing_joints(self):
        observation = PoseObservation.from_keypoints([Keypoint("nose", 0.4, 0.2, 0.95)])

        self.assertEqual(len(observation.keypoints), len(KEYPOINT_NAMES))
        self.assertEqual(observation.get("nose"), Keypoint("nose", 0.4, 0.2, 0.95))
        self.assertEqual(observation.get("left_ankle").confidence, 0.0)
        self.assertEqual(observation.recognized_points(), [(0.4, 0.2)])

    def test_unknown_keypoint_name_rejected(self):
        with self.assertRaises(ValueError):
            PoseObservation.from_keypoints([Keypoint("tail", 0.1, 0.1, 1.0)])

    def test_observation_is_immutable(self):
        observation = standing_observation()
        with self.assertRaises(AttributeError):
            observation.keypoints = ()


class TestPoseWindow(unittest.TestCase):
    """Tests for the PoseWindow FIFO buffer."""

    def setUp(self):
        """Set up test fixtures."""
        self.window = PoseWindow(capacity=60)
        self.observations = [numbered_observation(i) for i in range(150)]

    def test_never_exceeds_capacity(self):
        """The window keeps the most recent observations in arrival order."""
        for count, observation in enumerate(self.observations, start=1):
            self.window.append(observation)
            self.assertLessEqual(len(self.window), 60)
            expected = self.observations[max(0, count - 60):count]
            self.assertEqual(list(self.window.snapshot()), expected)

    def test_append_to_full_window_evicts_oldest(self):
        for observation in self.observations[:60]:
            self.window.append(observation)
        self.assertTrue(self.window.is_full())

        self.window.append(self.observations[60])

        self.assertEqual(list(self.window), self.observations[1:61])

    def test_snapshot_is_detached(self):
        self.window.append(self.observations[0])
        snapshot = self.window.snapshot()
        self.window.append(self.observations[1])

        self.assertEqual(snapshot, (self.observations[0],))

    def test_clear(self):
        self.window.append(self.observations[0])
        self.window.clear()
        self.assertEqual(len(self.window), 0)

    def test_invalid_capacity(self):
        with self.assertRaises(ValueError):
            PoseWindow(capacity=0)


    def test_concurrent_appends_and_snapshots(self):
        """Appends from several threads never break capacity or per-thread order."""
        writers, per_writer = 4, 200
        batches = [
            [numbered_observation(w * 1000 + i) for i in range(per_writer)] for w in range(writers)
        ]
        origin = {id(o): (w, i) for w, batch in enumerate(batches) for i, o in enumerate(batch)}
        start = threading.Barrier(writers + 1)
        failures = []

        def in_order(snapshot):
            last = {}
            for observation in snapshot:
                w, i = origin[id(observation)]
                if i <= last.get(w, -1):
                    return False
                last[w] = i
            return True

        def write(batch):
            start.wait()
            for observation in batch:
                self.window.append(observation)

        threads = [threading.Thread(target=write, args=(batch,)) for batch in batches]
        for thread in threads:
            thread.start()

        start.wait()
        while any(thread.is_alive() for thread in threads):
            snapshot = self.window.snapshot()
            if len(snapshot) > 60 or not in_order(snapshot):
                failures.append(snapshot)
        for thread in threads:
            thread.join(5)

        self.assertEqual(failures, [])
        final = self.window.snapshot()
        self.assertEqual(len(final), 60)
        self.assertTrue(in_order(final))

class TestModelInputAssembler(unittest.TestCase):
    """Tests for ModelInputAssembler."""

    def setUp(self):
        """Set up test fixtures."""
        self.assembler = ModelInputAssembler(num_frames=60)

    def assertRealFrame(self, tensor, frame_index, observation_index):
        np.testing.assert_allclose(
            tensor[frame_index], numbered_observation(observation_index).keypoints_array()[0]
        )

    def assertZeroFrames(self, frames):
        self.assertTrue(np.all(frames == 0.0))

    def test_empty_window_is_all_zeros(self):
        tensor = self.assembler.build([])

        self.assertEqual(tensor.shape, (60, 3, 18))
        self.assertEqual(tensor.dtype, np.float32)
        self.assertZeroFrames(tensor)

    def test_full_window_has_no_padding(self):
        window = [numbered_observation(i) for i in range(60)]
        tensor = self.assembler.build(window)

        self.assertEqual(tensor.shape, (60, 3, 18))
        for i in range(60):
            self.assertRealFrame(tensor, i, i)

    def test_partial_window_is_zero_padded_at_the_end(self):
        window = [numbered_observation(i) for i in range(25)]
        tensor = self.assembler.build(window)

        self.assertEqual(tensor.shape, (60, 3, 18))
        for i in range(25):
            self.assertRealFrame(tensor, i, i)
        self.assertZeroFrames(tensor[25:])

    def test_only_first_frames_of_oversized_window_are_used(self):
        window = [numbered_observation(i) for i in range(70)]
        tensor = self.assembler.build(window)

        self.assertEqual(tensor.shape, (60, 3, 18))
        self.assertRealFrame(tensor, 59, 59)

    def test_failed_frame_is_zero_filled_in_place(self):
        window = [numbered_observation(i) for i in range(20)]
        window[7] = broken_observation()

        tensor = self.assembler.build(window)

        self.assertEqual(tensor.shape, (60, 3, 18))
        self.assertRealFrame(tensor, 6, 6)
        self.assertZeroFrames(tensor[7])
        self.assertRealFrame(tensor, 8, 8)
        self.assertZeroFrames(tensor[20:])

    def test_failed_frame_is_dropped_with_skip_policy(self):
        """Skipped frames are not back-filled, so the tensor comes out short."""
        assembler = ModelInputAssembler(num_frames=60, failed_frame_policy=FailedFramePolicy.SKIP)
        window = [numbered_observation(i) for i in range(20)]
        window[7] = broken_observation()

        tensor = assembler.build(window)

        self.assertEqual(tensor.shape, (59, 3, 18))
        expected_order = [i for i in range(20) if i != 7]
        for frame_index, observation_index in enumerate(expected_order):
            self.assertRealFrame(tensor, frame_index, observation_index)
        self.assertZeroFrames(tensor[19:])

    def test_policy_accepts_string(self):
        assembler = ModelInputAssembler(failed_frame_policy="skip")
        self.assertIs(assembler.failed_frame_policy, FailedFramePolicy.SKIP)

    def test_no_slices_raises(self):
        assembler = ModelInputAssembler(num_frames=1, failed_frame_policy="skip")
        with self.assertRaises(AssemblyError):
            assembler.build([broken_observation()])


if __name__ == '__main__':
    unittest.main()
