"""Exceptions raised inside the fall detection pipeline."""


class FallDetectorError(Exception):
    """Base class for all fall detector errors."""


class PoseConversionError(FallDetectorError):
    """A pose observation could not be turned into a tensor slice."""


class AssemblyError(FallDetectorError):
    """The model input tensor could not be assembled from the window."""
