"""Decides when a classification counts as a fall worth alerting on."""

import logging
import time
from typing import Callable, Optional

from .classifier import ClassificationResult
from .config import FALL_ALERT_COOLDOWN, FALL_CONFIDENCE_THRESHOLD, FALL_LABEL

logger = logging.getLogger(__name__)


class FallAlertMonitor:
    """
    Raises at most one alert per cooldown period.

    An alert fires when the classifier reports ``fall_label`` with a
    confidence strictly above ``threshold``.
    """

    def __init__(
        self,
        fall_label: str = FALL_LABEL,
        threshold: float = FALL_CONFIDENCE_THRESHOLD,
        cooldown: float = FALL_ALERT_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fall_label = fall_label
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self._last_alert: Optional[float] = None

    @property
    def in_cooldown(self) -> bool:
        if self._last_alert is None:
            return False
        return self._clock() - self._last_alert < self.cooldown

    def update(self, result: ClassificationResult) -> bool:
        """
        Feed one classification result.

        Returns:
            True if this result raises a new alert
        """
        if result.label != self.fall_label or result.confidence <= self.threshold:
            return False

        if self.in_cooldown:
            return False

        self._last_alert = self._clock()
        logger.warning(f"Fall detected (confidence {result.confidence:.3f})")
        return True

    def reset(self) -> None:
        self._last_alert = None
