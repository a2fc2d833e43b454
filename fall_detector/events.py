#!/usr/bin/env python3
"""
Events published by the predictor and the channel that delivers them.

Consumers register plain callables per event type. The channel keeps those
callables and nothing else, so a consumer's lifetime stays with its owner:
unsubscribing is the only way the channel lets go of a handler.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Literal, Tuple, Type, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class PointsEvent(BaseModel):
    """Recognized body points of one frame, for overlay rendering."""

    type: Literal["points"] = "points"
    points: List[Tuple[float, float]] = Field(..., description="Normalised (x, y) points")
    frame_id: int = Field(..., description="Frame ID")
    timestamp: float = Field(default_factory=time.time, description="Event time")


class ActionEvent(BaseModel):
    """Successful classification of the current window."""

    type: Literal["action"] = "action"
    label: str = Field(..., description="Predicted action label")
    confidence: float = Field(..., description="Confidence score")
    frame_id: int = Field(..., description="Frame ID")
    timestamp: float = Field(default_factory=time.time, description="Event time")
    processing_time_ms: float = Field(0.0, description="Processing time in milliseconds")


class FallAlertEvent(BaseModel):
    """A fall was classified with enough confidence to alert."""

    type: Literal["fall_alert"] = "fall_alert"
    label: str = Field(..., description="Label that triggered the alert")
    confidence: float = Field(..., description="Confidence score")
    frame_id: int = Field(..., description="Frame ID")
    timestamp: float = Field(default_factory=time.time, description="Event time")


E = TypeVar("E", bound=BaseModel)
Handler = Callable[[BaseModel], None]


class EventChannel:
    """Dispatches events to handlers registered for their type."""

    def __init__(self):
        self._handlers: Dict[Type[BaseModel], List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """
        Register a handler for an event type and its subclasses.

        Args:
            event_type: Event class to listen for
            handler: Callable invoked with each matching event

        Returns:
            Function that removes the handler again
        """
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, event: BaseModel) -> None:
        """
        Deliver an event to every matching handler.

        A failing handler is logged and skipped; it never interrupts the
        remaining handlers or the publisher.
        """
        with self._lock:
            handlers = [
                handler
                for event_type, registered in self._handlers.items()
                if isinstance(event, event_type)
                for handler in registered
            ]

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in handler for {type(event).__name__}")

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
