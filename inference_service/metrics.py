#!/usr/bin/env python3
"""
Prometheus metrics for the Fall Detector service.

Request metrics are recorded by an HTTP middleware; pipeline metrics are
recorded by subscribing to a predictor's event channel.
"""

import logging
import time
from typing import Callable, List

from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response

from fall_detector.config import METRICS_ENABLED
from fall_detector.events import ActionEvent, FallAlertEvent, PointsEvent
from fall_detector.predictor import Predictor

logger = logging.getLogger(__name__)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "fall_detector_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"]
)

REQUEST_LATENCY = Histogram(
    "fall_detector_request_latency_seconds",
    "Histogram of HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0]
)

FRAMES_RECEIVED = Counter(
    "fall_detector_frames_total",
    "Total number of frames received"
)

POSES_DETECTED = Counter(
    "fall_detector_poses_total",
    "Total number of frames with a detected pose"
)

ACTIONS_LABELED = Counter(
    "fall_detector_actions_total",
    "Total number of successful action classifications",
    ["label"]
)

FALL_ALERTS = Counter(
    "fall_detector_fall_alerts_total",
    "Total number of fall alerts raised"
)

PROCESSING_LATENCY = Histogram(
    "fall_detector_processing_seconds",
    "Time from frame arrival to classification result in seconds",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

EXCEPTION_COUNT = Counter(
    "fall_detector_exceptions_total",
    "Total number of exceptions",
    ["type"]
)

WEBSOCKET_CONNECTIONS = Gauge(
    "fall_detector_websocket_connections",
    "Number of active WebSocket connections"
)


def _record_points(event: PointsEvent) -> None:
    POSES_DETECTED.inc()


def _record_action(event: ActionEvent) -> None:
    ACTIONS_LABELED.labels(label=event.label).inc()
    PROCESSING_LATENCY.observe(event.processing_time_ms / 1000.0)


def _record_fall_alert(event: FallAlertEvent) -> None:
    FALL_ALERTS.inc()


def instrument_predictor(predictor: Predictor) -> Callable[[], None]:
    """
    Record pipeline metrics for everything a predictor publishes.

    Args:
        predictor: Predictor to observe

    Returns:
        Function that stops recording
    """
    unsubscribers: List[Callable[[], None]] = [
        predictor.events.subscribe(PointsEvent, _record_points),
        predictor.events.subscribe(ActionEvent, _record_action),
        predictor.events.subscribe(FallAlertEvent, _record_fall_alert),
    ]

    def stop() -> None:
        for unsubscribe in unsubscribers:
            unsubscribe()

    return stop


def record_frame() -> None:
    FRAMES_RECEIVED.inc()


def record_exception(error: Exception) -> None:
    EXCEPTION_COUNT.labels(type=type(error).__name__).inc()


def update_websocket_connections(count: int) -> None:
    """
    Update the number of active WebSocket connections.

    Args:
        count: Number of connections
    """
    WEBSOCKET_CONNECTIONS.set(count)


def setup_metrics(app: FastAPI) -> None:
    """
    Set up metrics for the application.

    Args:
        app: FastAPI application
    """
    if not METRICS_ENABLED:
        return

    @app.middleware("http")
    async def prometheus_middleware(request: Request, call_next):
        method = request.method
        path = request.url.path

        if path == "/metrics":
            # Skip metrics endpoint to avoid recursion
            return await call_next(request)

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            record_exception(e)
            raise

        REQUEST_COUNT.labels(method=method, endpoint=path, status_code=response.status_code).inc()
        REQUEST_LATENCY.labels(method=method, endpoint=path).observe(time.time() - start_time)
        return response

    @app.get("/metrics")
    async def metrics():
        return Response(
            generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    logger.info("Prometheus metrics enabled at /metrics")
