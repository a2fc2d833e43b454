#!/usr/bin/env python3
"""
FastAPI service for the Fall Detector.

REST endpoints for single frames and a WebSocket endpoint for streaming.
Streaming clients send encoded frames and receive the pipeline's events as
JSON messages: recognized points, action labels and fall alerts.
"""

import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import Callable, List, Optional, Tuple

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from fall_detector import __version__
from fall_detector.classifier import ActionClassifier
from fall_detector.config import LOG_FORMAT, LOG_LEVEL, MODEL_PATH
from fall_detector.events import ActionEvent, FallAlertEvent, PointsEvent
from fall_detector.pose_estimator import PoseEstimator
from fall_detector.predictor import Predictor

from .metrics import (instrument_predictor, record_exception, record_frame, setup_metrics,
                      update_websocket_connections)
from .utils import ConnectionManager, decode_frame

# Set up logging
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


# Response models
class PredictionResponse(BaseModel):
    """Response model for the single-frame prediction API."""

    frame_id: int = Field(..., description="Frame ID within the shared stream")
    pose_detected: bool = Field(..., description="Whether a pose was found in the frame")
    points: List[Tuple[float, float]] = Field(default_factory=list, description="Recognized points")
    label: Optional[str] = Field(None, description="Predicted action label")
    confidence: Optional[float] = Field(None, description="Confidence score")
    fall_alert: bool = Field(False, description="Whether this frame raised a fall alert")
    window_size: int = Field(..., description="Observations currently in the pose window")


class HealthResponse(BaseModel):
    """Response model for health check API."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = Field(..., description="Service status")
    model: str = Field(..., description="Model name")
    model_loaded: bool = Field(..., description="Whether the classifier session is available")
    version: str = Field(..., description="API version")


class ServiceState:
    """Objects shared by all requests of one application instance."""

    def __init__(self, classifier: ActionClassifier, estimator_factory: Callable[[], PoseEstimator]):
        self.classifier = classifier
        self.estimator_factory = estimator_factory
        self.connection_manager = ConnectionManager(on_change=update_websocket_connections)

        # Stream fed by /predict uploads
        self.predictor = self.new_predictor()
        self.predictor_lock = threading.Lock()

    def new_predictor(self) -> Predictor:
        predictor = Predictor(classifier=self.classifier, estimator=self.estimator_factory())
        instrument_predictor(predictor)
        return predictor

    def close(self) -> None:
        self.predictor.close()


class _EventCollector:
    """Buffers the events published while one frame is processed."""

    def __init__(self, predictor: Predictor):
        self.events = []
        self._unsubscribers = [
            predictor.events.subscribe(event_type, self.events.append)
            for event_type in (PointsEvent, ActionEvent, FallAlertEvent)
        ]

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()


def get_state(request: Request) -> ServiceState:
    """Get the service state."""
    return request.app.state.service


def create_app(
    classifier: Optional[ActionClassifier] = None,
    estimator_factory: Callable[[], PoseEstimator] = PoseEstimator,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        classifier: Action classifier, loaded from ``MODEL_PATH`` if omitted
        estimator_factory: Creates one pose estimator per stream

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the classifier and the shared stream, and release them on shutdown."""
        action_classifier = classifier or ActionClassifier(model_path=MODEL_PATH)

        logger.info(f"Loading action classifier: {action_classifier.model_path}")
        if not action_classifier.load():
            logger.error("Action classifier unavailable, frames will not be classified")

        service = ServiceState(action_classifier, estimator_factory)
        app.state.service = service
        logger.info("Fall detector service initialized")

        yield

        service.close()
        logger.info("Fall detector service shut down")

    app = FastAPI(
        title="Fall Detector API",
        description="Real-time fall detection from body pose sequences",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_metrics(app)

    @app.get("/health", response_model=HealthResponse)
    async def health_check(service: ServiceState = Depends(get_state)):
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            model=os.path.basename(service.classifier.model_path),
            model_loaded=service.classifier.is_loaded,
            version=__version__,
        )

    @app.post("/predict", response_model=PredictionResponse)
    async def predict(
        file: UploadFile = File(...),
        service: ServiceState = Depends(get_state),
    ):
        """
        Add one frame to the shared stream and classify the updated window.

        Args:
            file: Image file

        Returns:
            Prediction response
        """
        frame = decode_frame(await file.read())
        if frame is None:
            raise HTTPException(status_code=400, detail="Invalid image file")
        record_frame()

        def process():
            with service.predictor_lock:
                collector = _EventCollector(service.predictor)
                try:
                    result = service.predictor.process_frame(frame)
                finally:
                    collector.close()
                return result, collector.events, service.predictor.frame_count, len(service.predictor.window)

        result, events, frame_id, window_size = await run_in_threadpool(process)

        points = next((e.points for e in events if isinstance(e, PointsEvent)), None)
        return PredictionResponse(
            frame_id=frame_id,
            pose_detected=points is not None,
            points=points or [],
            label=result.label if result else None,
            confidence=result.confidence if result else None,
            fall_alert=any(isinstance(e, FallAlertEvent) for e in events),
            window_size=window_size,
        )

    @app.delete("/window")
    async def reset_window(service: ServiceState = Depends(get_state)):
        """Clear the pose window of the shared stream."""
        with service.predictor_lock:
            service.predictor.reset()
        return {"status": "ok"}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time predictions.

        Every binary message is one encoded frame. Frames of one connection
        are processed in order; fall alerts are also sent to every other
        connected client.
        """
        service: ServiceState = websocket.app.state.service
        manager = service.connection_manager

        connection = await manager.connect(websocket, service.new_predictor())
        predictor = connection.predictor

        try:
            await websocket.send_json({"type": "connected", "message": "Connected to Fall Detector"})

            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info("WebSocket client disconnected")
                    break

                data = message.get("bytes")
                if data is None:
                    await websocket.send_json({"type": "error", "message": "Expected binary frame data"})
                    continue

                frame = decode_frame(data)
                if frame is None:
                    await websocket.send_json({"type": "error", "message": "Invalid image data"})
                    continue

                record_frame()

                collector = _EventCollector(predictor)
                try:
                    await run_in_threadpool(predictor.process_frame, frame)
                except Exception as e:
                    logger.error(f"Error processing WebSocket frame: {e}")
                    record_exception(e)
                    await websocket.send_json({"type": "error", "message": str(e)})
                    continue
                finally:
                    collector.close()

                for event in collector.events:
                    payload = event.model_dump()
                    await websocket.send_json(payload)
                    if isinstance(event, FallAlertEvent):
                        await manager.broadcast_excluding(payload, websocket)

        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected")
        finally:
            manager.disconnect(websocket)
            predictor.close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inference_service.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 8000)),
    )
