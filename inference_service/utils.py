#!/usr/bin/env python3
"""
Helpers for the Fall Detector service.

Frame decoding and bookkeeping for WebSocket clients. Every client streams
its own video, so every connection owns its own predictor and pose window.
"""

import logging
from typing import Callable, Dict, List, Optional

import cv2
import numpy as np
from fastapi import WebSocket

from fall_detector.predictor import Predictor

logger = logging.getLogger(__name__)


def decode_frame(data: bytes) -> Optional[np.ndarray]:
    """
    Decode an encoded image (JPEG, PNG, ...) into a BGR frame.

    Args:
        data: Binary image data

    Returns:
        Decoded frame, or None if the data is not a readable image
    """
    if not data:
        return None

    try:
        return cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
    except cv2.error as e:
        logger.warning(f"Error decoding frame: {e}")
        return None


class Connection:
    """A WebSocket client and the predictor serving its stream."""

    def __init__(self, websocket: WebSocket, predictor: Predictor):
        """
        Initialize the connection.

        Args:
            websocket: WebSocket connection
            predictor: Predictor for this client's frames
        """
        self.websocket = websocket
        self.predictor = predictor
        self.client_id = id(websocket)


class ConnectionManager:
    """
    Manager for WebSocket connections.

    The manager only tracks connections. Each predictor is closed by the
    handler that serves its client, since that handler may still be using it.
    """

    def __init__(self, on_change: Optional[Callable[[int], None]] = None):
        """
        Initialize the connection manager.

        Args:
            on_change: Called with the number of connections whenever it changes
        """
        self.active_connections: List[Connection] = []
        self._on_change = on_change

    async def connect(self, websocket: WebSocket, predictor: Predictor) -> Connection:
        """
        Accept a WebSocket and register it.

        Args:
            websocket: WebSocket connection
            predictor: Predictor that will serve the client

        Returns:
            The registered connection
        """
        await websocket.accept()
        connection = Connection(websocket, predictor)
        self.active_connections.append(connection)
        logger.info(f"New WebSocket connection: {connection.client_id}")
        self._notify()
        return connection

    def disconnect(self, websocket: WebSocket) -> Optional[Connection]:
        """
        Unregister a WebSocket.

        Args:
            websocket: WebSocket connection

        Returns:
            The removed connection, or None if it was already removed
        """
        for i, connection in enumerate(self.active_connections):
            if connection.websocket == websocket:
                self.active_connections.pop(i)
                logger.info(f"WebSocket disconnected: {connection.client_id}")
                self._notify()
                return connection
        return None

    async def broadcast_excluding(self, message: Dict, exclude_websocket: WebSocket):
        """
        Send a JSON message to every connection except one.

        Connections that fail to receive it are unregistered.

        Args:
            message: Message to broadcast
            exclude_websocket: WebSocket to exclude
        """
        disconnected = []
        for connection in list(self.active_connections):
            if connection.websocket == exclude_websocket:
                continue
            try:
                await connection.websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error broadcasting to {connection.client_id}: {e}")
                disconnected.append(connection)

        # Clean up disconnected connections
        for connection in disconnected:
            self.disconnect(connection.websocket)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(len(self.active_connections))
