"""
HTTP and WebSocket service for the Fall Detector.

- REST endpoints for health, single-frame prediction and window reset
- WebSocket streaming of pose points, action labels and fall alerts
- Prometheus metrics
"""
