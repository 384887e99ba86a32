"""
PuttSetup API Module

FastAPI routes and WebSocket handlers for the putting setup.
"""

from .routes import router
from .websocket import websocket_endpoint, manager

__all__ = [
    "router",
    "websocket_endpoint",
    "manager",
]
