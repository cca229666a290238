"""
Monitoring — local HTTP view of watcher state.
"""

from .server import create_app, router, control_router

__all__ = ["create_app", "router", "control_router"]
