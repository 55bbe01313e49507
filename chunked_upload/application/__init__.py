"""
Application layer: component wiring and lifecycle.
"""

from .startup import ApplicationStartup, create_uploader

__all__ = [
    "ApplicationStartup",
    "create_uploader",
]
