"""
HTTP API for chunked uploads.
"""

from .app import create_app

__all__ = ["create_app"]
