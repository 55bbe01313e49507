"""
Presentation layer: the HTTP API.
"""
