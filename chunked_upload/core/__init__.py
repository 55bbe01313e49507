"""
Core layer: domain models, interfaces and the upload engine services.
"""
