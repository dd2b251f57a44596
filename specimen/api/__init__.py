"""
HTTP API for the Specimen rating system.
"""

from .app import create_app

__all__ = ['create_app']
