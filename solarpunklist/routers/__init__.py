"""Routers package for API endpoints.

This package contains the FastAPI routers for the SolarpunkList directory.
"""

from solarpunklist.routers import admin, communities, submissions

__all__ = ["admin", "communities", "submissions"]
