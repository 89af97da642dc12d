# HTTP layer: router, dependencies, app factory
"""
================================================================================
FILE: catalogue/api/__init__.py
================================================================================

PURPOSE:
    Package initialization for the API layer. Exports the catalogue router
    for inclusion in the FastAPI app: from catalogue.api import router

KEY FACTS:
    - Minimal file (just exports)
    - The app factory lives in catalogue.api.main
"""

from catalogue.api.routes import router

__all__ = ["router"]
