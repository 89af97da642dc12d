# catalogue/__init__.py

"""
Catalogue lookup service package.

This package contains:
- api: FastAPI app factory, routes and dependencies
- config: settings and constants
- core: store handle, connection supervisor, availability gate, logging
"""

__all__ = ["__version__"]

__version__ = "1.0.0"
