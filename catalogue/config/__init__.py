# Settings layer
"""
================================================================================
FILE: catalogue/config/__init__.py
================================================================================

PURPOSE:
    Package initialization for configuration layer. Exports Settings and the
    resolved connection profile types for easy imports throughout codebase.

TESTING ENVIRONMENT:
    - Import: from catalogue.config import Settings
"""

from catalogue.config.settings import ConnectionConfig, ConnectionMode, Settings

__all__ = ["Settings", "ConnectionConfig", "ConnectionMode"]
