# Configuration package
"""
Configuration package for the storefront backend.
Exports settings from settings.py for easy import
"""
from .settings import Settings, get_settings, validate_settings

__all__ = ["Settings", "get_settings", "validate_settings"]
