"""
Utility Functions and Helpers

Common utilities for the depth volume pipeline.
"""

from .config_manager import ConfigManager

__all__ = ['ConfigManager']
