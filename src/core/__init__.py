"""
Core utilities shared across the analyzer, the response side and the generator.
"""

from .logger import level_from_name, setup_logging

__all__ = ["level_from_name", "setup_logging"]
