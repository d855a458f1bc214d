"""
Utility Module for the Bill Extraction Pipeline.

Common utilities used across all other modules:
    - Logging configuration
    - Custom exceptions
    - Small helpers
"""

from .logger import setup_logger, get_logger
from .helpers import ensure_directory, get_file_extension, vendor_key, merge_vendor_categories

__all__ = [
    'setup_logger',
    'get_logger',
    'ensure_directory',
    'get_file_extension',
    'vendor_key',
    'merge_vendor_categories'
]
