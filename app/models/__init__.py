"""
Models package initialization
"""

from .saved_test import SavedTest

# Make models available at package level
__all__ = [
    "SavedTest",
]
