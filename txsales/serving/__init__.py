"""
Serving Module
"""
from .cache import QueryCache

__all__ = [
    "QueryCache",
]
