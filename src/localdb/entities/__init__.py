"""
Entities - Persisted Models and Collections
"""

from .model import Model, Collection

__all__ = ["Model", "Collection"]
