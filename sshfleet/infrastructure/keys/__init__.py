"""
Local key material
"""
from .local import LocalKeyProvider

__all__ = ["LocalKeyProvider"]
