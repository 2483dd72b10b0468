"""
Settings loading
"""
from .loader import ConfigLoader, FleetSettings

__all__ = ["ConfigLoader", "FleetSettings"]
