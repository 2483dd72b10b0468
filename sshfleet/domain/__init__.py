"""
Domain layer: fleet registry, provisioning, dispatch and sequences
"""
from .service import FleetService

__all__ = ["FleetService"]
