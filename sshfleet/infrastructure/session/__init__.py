"""
SSH transport
"""
from .paramiko_session import ParamikoRemoteSession, map_ssh_error

__all__ = ["ParamikoRemoteSession", "map_ssh_error"]
