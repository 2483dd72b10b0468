"""
Fleet config file (ssh_config format) handling
"""
from .document import ConfigDocument, HostBlock, RawSegment
from .parser import parse_document, serialize_document
from .store import SshConfigStore, validate_host_name

__all__ = [
    "ConfigDocument",
    "HostBlock",
    "RawSegment",
    "parse_document",
    "serialize_document",
    "SshConfigStore",
    "validate_host_name",
]
