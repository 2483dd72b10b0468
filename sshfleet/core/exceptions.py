"""
Unified exception definitions
"""
from typing import Optional


class FleetError(Exception):
    """Base exception class"""
    pass


class ValidationError(FleetError):
    """Bad caller input (empty host, empty name, duplicate name...)"""
    pass


class NotFound(FleetError):
    """Config file absent or unknown server / sequence"""
    pass


class ParseError(FleetError):
    """Malformed host block in the fleet config file"""

    def __init__(self, message: str, line: Optional[int] = None):
        self.message = message
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class DurabilityError(FleetError):
    """Writing the fleet config file failed"""
    pass


class InvalidTransition(FleetError):
    """Server lifecycle transition not allowed"""
    pass


class KeyProviderError(FleetError):
    """Key material error"""
    pass


class AlreadyExists(KeyProviderError):
    """Key pair already exists at the requested path"""
    pass


class GenerationFailed(KeyProviderError):
    """Key pair generation failed"""
    pass


class RemoteSessionError(FleetError):
    """Remote session error"""
    pass


class ConnectError(RemoteSessionError):
    """Could not reach the host"""
    pass


class AuthError(RemoteSessionError):
    """Host rejected the credentials"""
    pass


class Timeout(RemoteSessionError):
    """Host did not answer in time"""
    pass


class Cancelled(RemoteSessionError):
    """Remote call interrupted by the caller"""
    pass
