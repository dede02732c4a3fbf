"""
Audio session client for an SFU reached over JSON RPC.
"""

from .client import AudioSessionClient
from .config import ClientConfig
from .errors import (
    ConfigResolutionFailed,
    NegotiationError,
    PermissionDenied,
    ProtocolMismatch,
    SessionStale,
    TransportFailure,
)
from .identity import SessionIdentity, create_identity, decode_username, encode_username

__all__ = [
    "AudioSessionClient",
    "ClientConfig",
    "ConfigResolutionFailed",
    "NegotiationError",
    "PermissionDenied",
    "ProtocolMismatch",
    "SessionIdentity",
    "SessionStale",
    "TransportFailure",
    "create_identity",
    "decode_username",
    "encode_username",
]
