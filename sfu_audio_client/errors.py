"""
Failure kinds surfaced by the negotiation chain.
"""


class NegotiationError(Exception):
    pass


class TransportFailure(NegotiationError):
    """The RPC call itself failed (network, timeout, bad status, bad body)."""

    def __init__(self, method, message):
        super().__init__(f"{method}: {message}")
        self.method = method


class ProtocolMismatch(NegotiationError):
    """The SFU answered, but not with the descriptor we expected."""


class SessionStale(NegotiationError):
    """The SFU no longer knows our username; only a full restart recovers."""

    def __init__(self, method, message):
        super().__init__(f"{method}: {message}")
        self.method = method


class PermissionDenied(NegotiationError):
    """The local audio device could not be opened."""


class ConfigResolutionFailed(NegotiationError):
    pass
