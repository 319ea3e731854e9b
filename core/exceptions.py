"""
Connector Error Taxonomy

Local recovery:
    - TransportError on the streaming path -> reconnect (surfaced once
      reconnection gives up)
    - MalformedMessage -> frame is logged and dropped

Surfaced to the caller:
    - RequestRejected, AuthenticationFailure, SigningPrecondition
"""

from typing import Any, List, Optional


class ConnectorError(Exception):
    """Base class for every error raised by the connectors."""


class TransportError(ConnectorError):
    """
    Connect/send failure or an HTTP call that never got an exchange answer.

    ``results`` carries the PlaceOrderResults of a batch that was cut short,
    one per order submitted before the failure.
    """

    def __init__(self, message: str = "", results: Optional[List[Any]] = None):
        super().__init__(message)
        self.results = list(results or [])


class MalformedMessage(ConnectorError):
    """Inbound frame that could not be parsed into a canonical event."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


class AuthenticationFailure(ConnectorError):
    """Exchange-side rejection of our credentials."""


class RequestRejected(ConnectorError):
    """The exchange answered a REST call with an error."""

    def __init__(self, message: str, status: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is not None:
            return f"{base} (HTTP {self.status}): {self.payload}"
        return base


class SigningPrecondition(ConnectorError):
    """Empty or invalid credential; raised before any network call."""
