"""
Request Signing

CoinDCX authenticates private calls with an HMAC-SHA256 hex digest of the
exact bytes sent to the server, keyed by the account secret.

Two shapes are signed:
    - REST bodies: JSON-encoded with sorted keys and compact separators.
      The same bytes are then transmitted as the request body, so the
      signature always matches what the server receives.
    - Stream authentication: ``f"{api_key}{timestamp}"``.

The secret is handled as opaque UTF-8 bytes and is never logged.

Usage:
    signer = Signer(credential)
    payload, signature = signer.sign_body({"timestamp": 1700000000000})
    headers = signer.auth_headers(signature)
"""

import hashlib
import hmac
import json
from typing import Any, Dict, Tuple, Union

from core.exceptions import SigningPrecondition
from core.schemas import Credential


def encode_body(body: Dict[str, Any]) -> bytes:
    """
    Serialize a request body deterministically.

    Example:
        >>> encode_body({"timestamp": 1, "market": "BTCUSDT"})
        b'{"market":"BTCUSDT","timestamp":1}'
    """
    return json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")


class Signer:
    """
    HMAC-SHA256 signer bound to one credential.

    Raises:
        SigningPrecondition: If the key or secret is empty
    """

    def __init__(self, credential: Credential):
        if credential is None:
            raise SigningPrecondition("A credential is required for signed requests")

        secret = credential.secret.get_secret_value()
        if not credential.key or not credential.key.strip():
            raise SigningPrecondition("API key is empty")
        if not secret or not secret.strip():
            raise SigningPrecondition("API secret is empty")

        self.api_key = credential.key
        self._secret = secret.encode("utf-8")

    def __repr__(self) -> str:
        return f"<Signer(api_key='{self.api_key[:4]}...')>"

    def sign(self, payload: Union[bytes, str]) -> str:
        """Return the hex HMAC-SHA256 of ``payload``."""
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return hmac.new(self._secret, payload, hashlib.sha256).hexdigest()

    def sign_body(self, body: Dict[str, Any]) -> Tuple[bytes, str]:
        """
        Encode and sign a REST body.

        Returns:
            (payload, signature): the bytes to transmit and their signature
        """
        payload = encode_body(body)
        return payload, self.sign(payload)

    def sign_auth(self, timestamp: int) -> str:
        """Signature for the private stream auth frame."""
        return self.sign(f"{self.api_key}{timestamp}")

    def auth_headers(self, signature: str) -> Dict[str, str]:
        """Headers carried by every signed REST call."""
        return {
            "X-AUTH-APIKEY": self.api_key,
            "X-AUTH-SIGNATURE": signature,
            "Content-Type": "application/json",
        }
