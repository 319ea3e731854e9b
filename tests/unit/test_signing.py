"""
Unit Tests for Request Signing

These tests verify that Signer:
- Produces deterministic HMAC-SHA256 hex signatures
- Signs the exact bytes that are sent
- Refuses empty credentials before any network call
- Never exposes the secret

Run with:
    pytest tests/unit/test_signing.py -v
"""

import hashlib
import hmac

import pytest

from core.exceptions import SigningPrecondition
from core.schemas import Credential
from core.signing import Signer, encode_body


@pytest.fixture
def signer():
    return Signer(Credential(key="api-key", secret="api-secret"))


class TestEncodeBody:

    def test_keys_sorted_and_compact(self):
        assert encode_body({"timestamp": 1, "market": "BTCUSDT"}) == b'{"market":"BTCUSDT","timestamp":1}'

    def test_insertion_order_irrelevant(self):
        assert encode_body({"a": 1, "b": 2}) == encode_body({"b": 2, "a": 1})


class TestSignatures:

    def test_known_signature(self, signer):
        expected = hmac.new(b"api-secret", b"payload", hashlib.sha256).hexdigest()
        assert signer.sign(b"payload") == expected

    def test_same_input_same_signature(self, signer):
        assert signer.sign("payload") == signer.sign("payload")

    def test_different_secret_different_signature(self, signer):
        other = Signer(Credential(key="api-key", secret="other-secret"))
        assert signer.sign("payload") != other.sign("payload")

    def test_signature_is_lowercase_hex(self, signer):
        signature = signer.sign("payload")
        assert len(signature) == 64
        assert signature == signature.lower()
        int(signature, 16)

    def test_sign_body_signs_transmitted_bytes(self, signer):
        payload, signature = signer.sign_body({"timestamp": 1700000000000, "market": "BTCUSDT"})

        assert payload == b'{"market":"BTCUSDT","timestamp":1700000000000}'
        assert signature == signer.sign(payload)

    def test_sign_auth_uses_key_and_timestamp(self, signer):
        assert signer.sign_auth(1700000000000) == signer.sign("api-key1700000000000")

    def test_auth_headers(self, signer):
        headers = signer.auth_headers("abc")
        assert headers == {
            "X-AUTH-APIKEY": "api-key",
            "X-AUTH-SIGNATURE": "abc",
            "Content-Type": "application/json",
        }


class TestPreconditions:

    def test_missing_credential(self):
        with pytest.raises(SigningPrecondition):
            Signer(None)

    def test_empty_key(self):
        with pytest.raises(SigningPrecondition, match="key"):
            Signer(Credential(key="", secret="secret"))

    def test_empty_secret(self):
        with pytest.raises(SigningPrecondition, match="secret"):
            Signer(Credential(key="key", secret="   "))

    def test_repr_hides_secret(self, signer):
        assert "api-secret" not in repr(signer)
