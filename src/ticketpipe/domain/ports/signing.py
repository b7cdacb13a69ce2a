"""Opaque signing and signature-verification capabilities."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Signer(Protocol):
    """Signs issuance messages with the server key."""

    @property
    def public_key(self) -> str: ...

    def sign(self, message: bytes) -> str: ...


@runtime_checkable
class SignatureVerifier(Protocol):
    """Checks a hex signature over ``message`` against a hex public key."""

    def __call__(self, public_key: str, message: bytes, signature: str) -> bool: ...
