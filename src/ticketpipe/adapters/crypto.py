"""Ed25519 signing and verification backed by ``cryptography``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from ticketpipe.config import ConfigurationError


class Ed25519Signer:
    """Server or holder key. Keys and signatures travel as lowercase hex."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._public_key = (
            private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()
        )

    @classmethod
    def from_hex(cls, private_key_hex: str) -> Ed25519Signer:
        try:
            seed = bytes.fromhex(private_key_hex.strip())
            return cls(Ed25519PrivateKey.from_private_bytes(seed))
        except ValueError as exc:
            raise ConfigurationError("EdDSA private key must be a 32-byte hex seed") from exc

    @classmethod
    def generate(cls) -> Ed25519Signer:
        return cls(Ed25519PrivateKey.generate())

    @property
    def public_key(self) -> str:
        return self._public_key

    @property
    def private_key_hex(self) -> str:
        return self._private_key.private_bytes(
            Encoding.Raw, PrivateFormat.Raw, NoEncryption()
        ).hex()

    def sign(self, message: bytes) -> str:
        return self._private_key.sign(message).hex()


def verify_ed25519_signature(public_key: str, message: bytes, signature: str) -> bool:
    """Return whether ``signature`` is valid; malformed keys or signatures are invalid."""

    try:
        key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key))
        key.verify(bytes.fromhex(signature), message)
    except (ValueError, InvalidSignature):
        return False
    return True


def generate_private_key_hex() -> str:
    return Ed25519Signer.generate().private_key_hex


if TYPE_CHECKING:
    from ticketpipe.domain.ports.signing import SignatureVerifier, Signer

    _signer_check: Signer = Ed25519Signer.generate()
    _verifier_check: SignatureVerifier = verify_ed25519_signature
