"""Signature credentials presented by holders and checkers.

A credential is a JSON document ``{"commitment", "message", "signature"}``
wrapped in a ``{"type", "pcd"}`` envelope. The commitment is the holder's
public key; the signature covers the UTF-8 message.

Feed polls sign ``{"timestamp": <ms>}`` so stale credentials can be refused.
Checkers sign the fixed :data:`ISSUANCE_STRING`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Final

from ticketpipe.domain.clock import to_millis, utcnow
from ticketpipe.domain.errors import InvalidCredentialError, MissingCredentialError
from ticketpipe.domain.model import canonical_json

if TYPE_CHECKING:
    from ticketpipe.domain.artifact_cache import VerificationCache
    from ticketpipe.domain.clock import Clock
    from ticketpipe.domain.ports.signing import SignatureVerifier, Signer

log = getLogger(__name__)

SIGNATURE_CREDENTIAL_TYPE: Final[str] = "signature-credential"
ISSUANCE_STRING: Final[str] = "Issue me PCDs please."
CLOCK_SKEW: Final[timedelta] = timedelta(minutes=5)


@dataclass(frozen=True, slots=True)
class SerializedCredential:
    type: str
    pcd: str

    def to_bytes(self) -> bytes:
        return canonical_json({"type": self.type, "pcd": self.pcd}).encode("utf-8")


@dataclass(frozen=True, slots=True, kw_only=True)
class SignatureCredential:
    commitment: str
    message: str
    signature: str

    @classmethod
    def parse(cls, credential: SerializedCredential) -> SignatureCredential:
        if credential.type != SIGNATURE_CREDENTIAL_TYPE:
            raise InvalidCredentialError(f"Unsupported credential type: {credential.type}")
        try:
            document = json.loads(credential.pcd)
        except json.JSONDecodeError as exc:
            raise InvalidCredentialError("Credential payload is not valid JSON") from exc
        if not isinstance(document, dict):
            raise InvalidCredentialError("Credential payload must be an object")
        fields = {key: document.get(key) for key in ("commitment", "message", "signature")}
        missing = sorted(key for key, value in fields.items() if not isinstance(value, str))
        if missing:
            raise InvalidCredentialError(f"Credential is missing: {', '.join(missing)}")
        return cls(
            commitment=str(fields["commitment"]),
            message=str(fields["message"]),
            signature=str(fields["signature"]),
        )


def feed_credential_message(timestamp_ms: int) -> str:
    return canonical_json({"timestamp": timestamp_ms})


def build_signature_credential(signer: Signer, message: str) -> SerializedCredential:
    """Produce a credential signed by ``signer``. Used by clients and tests."""

    pcd = canonical_json(
        {
            "commitment": signer.public_key,
            "message": message,
            "signature": signer.sign(message.encode("utf-8")),
        }
    )
    return SerializedCredential(type=SIGNATURE_CREDENTIAL_TYPE, pcd=pcd)


class CredentialVerifier:
    def __init__(
        self,
        verify_signature: SignatureVerifier,
        cache: VerificationCache,
        *,
        max_age: timedelta,
        clock: Clock = utcnow,
    ) -> None:
        self._verify_signature = verify_signature
        self._cache = cache
        self._max_age = max_age
        self._clock = clock

    def verify(self, credential: SerializedCredential) -> SignatureCredential:
        parsed = SignatureCredential.parse(credential)
        valid = self._cache.verify(
            credential.to_bytes(),
            lambda: self._verify_signature(
                parsed.commitment, parsed.message.encode("utf-8"), parsed.signature
            ),
        )
        if not valid:
            log.info("Rejected credential for commitment %s", parsed.commitment)
            raise InvalidCredentialError("Credential signature does not verify")
        return parsed

    def verify_feed_credential(self, credential: SerializedCredential | None) -> str:
        """Return the holder's commitment for a fresh, valid feed credential."""

        if credential is None:
            raise MissingCredentialError("This feed requires a credential")
        parsed = self.verify(credential)
        try:
            payload = json.loads(parsed.message)
        except json.JSONDecodeError as exc:
            raise InvalidCredentialError("Feed credential message is not valid JSON") from exc
        timestamp = payload.get("timestamp") if isinstance(payload, dict) else None
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            raise InvalidCredentialError("Feed credential carries no timestamp")

        now = to_millis(self._clock())
        age_ms = now - timestamp
        if age_ms > self._max_age.total_seconds() * 1000:
            raise InvalidCredentialError("Feed credential has expired")
        if -age_ms > CLOCK_SKEW.total_seconds() * 1000:
            raise InvalidCredentialError("Feed credential is dated in the future")
        return parsed.commitment

    def verify_checker_credential(self, credential: SerializedCredential) -> str:
        """Return the checker's commitment for a valid issuance-string credential."""

        parsed = self.verify(credential)
        if parsed.message != ISSUANCE_STRING:
            raise InvalidCredentialError("Checker credential signs an unexpected message")
        return parsed.commitment
