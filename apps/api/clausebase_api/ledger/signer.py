"""Signer credential for ledger proof records.

The accepted credential encoding is base64 of the 64-byte Ed25519 keypair
(32-byte seed followed by the 32-byte public key), which is the keypair file
layout written by the Solana CLI. The base64-encoded JSON array form of the
same 64 bytes is also accepted since that is what most operators paste from
the keypair file.
"""

import base64
import binascii
import json
import logging
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from clausebase_api.ledger.errors import SignerNotConfigured
from clausebase_api.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

KEYPAIR_LENGTH = 64
SEED_LENGTH = 32


def _decode_keypair(credential: str) -> bytes:
    """Decode a credential string into the raw 64-byte keypair."""
    try:
        raw = base64.b64decode(credential.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise SignerNotConfigured("Signer credential is not valid base64")

    if len(raw) == KEYPAIR_LENGTH:
        return raw

    # base64 of a JSON array of byte values
    try:
        values = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        values = None
    if isinstance(values, list) and len(values) == KEYPAIR_LENGTH:
        try:
            return bytes(values)
        except (TypeError, ValueError):
            pass

    raise SignerNotConfigured(
        "Invalid signer credential. Expected base64 of a 64-byte Ed25519 keypair."
    )


class SignerCredential:
    """Ed25519 signing key used to attribute proof records to this service."""

    def __init__(self, keypair: bytes):
        """Initialize from a raw 64-byte keypair."""
        if len(keypair) != KEYPAIR_LENGTH:
            raise SignerNotConfigured("Signer keypair must be 64 bytes")
        self._private_key = Ed25519PrivateKey.from_private_bytes(keypair[:SEED_LENGTH])
        public_bytes = self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        if public_bytes != keypair[SEED_LENGTH:]:
            raise SignerNotConfigured("Signer keypair public half does not match its seed")
        self._public_bytes = public_bytes

    @classmethod
    def from_string(cls, credential: str) -> "SignerCredential":
        """Parse a credential in the documented encoding."""
        return cls(_decode_keypair(credential))

    @property
    def public_key(self) -> str:
        """Base64 public key identifying the signer."""
        return base64.b64encode(self._public_bytes).decode("ascii")

    def sign(self, data: bytes) -> bytes:
        """Sign data with Ed25519."""
        return self._private_key.sign(data)


def get_signer_credential(credential: Optional[str] = None) -> SignerCredential:
    """Load signer credential from argument or settings."""
    credential = credential or settings.ledger_signer_credential
    if not credential:
        raise SignerNotConfigured("LEDGER_SIGNER_CREDENTIAL not set")
    return SignerCredential.from_string(credential)
