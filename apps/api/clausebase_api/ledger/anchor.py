"""Ledger anchors for merge proofs.

An anchor appends a proof record (content hash plus the original author's
ledger identity) somewhere tamper-evident and returns a transaction id. Every
failure surfaces as a ``LedgerAnchorError`` subclass; callers treat those as
"anchoring failed", never as "merge failed".
"""

import base64
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from clausebase_api.ledger.errors import (
    LedgerNetworkError,
    RejectedByLedger,
    SignerNotConfigured,
)
from clausebase_api.ledger.service import LedgerService
from clausebase_api.ledger.signer import SignerCredential, get_signer_credential
from clausebase_api.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

UNKNOWN_IDENTITY = "unknown"


def build_proof_memo(content_hash: str, attributed_identity: Optional[str], prefix: Optional[str] = None) -> str:
    """Memo text recorded on the ledger for a merged version."""
    prefix = prefix or settings.ledger_memo_prefix
    return f"{prefix}:{content_hash}:CreatedBy:{attributed_identity or UNKNOWN_IDENTITY}"


class LedgerAnchor(ABC):
    """Abstract ledger anchor interface."""

    provider: str = ""

    @abstractmethod
    def anchor(self, content_hash: str, attributed_identity: Optional[str], stream: str) -> str:
        """Anchor a proof record and return its transaction id."""
        pass


class LocalLedgerAnchor(LedgerAnchor):
    """Anchors proofs into the local hash-chained ledger table."""

    provider = "local"

    def __init__(self, db: Session):
        """Initialize local anchor on a session."""
        self.ledger = LedgerService(db)

    def anchor(self, content_hash: str, attributed_identity: Optional[str], stream: str) -> str:
        event = self.ledger.append_event(
            stream,
            "proof.anchored",
            {
                "content_hash": content_hash,
                "attributed_identity": attributed_identity or UNKNOWN_IDENTITY,
                "memo": build_proof_memo(content_hash, attributed_identity),
            },
        )
        return event.event_hash


class HttpLedgerAnchor(LedgerAnchor):
    """Submits signed proof memos to a ledger gateway over HTTP."""

    provider = "http"

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        signer: Optional[SignerCredential] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize gateway client; the signer is resolved lazily."""
        self.gateway_url = (gateway_url or settings.ledger_gateway_url or "").rstrip("/")
        self._signer = signer
        self.timeout_seconds = timeout_seconds or settings.ledger_anchor_timeout_seconds
        self._transport = transport

    @property
    def signer(self) -> SignerCredential:
        if self._signer is None:
            self._signer = get_signer_credential()
        return self._signer

    def anchor(self, content_hash: str, attributed_identity: Optional[str], stream: str) -> str:
        if not self.gateway_url:
            raise SignerNotConfigured("LEDGER_GATEWAY_URL not set")

        signer = self.signer
        memo = build_proof_memo(content_hash, attributed_identity)
        signature = base64.b64encode(signer.sign(memo.encode("utf-8"))).decode("ascii")

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.post(
                    f"{self.gateway_url}/v1/memos",
                    json={
                        "memo": memo,
                        "signer": signer.public_key,
                        "signature": signature,
                        "stream": stream,
                    },
                )
        except httpx.TimeoutException as e:
            raise LedgerNetworkError(f"Ledger gateway timed out after {self.timeout_seconds}s: {e}")
        except httpx.HTTPError as e:
            raise LedgerNetworkError(f"Ledger gateway unreachable: {e}")

        if response.status_code >= 500:
            raise LedgerNetworkError(f"Ledger gateway returned {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or body.get("error"):
            raise RejectedByLedger(
                f"Ledger rejected proof ({response.status_code}): {body.get('error') or response.text[:200]}"
            )

        tx_id = body.get("signature") or body.get("tx_id")
        if not tx_id:
            raise RejectedByLedger("Ledger response did not include a transaction id")

        logger.info(f"Contract proof stored on ledger: {tx_id}")
        return tx_id


class DisabledLedgerAnchor(LedgerAnchor):
    """Hash-only mode: anchoring always reports a missing signer."""

    provider = "disabled"

    def anchor(self, content_hash: str, attributed_identity: Optional[str], stream: str) -> str:
        raise SignerNotConfigured("Ledger anchoring is disabled")


def get_ledger_anchor(db: Session) -> LedgerAnchor:
    """Get ledger anchor instance based on settings."""
    provider = settings.ledger_anchor_provider.lower()

    if provider == "local":
        return LocalLedgerAnchor(db)
    elif provider == "http":
        return HttpLedgerAnchor()
    elif provider == "disabled":
        return DisabledLedgerAnchor()
    else:
        raise ValueError(f"Unknown ledger anchor provider: {provider}")
