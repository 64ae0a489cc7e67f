"""IPFS content store backed by the Pinata pinning API."""

import json
import logging
from typing import Optional

import httpx

from clausebase_api.settings import get_settings
from clausebase_api.storage.service import (
    ContentDecodeError,
    ContentNotFound,
    ContentStore,
    ContentUnavailable,
)

logger = logging.getLogger(__name__)
settings = get_settings()


class IpfsContentStore(ContentStore):
    """Pins content as ``{"content": text}`` JSON and returns the CID."""

    kind = "ipfs"

    def __init__(
        self,
        jwt: Optional[str] = None,
        api_url: Optional[str] = None,
        gateway: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize Pinata client settings."""
        self.jwt = jwt or settings.pinata_jwt
        self.api_url = (api_url or settings.pinata_api_url).rstrip("/")
        self.gateway = (gateway or settings.pinata_gateway).rstrip("/")
        self.timeout = settings.ipfs_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def put(self, blob: bytes) -> str:
        if not self.jwt:
            raise ContentUnavailable("PINATA_JWT must be set to upload to IPFS")
        try:
            text = blob.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ContentDecodeError(f"IPFS store only accepts UTF-8 text: {e}")

        logger.info("Uploading content to Pinata", extra={"size": len(blob)})
        try:
            with self._client() as client:
                response = client.post(
                    f"{self.api_url}/pinning/pinJSONToIPFS",
                    json={"pinataContent": {"content": text}},
                    headers={"Authorization": f"Bearer {self.jwt}"},
                )
                response.raise_for_status()
                cid = response.json().get("IpfsHash")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error uploading to IPFS: {e}")
            raise ContentUnavailable(f"Failed to upload content to IPFS: {e}")

        if not cid:
            raise ContentUnavailable("Pinata response did not include an IpfsHash")
        logger.info(f"Content uploaded to IPFS: {cid}")
        return cid

    def get(self, reference: str) -> bytes:
        try:
            with self._client() as client:
                response = client.get(f"{self.gateway}/ipfs/{reference}")
        except httpx.HTTPError as e:
            raise ContentUnavailable(f"Failed to retrieve content from IPFS: {e}")

        if response.status_code == 404:
            raise ContentNotFound(f"IPFS content not found: {reference}")
        if response.status_code >= 400:
            raise ContentUnavailable(
                f"IPFS gateway returned {response.status_code} for {reference}"
            )

        try:
            payload = response.json()
        except ValueError:
            # Raw (non-JSON) pins are returned as-is
            return response.content

        if isinstance(payload, dict) and isinstance(payload.get("content"), str):
            return payload["content"].encode("utf-8")
        if isinstance(payload, str):
            return payload.encode("utf-8")
        raise ContentDecodeError(
            f"IPFS object {reference} is not a content document: {json.dumps(payload)[:200]}"
        )
