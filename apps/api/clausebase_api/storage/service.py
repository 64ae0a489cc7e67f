"""Content-addressed storage for version content.

Versions store an opaque reference plus the store kind; content is always
resolved through ``ContentStore.get``. The inline store keeps blobs in the
database and is meant for local development and tests. Production uses
MinIO/S3 or IPFS.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Optional

from minio import Minio
from minio.error import S3Error
from sqlalchemy.orm import Session

from clausebase_api.errors import DependencyFailure
from clausebase_api.models import ContentBlob
from clausebase_api.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class ContentStoreError(DependencyFailure):
    """Base error for content store failures."""


class ContentNotFound(ContentStoreError):
    """Reference does not resolve to stored content."""


class ContentUnavailable(ContentStoreError):
    """Store could not be reached or refused the operation."""


class ContentDecodeError(ContentStoreError):
    """Stored payload could not be decoded into content."""


def sha256_reference(blob: bytes) -> str:
    """Build a content-addressed reference for a blob."""
    return f"sha256:{hashlib.sha256(blob).hexdigest()}"


class ContentStore(ABC):
    """Abstract content store interface."""

    kind: str = ""

    @abstractmethod
    def put(self, blob: bytes) -> str:
        """Store blob and return a stable reference."""
        pass

    @abstractmethod
    def get(self, reference: str) -> bytes:
        """Retrieve blob by reference."""
        pass

    def put_text(self, text: str) -> str:
        return self.put(text.encode("utf-8"))

    def get_text(self, reference: str) -> str:
        data = self.get(reference)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ContentDecodeError(f"Content {reference} is not valid UTF-8: {e}")


class InlineContentStore(ContentStore):
    """Database-backed store; writes join the caller's transaction."""

    kind = "inline"

    def __init__(self, db: Session):
        """Initialize inline store on a session."""
        self.db = db

    def put(self, blob: bytes) -> str:
        reference = sha256_reference(blob)
        if self.db.get(ContentBlob, reference) is None:
            self.db.add(ContentBlob(reference=reference, data=blob, size=len(blob)))
            self.db.flush()
        return reference

    def get(self, reference: str) -> bytes:
        blob = self.db.get(ContentBlob, reference)
        if blob is None:
            raise ContentNotFound(f"Content not found: {reference}")
        return blob.data


class S3ContentStore(ContentStore):
    """MinIO (S3-compatible) content store keyed by content hash."""

    kind = "s3"

    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        """Initialize storage service with MinIO client."""
        self.bucket = bucket or settings.minio_bucket
        if client is not None:
            self.client = client
            return
        try:
            self.client = Minio(
                settings.minio_endpoint,
                access_key=settings.minio_access_key,
                secret_key=settings.minio_secret_key,
                secure=settings.minio_use_ssl,
            )
            # Ensure bucket exists
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"Created bucket: {self.bucket}")
        except Exception as e:
            logger.error(f"Failed to initialize MinIO client: {e}")
            self.client = None

    @staticmethod
    def build_object_key(reference: str) -> str:
        """Map a ``sha256:<hex>`` reference to an object key."""
        algorithm, _, digest = reference.partition(":")
        if algorithm != "sha256" or len(digest) != 64 or not all(c in "0123456789abcdef" for c in digest):
            raise ContentNotFound(f"Not an s3 content reference: {reference}")
        return f"contents/{digest}"

    def put(self, blob: bytes) -> str:
        if not self.client:
            raise ContentUnavailable("Storage client not available")

        reference = sha256_reference(blob)
        object_key = self.build_object_key(reference)
        try:
            self.client.put_object(
                self.bucket,
                object_key,
                BytesIO(blob),
                length=len(blob),
                content_type="text/plain; charset=utf-8",
            )
        except S3Error as e:
            logger.error(f"Failed to upload object {object_key}: {e}")
            raise ContentUnavailable(f"Failed to store content: {e}")
        logger.debug(f"Uploaded object: {object_key} ({len(blob)} bytes)")
        return reference

    def get(self, reference: str) -> bytes:
        if not self.client:
            raise ContentUnavailable("Storage client not available")

        object_key = self.build_object_key(reference)
        response = None
        try:
            response = self.client.get_object(self.bucket, object_key)
            return response.read()
        except S3Error as e:
            if e.code == "NoSuchKey":
                raise ContentNotFound(f"Object not found: {object_key}")
            logger.error(f"Failed to retrieve object {object_key}: {e}")
            raise ContentUnavailable(f"Failed to retrieve content: {e}")
        finally:
            if response is not None:
                response.close()
                response.release_conn()

    def is_available(self) -> bool:
        """Check bucket reachability for readiness probes."""
        if not self.client:
            return False
        try:
            return self.client.bucket_exists(self.bucket)
        except S3Error:
            return False


def get_content_store(db: Session, kind: Optional[str] = None) -> ContentStore:
    """Get content store for a kind, defaulting to the configured provider."""
    provider = (kind or settings.content_store_provider).lower()

    if provider == "inline":
        return InlineContentStore(db)
    elif provider == "s3":
        return S3ContentStore()
    elif provider == "ipfs":
        from clausebase_api.storage.ipfs import IpfsContentStore

        return IpfsContentStore()
    else:
        raise ValueError(f"Unknown content store provider: {provider}")
