"""Certificate artifact storage.

Artifacts are cached renderings of completion records, so losing one is never
fatal. ``ArtifactStore`` walks its backends in priority order: writes go to
the first backend that accepts them, reads try the backend that issued the
record's URL first and then the rest. Backend failures are logged and the
next backend is tried.

Backends:
  RemoteObjectStore    -> S3-compatible bucket (boto3); direct public URL
  LocalFilesystemStore -> ``{CERTIFICATES_DIR}/{certificate_id}.pdf``; served
                          through the API download endpoint
"""
import logging
import os
import re
import tempfile
from typing import Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from . import config
from .errors import NotFoundError, StorageError

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def download_url(certificate_id: str, api_base_url: str = "") -> str:
    return f"{api_base_url.rstrip('/')}/learning/certificates/{certificate_id}/download"


class ArtifactBackend:
    """Interface every storage backend implements."""

    name = "backend"

    def store(self, certificate_id: str, user_id: str, content: bytes) -> str:
        raise NotImplementedError

    def retrieve(self, certificate_id: str, user_id: str) -> Optional[bytes]:
        """Return the artifact bytes, ``None`` on a clean miss."""
        raise NotImplementedError

    def owns(self, url: Optional[str]) -> bool:
        """True when ``url`` was issued by this backend."""
        raise NotImplementedError


class RemoteObjectStore(ArtifactBackend):
    name = "s3"

    def __init__(
        self,
        bucket: str,
        client=None,
        public_base_url: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        prefix: str = "emirimo/certificates",
    ):
        if not bucket:
            raise ValueError("bucket is required")
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region or "us-east-1"
        self.prefix = prefix.strip("/")
        self._client = client
        if public_base_url:
            base = public_base_url
        elif endpoint_url:
            base = f"{endpoint_url.rstrip('/')}/{bucket}"
        else:
            base = f"https://{bucket}.s3.{self.region}.amazonaws.com"
        self.public_base_url = base.rstrip("/")

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("s3", endpoint_url=self.endpoint_url, region_name=self.region)
        return self._client

    def key_for(self, certificate_id: str, user_id: str) -> str:
        return f"{self.prefix}/{user_id}/{certificate_id}.pdf"

    def store(self, certificate_id: str, user_id: str, content: bytes) -> str:
        key = self.key_for(certificate_id, user_id)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType="application/pdf",
                Metadata={"certificate_id": certificate_id, "user_id": str(user_id)},
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"put_object failed for {key}: {e}") from e
        return f"{self.public_base_url}/{key}"

    def retrieve(self, certificate_id: str, user_id: str) -> Optional[bytes]:
        key = self.key_for(certificate_id, user_id)
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            raise StorageError(f"get_object failed for {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"get_object failed for {key}: {e}") from e

    def owns(self, url: Optional[str]) -> bool:
        return bool(url) and url.startswith(self.public_base_url + "/")


class LocalFilesystemStore(ArtifactBackend):
    name = "local"

    def __init__(self, directory: str, api_base_url: str = ""):
        self.directory = directory
        self.api_base_url = api_base_url

    def path_for(self, certificate_id: str) -> str:
        if not _SAFE_ID.match(certificate_id or ""):
            raise StorageError(f"unsafe certificate id: {certificate_id!r}")
        return os.path.join(self.directory, f"{certificate_id}.pdf")

    def store(self, certificate_id: str, user_id: str, content: bytes) -> str:
        path = self.path_for(certificate_id)
        tmp = None
        try:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".part")
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.replace(tmp, path)
        except OSError as e:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageError(f"write failed for {path}: {e}") from e
        return download_url(certificate_id, self.api_base_url)

    def retrieve(self, certificate_id: str, user_id: str) -> Optional[bytes]:
        path = self.path_for(certificate_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except OSError as e:
            raise StorageError(f"read failed for {path}: {e}") from e

    def owns(self, url: Optional[str]) -> bool:
        return bool(url) and "/learning/certificates/" in url and url.endswith("/download")


class ArtifactStore:
    def __init__(self, backends: Iterable[ArtifactBackend]):
        self.backends: List[ArtifactBackend] = [b for b in backends if b is not None]
        if not self.backends:
            raise ValueError("at least one artifact backend is required")

    @property
    def primary(self) -> ArtifactBackend:
        return self.backends[0]

    def is_primary_url(self, url: Optional[str]) -> bool:
        return self.primary.owns(url)

    def store(self, certificate_id: str, user_id: str, content: bytes) -> str:
        failures = []
        for backend in self.backends:
            try:
                url = backend.store(certificate_id, user_id, content)
            except Exception as e:
                logging.warning(f"STORAGE write failed backend={backend.name} cert={certificate_id}: {e}")
                failures.append(f"{backend.name}: {e}")
                continue
            logging.info(f"STORAGE stored backend={backend.name} cert={certificate_id} bytes={len(content)}")
            return url
        raise StorageError("all artifact backends failed: " + "; ".join(failures))

    def _read_order(self, url: Optional[str]) -> List[ArtifactBackend]:
        owners = [b for b in self.backends if b.owns(url)]
        return owners + [b for b in self.backends if b not in owners]

    def retrieve(self, certificate_id: str, user_id: str, url: Optional[str] = None) -> bytes:
        for backend in self._read_order(url):
            try:
                content = backend.retrieve(certificate_id, user_id)
            except Exception as e:
                logging.warning(f"STORAGE read failed backend={backend.name} cert={certificate_id}: {e}")
                continue
            if content:
                return content
        raise NotFoundError(f"certificate artifact {certificate_id} not found")


def build_artifact_store() -> ArtifactStore:
    backends: List[ArtifactBackend] = []
    if config.CERT_S3_BUCKET:
        backends.append(RemoteObjectStore(
            config.CERT_S3_BUCKET,
            public_base_url=config.CERT_PUBLIC_BASE_URL,
            endpoint_url=config.CERT_S3_ENDPOINT,
            region=config.CERT_S3_REGION,
        ))
    else:
        logging.info("STORAGE primary object store not configured; using local filesystem only")
    backends.append(LocalFilesystemStore(config.CERTIFICATES_DIR, config.API_BASE_URL))
    return ArtifactStore(backends)
