"""
Blob Storage — S3

The extraction pipeline only ever reads from object storage: both extraction
strategies need the raw bytes of a stored file, addressed by (bucket, key).

Objects are referenced two ways:
  - by StorageLocation (bucket + key), as carried by storage events
  - by URL, as stored in a content record's file_urls list

parse_storage_url() understands every URL shape the admin panel writes:

    s3://<bucket>/<key>
    https://<bucket>.s3.<region>.amazonaws.com/<key>     (virtual-hosted)
    https://s3.<region>.amazonaws.com/<bucket>/<key>     (path-style)
    https://<host>/.../b/<bucket>/o/<url-encoded key>    (download-URL form)
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from content_pipeline.core.errors import NetworkError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Object reference
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StorageLocation:
    bucket: str
    key:    str

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    @property
    def filename(self) -> str:
        return self.key.rsplit("/", 1)[-1]


_VIRTUAL_HOST_RE = re.compile(r"^(?P<bucket>[^.]+(?:\.[^.]+)*?)\.s3[.-](?:[a-z0-9-]+\.)?amazonaws\.com$")
_PATH_STYLE_HOST_RE = re.compile(r"^s3[.-](?:[a-z0-9-]+\.)?amazonaws\.com$")
_DOWNLOAD_PATH_RE = re.compile(r"/b/(?P<bucket>[^/]+)/o/(?P<key>.+)")


def parse_storage_url(url: str) -> StorageLocation:
    """
    Resolve a stored file URL into bucket + key.

    Raises:
        ValueError: the URL does not match any known storage URL shape.
    """
    parsed = urlparse(url)

    if parsed.scheme == "s3":
        key = parsed.path.lstrip("/")
        if parsed.netloc and key:
            return StorageLocation(bucket=parsed.netloc, key=unquote(key))
        raise ValueError(f"Malformed S3 URI: {url}")

    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Unsupported URL scheme: {url}")

    host = (parsed.hostname or "").lower()

    # S3 keys may contain /b/.../o/ themselves; only other hosts use that form
    if not host.endswith(".amazonaws.com"):
        match = _DOWNLOAD_PATH_RE.search(parsed.path)
        if match:
            return StorageLocation(
                bucket=match.group("bucket"),
                key=unquote(match.group("key")),
            )
        raise ValueError(f"Unrecognised storage URL: {url}")

    match = _VIRTUAL_HOST_RE.match(host)
    if match:
        key = parsed.path.lstrip("/")
        if key:
            return StorageLocation(bucket=match.group("bucket"), key=unquote(key))

    if _PATH_STYLE_HOST_RE.match(host):
        bucket, _, key = parsed.path.lstrip("/").partition("/")
        if bucket and key:
            return StorageLocation(bucket=bucket, key=unquote(key))

    raise ValueError(f"Unrecognised storage URL: {url}")


# ---------------------------------------------------------------------------
# Blob store interface
# ---------------------------------------------------------------------------

class BlobStore(ABC):
    """Read-only view of object storage used by the extraction strategies."""

    @abstractmethod
    async def download(self, bucket: str, key: str) -> bytes:
        """
        Return the raw bytes of a stored object.

        Raises:
            NetworkError: the object could not be fetched.
        """


class S3BlobStore(BlobStore):
    """
    Async S3 downloads through aioboto3.

    One session per instance; a short-lived client is opened per call so the
    store is safe to share across concurrent invocations.
    """

    def __init__(self, region: str, session: aioboto3.Session | None = None) -> None:
        self._region  = region
        self._session = session or aioboto3.Session()

    def _client(self):
        return self._session.client("s3", region_name=self._region)

    async def download(self, bucket: str, key: str) -> bytes:
        async with self._client() as s3:
            try:
                resp = await s3.get_object(Bucket=bucket, Key=key)
                data = await resp["Body"].read()
            except ClientError as exc:
                code = exc.response.get("Error", {}).get("Code", "")
                if code in ("NoSuchKey", "404"):
                    raise NetworkError(f"Object not found: s3://{bucket}/{key}") from exc
                raise NetworkError(f"S3 download failed ({code}): s3://{bucket}/{key}") from exc
            except BotoCoreError as exc:
                raise NetworkError(f"S3 download failed: s3://{bucket}/{key}: {exc}") from exc

        logger.debug("S3 download ok | bucket=%s key=%s size=%d", bucket, key, len(data))
        return data
