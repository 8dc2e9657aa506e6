"""Object storage backends for the mirror.

Two implementations of the same small capability set:

- ``S3ObjectStore``: the production bucket, read/write, credentials from the
  standard boto3 chain.
- ``CdnObjectStore``: the public CDN in front of the bucket, read-only and
  credential-free, used by pull request validation runs.
"""
import logging
from typing import BinaryIO, Iterable, Optional, Protocol, Union
from urllib.parse import quote

import boto3
import httpx
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ci_mirrors import config
from ci_mirrors.tools.errors import StorageError

logger = logging.getLogger(__name__)

Body = Union[bytes, BinaryIO]


class ObjectStore(Protocol):
    read_only: bool

    def list_existing_names(self, candidates: Optional[Iterable[str]] = None) -> set[str]:
        ...

    def object_exists(self, name: str) -> bool:
        ...

    def put_object(self, name: str, body: Body) -> bool:
        """Create ``name`` if absent. Returns False if it already existed."""
        ...


def public_url(cdn_url: str, name: str) -> str:
    """Permanent public URL of a mirrored object."""
    return f"{cdn_url.rstrip('/')}/{quote(name, safe='/')}"


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _http_status(error: ClientError) -> Optional[int]:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


class S3ObjectStore:
    """Read/write access to the mirror bucket."""

    read_only = False

    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        if client is None:
            client = boto3.client(
                "s3",
                config=BotoConfig(
                    connect_timeout=config.CONNECT_TIMEOUT,
                    read_timeout=config.READ_TIMEOUT,
                    retries={"max_attempts": 3, "mode": "standard"},
                ),
            )
        self.client = client

    def list_existing_names(self, candidates: Optional[Iterable[str]] = None) -> set[str]:
        names = set()
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket):
                for obj in page.get("Contents", []):
                    names.add(obj["Key"])
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"failed to list s3://{self.bucket}: {exc}") from exc

        logger.debug("listed %d objects in s3://%s", len(names), self.bucket)
        if candidates is not None:
            names &= set(candidates)
        return names

    def object_exists(self, name: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=name)
            return True
        except ClientError as exc:
            if _http_status(exc) == 404 or _error_code(exc) in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageError(f"failed to check s3://{self.bucket}/{name}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"failed to check s3://{self.bucket}/{name}: {exc}") from exc

    def put_object(self, name: str, body: Body) -> bool:
        try:
            # IfNoneMatch makes the write conditional on the key being absent.
            # The CI upload role's IAM policy requires it.
            self.client.put_object(
                Bucket=self.bucket,
                Key=name,
                Body=body,
                ContentType="application/octet-stream",
                IfNoneMatch="*",
            )
            return True
        except ClientError as exc:
            if _http_status(exc) == 412 or _error_code(exc) == "PreconditionFailed":
                logger.info("s3://%s/%s was created concurrently, leaving it alone", self.bucket, name)
                return False
            raise StorageError(f"failed to write s3://{self.bucket}/{name}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"failed to write s3://{self.bucket}/{name}: {exc}") from exc


class CdnObjectStore:
    """Read-only view of the mirror through its public CDN."""

    read_only = True

    def __init__(self, cdn_url: str, transport: Optional[httpx.BaseTransport] = None):
        self.cdn_url = cdn_url.rstrip("/")
        self.client = httpx.Client(
            follow_redirects=True,
            max_redirects=config.MAX_REDIRECTS,
            timeout=httpx.Timeout(config.READ_TIMEOUT, connect=config.CONNECT_TIMEOUT),
            headers={"User-Agent": config.USER_AGENT},
            transport=transport,
        )

    def list_existing_names(self, candidates: Optional[Iterable[str]] = None) -> set[str]:
        # A CDN cannot enumerate objects, so probe the names we care about.
        if candidates is None:
            raise StorageError(f"{self.cdn_url} cannot list objects without candidate names")
        return {name for name in candidates if self.object_exists(name)}

    def object_exists(self, name: str) -> bool:
        url = public_url(self.cdn_url, name)
        try:
            response = self.client.head(url)
        except httpx.HTTPError as exc:
            raise StorageError(f"failed to request {url}: {exc}") from exc

        # The bucket answers 403 for missing keys when listing is not allowed.
        if response.status_code == 200:
            return True
        if response.status_code in (403, 404):
            return False
        raise StorageError(f"unexpected status {response.status_code} when requesting {url}")

    def put_object(self, name: str, body: Body) -> bool:
        raise StorageError(f"cannot upload {name}: {self.cdn_url} is read-only")
