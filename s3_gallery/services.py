from __future__ import annotations
"""Thin object store client over a single S3 bucket."""
import logging
from typing import Callable

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .models import ListingPage, ObjectMetadata, StoredObject
from .profiles import ConnectionProfile

LOGGER = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the object store rejects or fails a request.

    A missing key is reported exactly like any other backend failure.
    """


class S3ObjectStore:
    """Single-object get/put/delete and one page of a listing for one bucket."""

    def __init__(
        self,
        profile: ConnectionProfile,
        *,
        client_factory: Callable[..., object] | None = None,
        page_size: int = 0,
        acl: str = "",
    ):
        self._profile = profile
        self._client_factory = client_factory or boto3.client
        self._page_size = page_size
        self._acl = acl
        self._client = None

    @property
    def bucket(self) -> str:
        return self._profile.bucket

    @property
    def endpoint_url(self) -> str:
        return self._profile.endpoint_url

    def list_page(self, continuation_token: str | None = None) -> ListingPage:
        """Return one page of the bucket listing.

        Raises:
            StorageError: when the backend request fails.
        """

        params: dict[str, object] = {"Bucket": self.bucket}
        if self._page_size > 0:
            params["MaxKeys"] = self._page_size
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        try:
            response = self._get_client().list_objects_v2(**params)
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to list objects in '{self.bucket}'") from exc

        entries = [
            ObjectMetadata(key=obj["Key"], last_modified=obj.get("LastModified"))
            for obj in response.get("Contents", [])
        ]
        return ListingPage(
            entries=entries,
            truncated=bool(response.get("IsTruncated", False)),
            next_token=response.get("NextContinuationToken"),
        )

    def put(self, key: str, mime_type: str, data: bytes) -> None:
        params: dict[str, object] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": mime_type,
            "ContentLength": len(data),
        }
        if self._acl:
            params["ACL"] = self._acl
        try:
            self._get_client().put_object(**params)
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to store '{key}'") from exc
        LOGGER.debug("Stored '%s' (%s, %d bytes)", key, mime_type, len(data))

    def get(self, key: str) -> StoredObject:
        try:
            response = self._get_client().get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            try:
                data = body.read()
            finally:
                body.close()
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to fetch '{key}'") from exc
        return StoredObject(
            key=key,
            data=data,
            last_modified=response.get("LastModified"),
            content_type=response.get("ContentType"),
        )

    def delete(self, key: str) -> None:
        try:
            self._get_client().delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to delete '{key}'") from exc
        LOGGER.debug("Deleted '%s'", key)

    def _get_client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        config = Config(signature_version="s3v4", s3={"addressing_style": "path"})
        kwargs: dict[str, object] = {
            "endpoint_url": self._profile.endpoint_url,
            "aws_access_key_id": self._profile.access_key,
            "aws_secret_access_key": self._profile.secret_key,
            "config": config,
        }
        if self._profile.region:
            kwargs["region_name"] = self._profile.region
        LOGGER.debug("Creating S3 client for bucket '%s' at %s", self.bucket, self.endpoint_url)
        return self._client_factory("s3", **kwargs)
