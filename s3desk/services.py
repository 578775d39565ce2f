from __future__ import annotations
"""Business logic for browsing S3 as a directory tree."""
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import threading
from typing import Callable, Iterable, Optional

import boto3
import botocore.session
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import OperationAbortedError, ProfileCredentialsError, ProfileNotFoundError
from .models import (
    BucketInfo,
    DeletionOutcome,
    ListingPage,
    ObjectEntry,
    ObjectMetadata,
    TransferProgress,
    UploadItem,
    UploadOutcome,
)
from .profiles import ProfileResolver, StaticAuth
from .s3_paths import content_type_for_key, folder_key, to_s3_url
from .settings import DEFAULT_PAGE_SIZE, FALLBACK_REGION, MAX_PAGE_SIZE, EndpointOverride, load_endpoint_override

LOGGER = logging.getLogger(__name__)

ClientFactory = Callable[..., object]
CancelFn = Callable[[], bool]
TransferProgressFn = Callable[[TransferProgress], None]

STORAGE_ERRORS = (ClientError, BotoCoreError)


def create_s3_client(
    service_name: str,
    *,
    profile_name: str | None = None,
    credentials_file: str | None = None,
    config_file: str | None = None,
    **kwargs,
):
    """Create a boto3 client, optionally bound to a named AWS profile.

    Profile-bound clients let botocore run the profile's own credential chain
    (assume-role, SSO, credential_process, web identity). Nothing here talks
    to the network; credentials are fetched lazily on the first request.
    """

    if profile_name is None:
        return boto3.client(service_name, **kwargs)
    botocore_session = botocore.session.Session()
    if credentials_file:
        botocore_session.set_config_variable("credentials_file", credentials_file)
    if config_file:
        botocore_session.set_config_variable("config_file", config_file)
    session = boto3.session.Session(botocore_session=botocore_session, profile_name=profile_name)
    return session.client(service_name, **kwargs)


@dataclass(frozen=True)
class ConnectionHandle:
    """A client bound to one profile name and one endpoint override."""

    profile_name: str
    endpoint_url: Optional[str]
    region: str
    client: object


def _strip_etag(etag: Optional[str]) -> Optional[str]:
    if etag is None:
        return None
    return etag.replace('"', "")


def _raise_if_cancelled(cancel_requested: Optional[CancelFn]) -> None:
    if cancel_requested and cancel_requested():
        raise OperationAbortedError()


class S3DirectoryService:
    """Presents a bucket's flat key space as folders and files.

    Owns at most one cached :class:`ConnectionHandle`; asking for a different
    profile or endpoint drops the previous handle before building a new one.
    """

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        resolver: ProfileResolver | None = None,
        endpoint_override: EndpointOverride | None = None,
    ):
        self._client_factory = client_factory or create_s3_client
        self._resolver = resolver or ProfileResolver()
        self._endpoint_override = endpoint_override
        self._connection: Optional[ConnectionHandle] = None
        self._lock = threading.Lock()

    @classmethod
    def from_environment(
        cls,
        client_factory: ClientFactory | None = None,
        resolver: ProfileResolver | None = None,
    ) -> "S3DirectoryService":
        return cls(
            client_factory=client_factory,
            resolver=resolver,
            endpoint_override=load_endpoint_override(),
        )

    @property
    def resolver(self) -> ProfileResolver:
        return self._resolver

    @property
    def current_profile_name(self) -> Optional[str]:
        connection = self._connection
        return connection.profile_name if connection else None

    @property
    def endpoint_override(self) -> Optional[EndpointOverride]:
        return self._endpoint_override

    def set_endpoint_override(self, override: EndpointOverride | None) -> None:
        with self._lock:
            self._endpoint_override = override
            self._connection = None

    def clear_connection(self) -> None:
        with self._lock:
            if self._connection is not None:
                LOGGER.debug("Dropping connection for profile '%s'", self._connection.profile_name)
            self._connection = None

    def get_connection(self, profile_name: str, force_new: bool = False) -> ConnectionHandle:
        """Return the cached handle for ``profile_name`` or build a new one.

        Raises:
            ProfileNotFoundError | ProfileCredentialsError: when the profile
                cannot be used.
        """

        override = self._endpoint_override
        endpoint_url = override.endpoint_url if override else None
        with self._lock:
            cached = self._connection
            if (
                cached is not None
                and not force_new
                and cached.profile_name == profile_name
                and cached.endpoint_url == endpoint_url
            ):
                return cached
            self._connection = None
            handle = self._build_connection(profile_name, override)
            self._connection = handle
            LOGGER.debug(
                "Created S3 client for profile '%s' (region %s, endpoint %s)",
                profile_name,
                handle.region,
                endpoint_url or "default",
            )
            return handle

    def _build_connection(
        self, profile_name: str, override: EndpointOverride | None
    ) -> ConnectionHandle:
        if override and override.has_static_credentials:
            region = override.region or FALLBACK_REGION
            client = self._client_factory(
                "s3",
                endpoint_url=override.endpoint_url,
                region_name=region,
                aws_access_key_id=override.access_key_id,
                aws_secret_access_key=override.secret_access_key,
                aws_session_token=override.session_token,
                config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
            )
            return ConnectionHandle(profile_name, override.endpoint_url, region, client)

        parsed = self._resolver.load()
        profile = parsed.get(profile_name)
        if profile is None:
            raise ProfileNotFoundError(profile_name)
        if not profile.has_credentials:
            raise ProfileCredentialsError(profile_name, profile.unusable_reason)

        region = profile.region or parsed.default_region or FALLBACK_REGION
        client_kwargs: dict[str, object] = {"region_name": region}
        if override:
            client_kwargs["endpoint_url"] = override.endpoint_url
            client_kwargs["config"] = Config(signature_version="s3v4", s3={"addressing_style": "path"})
        else:
            client_kwargs["config"] = Config(signature_version="s3v4")

        auth = profile.auth
        if isinstance(auth, StaticAuth):
            client_kwargs.update(
                aws_access_key_id=auth.access_key_id,
                aws_secret_access_key=auth.secret_access_key,
                aws_session_token=auth.session_token,
            )
        else:
            client_kwargs["profile_name"] = profile_name
            if self._resolver.credentials_path is not None:
                client_kwargs["credentials_file"] = str(self._resolver.credentials_path)
            if self._resolver.config_path is not None:
                client_kwargs["config_file"] = str(self._resolver.config_path)

        client = self._client_factory("s3", **client_kwargs)
        return ConnectionHandle(
            profile_name, override.endpoint_url if override else None, region, client
        )

    def _client(self, profile_name: str):
        return self.get_connection(profile_name).client

    def list_buckets(self, *, profile_name: str) -> list[BucketInfo]:
        """Return the buckets visible to the profile, sorted by name."""

        response = self._client(profile_name).list_buckets()
        buckets = [
            BucketInfo(name=bucket.get("Name", ""), creation_date=bucket.get("CreationDate"))
            for bucket in response.get("Buckets", [])
        ]
        buckets.sort(key=lambda bucket: bucket.name)
        return buckets

    def list_objects(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        prefix: str = "",
        delimiter: str | None = "/",
        max_keys: int = DEFAULT_PAGE_SIZE,
        continuation_token: str | None = None,
    ) -> ListingPage:
        """Fetch one page of objects.

        An empty ``delimiter`` lists every nested key flatly instead of
        collapsing them into folder entries.
        """

        list_params = {
            "Bucket": bucket_name,
            "MaxKeys": min(max(int(max_keys), 1), MAX_PAGE_SIZE),
        }
        if prefix:
            list_params["Prefix"] = prefix
        if delimiter:
            list_params["Delimiter"] = delimiter
        if continuation_token:
            list_params["ContinuationToken"] = continuation_token

        response = self._client(profile_name).list_objects_v2(**list_params)

        files = [
            ObjectEntry(
                key=obj["Key"],
                size=obj.get("Size") or 0,
                last_modified=obj.get("LastModified"),
                etag=_strip_etag(obj.get("ETag")),
                storage_class=obj.get("StorageClass"),
            )
            for obj in response.get("Contents", [])
            if obj.get("Key") and obj["Key"] != prefix
        ]
        folders = [
            ObjectEntry(key=common["Prefix"], is_prefix=True)
            for common in response.get("CommonPrefixes", [])
            if common.get("Prefix")
        ]
        truncated = bool(response.get("IsTruncated", False))
        return ListingPage(
            prefix=prefix,
            files=files,
            folders=folders,
            is_truncated=truncated,
            continuation_token=response.get("NextContinuationToken") if truncated else None,
            key_count=response.get("KeyCount", 0) or 0,
        )

    def list_all_objects(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        prefix: str = "",
        delimiter: str | None = "/",
        on_progress: Optional[Callable[[int], None]] = None,
        cancel_requested: Optional[CancelFn] = None,
    ) -> ListingPage:
        """Page through a prefix until the listing is exhausted.

        Raises:
            OperationAbortedError: when cancellation is observed before a page
                request. No partial data is returned.
        """

        combined = ListingPage(prefix=prefix)
        token: str | None = None
        while True:
            _raise_if_cancelled(cancel_requested)
            page = self.list_objects(
                profile_name=profile_name,
                bucket_name=bucket_name,
                prefix=prefix,
                delimiter=delimiter,
                max_keys=MAX_PAGE_SIZE,
                continuation_token=token,
            )
            combined.files.extend(page.files)
            combined.folders.extend(page.folders)
            combined.key_count += page.key_count
            LOGGER.debug(
                "Fetched page for s3://%s/%s (%d file(s) so far)",
                bucket_name,
                prefix,
                len(combined.files),
            )
            if on_progress:
                on_progress(len(combined.files))
            if not page.is_truncated or not page.continuation_token:
                return combined
            token = page.continuation_token

    def delete_prefix(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        prefix: str,
        on_progress: Optional[Callable[[int, int], None]] = None,
        cancel_requested: Optional[CancelFn] = None,
    ) -> DeletionOutcome:
        """Delete every object below ``prefix`` one key at a time.

        A non-empty ``prefix`` is treated as a folder, so ``photos`` never
        matches ``photos-backup/``. A failing key does not stop the loop. The
        folder marker itself is removed last on a best-effort basis.
        """

        if prefix:
            prefix = folder_key(prefix)
        outcome = DeletionOutcome()
        if cancel_requested and cancel_requested():
            return self._aborted(outcome)

        try:
            listing = self.list_all_objects(
                profile_name=profile_name,
                bucket_name=bucket_name,
                prefix=prefix,
                delimiter="",
                cancel_requested=cancel_requested,
            )
        except OperationAbortedError:
            return self._aborted(outcome)
        except STORAGE_ERRORS as exc:
            LOGGER.warning("Listing s3://%s/%s for deletion failed: %s", bucket_name, prefix, exc)
            outcome.error = str(exc)
            return outcome

        client = self._client(profile_name)
        keys = [
            entry.key
            for entry in listing.files + listing.folders
            if entry.key.startswith(prefix)
        ]
        if not keys:
            if prefix:
                outcome.record(prefix, self._delete_key(client, bucket_name, prefix))
            return outcome

        total = len(keys)
        for attempted, key in enumerate(keys, start=1):
            if cancel_requested and cancel_requested():
                return self._aborted(outcome)
            outcome.record(key, self._delete_key(client, bucket_name, key))
            if on_progress:
                on_progress(attempted, total)

        if prefix:
            marker_error = self._delete_key(client, bucket_name, prefix)
            if marker_error:
                LOGGER.warning("Could not delete folder marker '%s': %s", prefix, marker_error)
        LOGGER.debug(
            "Deleted %d of %d object(s) under s3://%s/%s",
            outcome.deleted_count,
            total,
            bucket_name,
            prefix,
        )
        return outcome

    def delete_files(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        keys: Iterable[str],
        on_progress: Optional[Callable[[int, int], None]] = None,
        cancel_requested: Optional[CancelFn] = None,
    ) -> DeletionOutcome:
        """Delete ``keys`` sequentially, isolating each key's failure."""

        client = self._client(profile_name)
        pending = list(keys)
        outcome = DeletionOutcome()
        for attempted, key in enumerate(pending, start=1):
            if cancel_requested and cancel_requested():
                return self._aborted(outcome)
            outcome.record(key, self._delete_key(client, bucket_name, key))
            if on_progress:
                on_progress(attempted, len(pending))
        return outcome

    def delete_file(self, *, profile_name: str, bucket_name: str, key: str) -> None:
        self._client(profile_name).delete_object(Bucket=bucket_name, Key=key)

    def _delete_key(self, client, bucket_name: str, key: str) -> Optional[str]:
        try:
            client.delete_object(Bucket=bucket_name, Key=key)
        except STORAGE_ERRORS as exc:
            LOGGER.debug("Delete of s3://%s/%s failed: %s", bucket_name, key, exc)
            return str(exc)
        return None

    @staticmethod
    def _aborted(outcome: DeletionOutcome) -> DeletionOutcome:
        outcome.aborted = True
        outcome.error = str(OperationAbortedError())
        return outcome

    def copy_file(
        self,
        *,
        profile_name: str,
        source_bucket: str,
        source_key: str,
        destination_bucket: str,
        destination_key: str,
    ) -> None:
        self._client(profile_name).copy_object(
            Bucket=destination_bucket,
            Key=destination_key,
            CopySource={"Bucket": source_bucket, "Key": source_key},
        )

    def rename_file(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        source_key: str,
        destination_key: str,
    ) -> None:
        """Copy ``source_key`` to ``destination_key`` then delete the source.

        The source is left untouched when the copy fails.
        """

        self.copy_file(
            profile_name=profile_name,
            source_bucket=bucket_name,
            source_key=source_key,
            destination_bucket=bucket_name,
            destination_key=destination_key,
        )
        self.delete_file(profile_name=profile_name, bucket_name=bucket_name, key=source_key)

    def get_file_size(self, *, profile_name: str, bucket_name: str, key: str) -> int:
        response = self._client(profile_name).head_object(Bucket=bucket_name, Key=key)
        return response.get("ContentLength") or 0

    def get_object_metadata(self, *, profile_name: str, bucket_name: str, key: str) -> ObjectMetadata:
        """Combine ``head_object`` with a best-effort tag lookup."""

        client = self._client(profile_name)
        response = client.head_object(Bucket=bucket_name, Key=key)
        tags: dict[str, str] = {}
        try:
            tag_response = client.get_object_tagging(Bucket=bucket_name, Key=key)
        except STORAGE_ERRORS as exc:
            LOGGER.warning("Tags unavailable for s3://%s/%s: %s", bucket_name, key, exc)
        else:
            tags = {tag["Key"]: tag.get("Value", "") for tag in tag_response.get("TagSet", [])}

        return ObjectMetadata(
            bucket=bucket_name,
            key=key,
            s3_url=to_s3_url(bucket_name, key),
            content_length=response.get("ContentLength") or 0,
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            etag=_strip_etag(response.get("ETag")),
            storage_class=response.get("StorageClass"),
            server_side_encryption=response.get("ServerSideEncryption"),
            version_id=response.get("VersionId"),
            cache_control=response.get("CacheControl"),
            content_encoding=response.get("ContentEncoding"),
            custom_metadata=dict(response.get("Metadata") or {}),
            tags=tags,
        )

    def download_binary_content(self, *, profile_name: str, bucket_name: str, key: str) -> bytes:
        response = self._client(profile_name).get_object(Bucket=bucket_name, Key=key)
        return response["Body"].read()

    def download_content(self, *, profile_name: str, bucket_name: str, key: str) -> str:
        data = self.download_binary_content(profile_name=profile_name, bucket_name=bucket_name, key=key)
        return data.decode("utf-8")

    def upload_content(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        key: str,
        content: str | bytes,
    ) -> None:
        body = content.encode("utf-8") if isinstance(content, str) else content
        self._client(profile_name).put_object(
            Bucket=bucket_name,
            Key=key,
            Body=body,
            ContentType=content_type_for_key(key),
        )

    def create_folder(self, *, profile_name: str, bucket_name: str, prefix: str) -> str:
        key = folder_key(prefix)
        self._client(profile_name).put_object(Bucket=bucket_name, Key=key, Body=b"")
        return key

    def create_empty_file(self, *, profile_name: str, bucket_name: str, key: str) -> None:
        self.upload_content(profile_name=profile_name, bucket_name=bucket_name, key=key, content=b"")

    def download_file(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        key: str,
        destination: str,
        progress_callback: Optional[TransferProgressFn] = None,
        cancel_requested: Optional[CancelFn] = None,
    ) -> None:
        """Download an object to ``destination``, creating parent directories.

        A file that did not exist before the call is removed if the transfer
        fails or is cancelled.
        """

        client = self._client(profile_name)
        total = client.head_object(Bucket=bucket_name, Key=key).get("ContentLength") or 0
        target = Path(destination)
        existed = target.exists()
        target.parent.mkdir(parents=True, exist_ok=True)
        callback = self._build_transfer_callback(total, progress_callback, cancel_requested)
        try:
            client.download_file(bucket_name, key, str(target), Callback=callback)
        except Exception:
            if not existed and target.exists():
                target.unlink()
            raise

    def upload_file(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        key: str,
        source_path: str,
        progress_callback: Optional[TransferProgressFn] = None,
        cancel_requested: Optional[CancelFn] = None,
    ) -> None:
        """Upload a local file, tagging it with the inferred content type."""

        total = os.path.getsize(source_path)
        callback = self._build_transfer_callback(total, progress_callback, cancel_requested)
        self._client(profile_name).upload_file(
            source_path,
            bucket_name,
            key,
            Callback=callback,
            ExtraArgs={"ContentType": content_type_for_key(key)},
        )

    def upload_files(
        self,
        *,
        profile_name: str,
        bucket_name: str,
        items: Iterable[UploadItem],
        on_progress: Optional[Callable[[int, int], None]] = None,
        cancel_requested: Optional[CancelFn] = None,
    ) -> UploadOutcome:
        """Upload several files one after another."""

        pending = list(items)
        outcome = UploadOutcome()
        for attempted, item in enumerate(pending, start=1):
            if cancel_requested and cancel_requested():
                outcome.aborted = True
                return outcome
            try:
                self.upload_file(
                    profile_name=profile_name,
                    bucket_name=bucket_name,
                    key=item.key,
                    source_path=item.source_path,
                    cancel_requested=cancel_requested,
                )
            except OperationAbortedError:
                outcome.aborted = True
                return outcome
            except (*STORAGE_ERRORS, OSError) as exc:
                LOGGER.debug("Upload of '%s' to s3://%s/%s failed: %s", item.source_path, bucket_name, item.key, exc)
                outcome.record(item.key, str(exc))
            else:
                outcome.record(item.key)
            if on_progress:
                on_progress(attempted, len(pending))
        return outcome

    def _build_transfer_callback(
        self,
        total: int,
        progress_callback: Optional[TransferProgressFn],
        cancel_requested: Optional[CancelFn],
    ):
        if not progress_callback and not cancel_requested:
            return None

        transferred = 0

        def _callback(bytes_amount: int) -> None:
            nonlocal transferred
            _raise_if_cancelled(cancel_requested)
            transferred += bytes_amount
            if progress_callback:
                progress_callback(TransferProgress(loaded=transferred, total=total))
            _raise_if_cancelled(cancel_requested)

        return _callback
