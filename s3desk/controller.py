from __future__ import annotations
"""Boundary layer that turns service calls into success/failure results."""

import logging
from typing import Callable, Iterable, Optional, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from .errors import NotConnectedError, OperationAbortedError, S3DeskError, classify_error, error_text
from .models import (
    BucketInfo,
    DeletionOutcome,
    ListingPage,
    ObjectMetadata,
    OperationResult,
    TransferProgress,
    UploadItem,
    UploadOutcome,
)
from .profile_store import ProfileStore
from .profiles import (
    ParsedProfiles,
    ProfileDetails,
    ProfileSummary,
    ProfileValidation,
    describe_profile,
    summarize_profiles,
)
from .s3_paths import S3Location, leaf_name, parent_prefix, parse_s3_url
from .services import S3DirectoryService
from .settings import DEFAULT_PAGE_SIZE
from .transcoder import ContentTranscoder

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
CancelFn = Callable[[], bool]


def _failure(exc: BaseException) -> OperationResult:
    return OperationResult(success=False, error=error_text(exc), error_info=classify_error(exc))


class S3DeskController:
    """Coordinates the active profile with the :class:`S3DirectoryService`.

    Every public operation returns an :class:`OperationResult`; expected
    failures never escape as exceptions.
    """

    def __init__(
        self,
        service: S3DirectoryService | None = None,
        store: ProfileStore | None = None,
    ):
        self._service = service or S3DirectoryService.from_environment()
        self._store = store or ProfileStore(
            self._service.resolver, on_invalidate=self._service.clear_connection
        )
        self._transcoder = ContentTranscoder(self._service)

    @property
    def is_connected(self) -> bool:
        return self._store.active_name is not None

    @property
    def selected_profile(self) -> str | None:
        return self._store.active_name

    def _require_profile(self) -> str:
        name = self._store.active_name
        if name is None:
            raise NotConnectedError()
        return name

    def _run(self, description: str, operation: Callable[[], T]) -> OperationResult[T]:
        try:
            value = operation()
        except (S3DeskError, ClientError, BotoCoreError) as exc:
            LOGGER.debug("%s failed: %s", description, exc)
            return _failure(exc)
        except Exception as exc:
            LOGGER.exception("Unexpected error during %s", description)
            return _failure(exc)
        return OperationResult(success=True, value=value)

    @staticmethod
    def _batch_result(outcome: DeletionOutcome | UploadOutcome) -> OperationResult:
        if outcome.aborted:
            exc = OperationAbortedError()
            return OperationResult(
                success=False, value=outcome, error=str(exc), error_info=classify_error(exc)
            )
        error = getattr(outcome, "error", None)
        if error:
            return OperationResult(
                success=False, value=outcome, error=error, error_info=classify_error(error)
            )
        return OperationResult(success=outcome.success, value=outcome)

    # Profiles

    def get_profiles(self) -> OperationResult[ParsedProfiles]:
        return self._run("profile listing", self._store.load)

    def refresh_profiles(self) -> OperationResult[ParsedProfiles]:
        return self._run("profile refresh", self._store.refresh)

    def list_profile_summaries(self) -> OperationResult[list[ProfileSummary]]:
        return self._run("profile listing", lambda: summarize_profiles(self._store.load()))

    def set_profile(self, name: str) -> OperationResult[str]:
        validation = self._store.set_active(name)
        if not validation.valid:
            return OperationResult(success=False, error=validation.reason)
        return OperationResult(success=True, value=name)

    def validate_profile(self, name: str) -> ProfileValidation:
        return self._store.validate(name)

    def current_profile(self) -> Optional[str]:
        return self._store.active_name

    def clear_profile(self) -> None:
        self._store.clear()

    def get_profile_details(self, name: str) -> OperationResult[ProfileDetails]:
        profile = self._store.resolver.get(name)
        if profile is None:
            return OperationResult(success=False, error=f"Profile '{name}' not found")
        return OperationResult(success=True, value=describe_profile(profile))

    # Listing

    def list_buckets(self) -> OperationResult[list[BucketInfo]]:
        return self._run(
            "bucket listing",
            lambda: self._service.list_buckets(profile_name=self._require_profile()),
        )

    def list_objects(
        self,
        *,
        bucket_name: str,
        prefix: str = "",
        delimiter: str | None = "/",
        max_keys: int = DEFAULT_PAGE_SIZE,
        continuation_token: str | None = None,
    ) -> OperationResult[ListingPage]:
        return self._run(
            f"listing s3://{bucket_name}/{prefix}",
            lambda: self._service.list_objects(
                profile_name=self._require_profile(),
                bucket_name=bucket_name,
                prefix=prefix,
                delimiter=delimiter,
                max_keys=max_keys,
                continuation_token=continuation_token,
            ),
        )

    def list_all_objects(
        self,
        *,
        bucket_name: str,
        prefix: str = "",
        delimiter: str | None = "/",
        on_progress: Callable[[int], None] | None = None,
        cancel_requested: CancelFn | None = None,
    ) -> OperationResult[ListingPage]:
        return self._run(
            f"full listing of s3://{bucket_name}/{prefix}",
            lambda: self._service.list_all_objects(
                profile_name=self._require_profile(),
                bucket_name=bucket_name,
                prefix=prefix,
                delimiter=delimiter,
                on_progress=on_progress,
                cancel_requested=cancel_requested,
            ),
        )

    # Deletion

    def delete_prefix(
        self,
        *,
        bucket_name: str,
        prefix: str,
        on_progress: Callable[[int, int], None] | None = None,
        cancel_requested: CancelFn | None = None,
    ) -> OperationResult[DeletionOutcome]:
        result = self._run(
            f"deleting s3://{bucket_name}/{prefix}",
            lambda: self._service.delete_prefix(
                profile_name=self._require_profile(),
                bucket_name=bucket_name,
                prefix=prefix,
                on_progress=on_progress,
                cancel_requested=cancel_requested,
            ),
        )
        return self._batch_result(result.value) if result.success else result

    def delete_files(
        self,
        *,
        bucket_name: str,
        keys: Iterable[str],
        on_progress: Callable[[int, int], None] | None = None,
        cancel_requested: CancelFn | None = None,
    ) -> OperationResult[DeletionOutcome]:
        result = self._run(
            f"deleting keys in {bucket_name}",
            lambda: self._service.delete_files(
                profile_name=self._require_profile(),
                bucket_name=bucket_name,
                keys=keys,
                on_progress=on_progress,
                cancel_requested=cancel_requested,
            ),
        )
        return self._batch_result(result.value) if result.success else result

    def delete_file(self, *, bucket_name: str, key: str) -> OperationResult[None]:
        return self._run(
            f"deleting s3://{bucket_name}/{key}",
            lambda: self._service.delete_file(
                profile_name=self._require_profile(), bucket_name=bucket_name, key=key
            ),
        )

    # Copy / rename

    def rename_file(self, *, bucket_name: str, source_key: str, destination_key: str) -> OperationResult[None]:
        return self._run(
            f"renaming s3://{bucket_name}/{source_key}",
            lambda: self._service.rename_file(
                profile_name=self._require_profile(),
                bucket_name=bucket_name,
                source_key=source_key,
                destination_key=destination_key,
            ),
        )

    def copy_file(
        self,
        *,
        source_bucket: str,
        source_key: str,
        destination_bucket: str,
        destination_key: str,
    ) -> OperationResult[None]:
        return self._run(
            f"copying s3://{source_bucket}/{source_key}",
            lambda: self._service.copy_file(
                profile_name=self._require_profile(),
                source_bucket=source_bucket,
                source_key=source_key,
                destination_bucket=destination_bucket,
                destination_key=destination_key,
            ),
        )

    # Metadata

    def get_object_metadata(self, *, bucket_name: str, key: str) -> OperationResult[ObjectMetadata]:
        return self._run(
            f"metadata for s3://{bucket_name}/{key}",
            lambda: self._service.get_object_metadata(
                profile_name=self._require_profile(), bucket_name=bucket_name, key=key
            ),
        )

    def get_file_size(self, *, bucket_name: str, key: str) -> OperationResult[int]:
        return self._run(
            f"size of s3://{bucket_name}/{key}",
            lambda: self._service.get_file_size(
                profile_name=self._require_profile(), bucket_name=bucket_name, key=key
            ),
        )

    # Content

    def read_text(self, *, bucket_name: str, key: str) -> OperationResult[str]:
        return self._run(
            f"reading s3://{bucket_name}/{key}",
            lambda: self._transcoder.read_text(
                profile_name=self._require_profile(), bucket_name=bucket_name, key=key
            ),
        )

    def write_text(self, *, bucket_name: str, key: str, content: str) -> OperationResult[None]:
        return self._run(
            f"writing s3://{bucket_name}/{key}",
            lambda: self._transcoder.write_text(
                profile_name=self._require_profile(), bucket_name=bucket_name, key=key, content=content
            ),
        )

    def read_bytes(self, *, bucket_name: str, key: str) -> OperationResult[bytes]:
        return self._run(
            f"reading s3://{bucket_name}/{key}",
            lambda: self._service.download_binary_content(
                profile_name=self._require_profile(), bucket_name=bucket_name, key=key
            ),
        )

    def create_folder(self, *, bucket_name: str, prefix: str) -> OperationResult[str]:
        return self._run(
            f"creating folder s3://{bucket_name}/{prefix}",
            lambda: self._service.create_folder(
                profile_name=self._require_profile(), bucket_name=bucket_name, prefix=prefix
            ),
        )

    def create_empty_file(self, *, bucket_name: str, key: str) -> OperationResult[None]:
        return self._run(
            f"creating s3://{bucket_name}/{key}",
            lambda: self._service.create_empty_file(
                profile_name=self._require_profile(), bucket_name=bucket_name, key=key
            ),
        )

    # Transfers

    def download_file(
        self,
        *,
        bucket_name: str,
        key: str,
        destination: str,
        progress_callback: Callable[[TransferProgress], None] | None = None,
        cancel_requested: CancelFn | None = None,
    ) -> OperationResult[None]:
        return self._run(
            f"downloading s3://{bucket_name}/{key}",
            lambda: self._service.download_file(
                profile_name=self._require_profile(),
                bucket_name=bucket_name,
                key=key,
                destination=destination,
                progress_callback=progress_callback,
                cancel_requested=cancel_requested,
            ),
        )

    def upload_file(
        self,
        *,
        bucket_name: str,
        key: str,
        source_path: str,
        progress_callback: Callable[[TransferProgress], None] | None = None,
        cancel_requested: CancelFn | None = None,
    ) -> OperationResult[None]:
        return self._run(
            f"uploading {source_path}",
            lambda: self._service.upload_file(
                profile_name=self._require_profile(),
                bucket_name=bucket_name,
                key=key,
                source_path=source_path,
                progress_callback=progress_callback,
                cancel_requested=cancel_requested,
            ),
        )

    def upload_files(
        self,
        *,
        bucket_name: str,
        items: Iterable[UploadItem],
        on_progress: Callable[[int, int], None] | None = None,
        cancel_requested: CancelFn | None = None,
    ) -> OperationResult[UploadOutcome]:
        result = self._run(
            f"uploading files to {bucket_name}",
            lambda: self._service.upload_files(
                profile_name=self._require_profile(),
                bucket_name=bucket_name,
                items=items,
                on_progress=on_progress,
                cancel_requested=cancel_requested,
            ),
        )
        return self._batch_result(result.value) if result.success else result

    # Paths

    def parse_url(self, url: str) -> OperationResult[S3Location]:
        location = parse_s3_url(url)
        if location is None:
            return OperationResult(success=False, error="Invalid S3 URL format")
        return OperationResult(success=True, value=location)

    @staticmethod
    def parent_prefix(key_or_prefix: str) -> str:
        return parent_prefix(key_or_prefix)

    @staticmethod
    def leaf_name(key_or_prefix: str) -> str:
        return leaf_name(key_or_prefix)
