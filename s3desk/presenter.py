from __future__ import annotations
"""View-agnostic presenter that runs controller operations off the UI thread."""
from dataclasses import dataclass, field
import logging
import threading
from typing import Callable, Iterable

from .controller import S3DeskController
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
from .profiles import ProfileSummary
from .settings import AppState, AppStateStorage, clamp_page_size


DispatchFn = Callable[[Callable[[], None]], None]
ErrorFn = Callable[[OperationResult], None]
DoneFn = Callable[[], None]

LOGGER = logging.getLogger(__name__)


@dataclass
class OperationHandle:
    """Lets a caller request cooperative cancellation of a running task."""

    description: str
    _cancelled: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _finished: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    def cancel(self) -> None:
        LOGGER.debug("Cancellation requested for %s", self.description)
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)


class S3DeskPresenter:
    """Runs background operations and returns results via callbacks.

    ``on_success`` receives the operation's value and ``on_error`` the failed
    :class:`OperationResult`, so views can show its ``error_info``.
    """

    def __init__(
        self,
        *,
        controller: S3DeskController | None = None,
        state_storage: AppStateStorage | None = None,
        dispatch: DispatchFn | None = None,
    ) -> None:
        self._controller = controller or S3DeskController()
        self._state_storage = state_storage or AppStateStorage()
        self._state = self._state_storage.load()
        self._dispatch = dispatch or (lambda func: func())
        self._profile_lock = threading.Lock()

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._controller.is_connected

    @property
    def selected_profile(self) -> str | None:
        return self._controller.selected_profile

    def update_page_size(self, value: int) -> None:
        self._remember(page_size=clamp_page_size(value))

    def update_location(self, bucket: str, prefix: str = "") -> None:
        self._remember(last_bucket=bucket or None, last_prefix=prefix or "")

    def _remember(self, **changes) -> None:
        if self._state_storage.save(**changes):
            self._state = self._state_storage.load()

    def last_profile(self) -> str | None:
        return self._state.last_profile

    def _start(
        self,
        description: str,
        operation: Callable[[], OperationResult],
        on_success: Callable[[object], None] | None,
        on_error: ErrorFn | None,
        on_done: DoneFn | None,
        handle: OperationHandle | None = None,
    ) -> OperationHandle:
        handle = handle or OperationHandle(description)

        def task() -> None:
            try:
                result = operation()
            except Exception as exc:
                # The controller normalizes failures; anything reaching here is a bug.
                LOGGER.exception("Unexpected error during %s", description)
                result = OperationResult(success=False, error=str(exc) or type(exc).__name__)
            try:
                if result.success:
                    LOGGER.debug("%s finished", description)
                    if on_success:
                        value = result.value
                        self._dispatch(lambda: on_success(value))
                else:
                    LOGGER.debug("%s failed: %s", description, result.error)
                    if on_error:
                        self._dispatch(lambda: on_error(result))
            finally:
                if on_done:
                    self._dispatch(on_done)
                handle._finished.set()

        threading.Thread(target=task, daemon=True).start()
        return handle

    # Profiles

    def list_profiles(
        self,
        *,
        on_success: Callable[[list[ProfileSummary]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        return self._start(
            "profile listing",
            self._controller.list_profile_summaries,
            on_success,
            on_error,
            on_done,
        )

    def select_profile(
        self,
        name: str,
        *,
        on_success: Callable[[list[BucketInfo]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        """Activate ``name`` and fetch its buckets."""

        LOGGER.debug("Connecting using profile '%s'", name)

        def operation() -> OperationResult:
            with self._profile_lock:
                selected = self._controller.set_profile(name)
                if not selected.success:
                    return selected
                self._remember(last_profile=name)
                return self._controller.list_buckets()

        return self._start(f"connect '{name}'", operation, on_success, on_error, on_done)

    def clear_profile(self) -> None:
        with self._profile_lock:
            self._controller.clear_profile()

    def refresh_buckets(
        self,
        *,
        on_success: Callable[[list[BucketInfo]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        return self._start(
            "bucket refresh", self._controller.list_buckets, on_success, on_error, on_done
        )

    # Listing

    def list_objects(
        self,
        *,
        bucket_name: str,
        prefix: str = "",
        continuation_token: str | None = None,
        on_success: Callable[[ListingPage], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        return self._start(
            f"listing s3://{bucket_name}/{prefix}",
            lambda: self._controller.list_objects(
                bucket_name=bucket_name,
                prefix=prefix,
                max_keys=self._state.page_size,
                continuation_token=continuation_token,
            ),
            on_success,
            on_error,
            on_done,
        )

    def list_all_objects(
        self,
        *,
        bucket_name: str,
        prefix: str = "",
        on_progress: Callable[[int], None] | None = None,
        on_success: Callable[[ListingPage], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        handle = OperationHandle(f"full listing of s3://{bucket_name}/{prefix}")
        return self._start(
            handle.description,
            lambda: self._controller.list_all_objects(
                bucket_name=bucket_name,
                prefix=prefix,
                on_progress=self._relay(on_progress),
                cancel_requested=lambda: handle.cancelled,
            ),
            on_success,
            on_error,
            on_done,
            handle,
        )

    def _relay(self, callback: Callable | None):
        if callback is None:
            return None
        return lambda *args: self._dispatch(lambda: callback(*args))

    # Mutations

    def delete_prefix(
        self,
        *,
        bucket_name: str,
        prefix: str,
        on_progress: Callable[[int, int], None] | None = None,
        on_success: Callable[[DeletionOutcome], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        handle = OperationHandle(f"deleting s3://{bucket_name}/{prefix}")
        return self._start(
            handle.description,
            lambda: self._controller.delete_prefix(
                bucket_name=bucket_name,
                prefix=prefix,
                on_progress=self._relay(on_progress),
                cancel_requested=lambda: handle.cancelled,
            ),
            on_success,
            on_error,
            on_done,
            handle,
        )

    def delete_files(
        self,
        *,
        bucket_name: str,
        keys: Iterable[str],
        on_progress: Callable[[int, int], None] | None = None,
        on_success: Callable[[DeletionOutcome], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        handle = OperationHandle(f"deleting keys in {bucket_name}")
        pending = list(keys)
        return self._start(
            handle.description,
            lambda: self._controller.delete_files(
                bucket_name=bucket_name,
                keys=pending,
                on_progress=self._relay(on_progress),
                cancel_requested=lambda: handle.cancelled,
            ),
            on_success,
            on_error,
            on_done,
            handle,
        )

    def rename_file(
        self,
        *,
        bucket_name: str,
        source_key: str,
        destination_key: str,
        on_success: Callable[[None], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        return self._start(
            f"renaming s3://{bucket_name}/{source_key}",
            lambda: self._controller.rename_file(
                bucket_name=bucket_name, source_key=source_key, destination_key=destination_key
            ),
            on_success,
            on_error,
            on_done,
        )

    def get_object_metadata(
        self,
        *,
        bucket_name: str,
        key: str,
        on_success: Callable[[ObjectMetadata], None],
        on_error: ErrorFn,
    ) -> OperationHandle:
        return self._start(
            f"metadata for s3://{bucket_name}/{key}",
            lambda: self._controller.get_object_metadata(bucket_name=bucket_name, key=key),
            on_success,
            on_error,
            None,
        )

    def read_text(
        self,
        *,
        bucket_name: str,
        key: str,
        on_success: Callable[[str], None],
        on_error: ErrorFn,
    ) -> OperationHandle:
        return self._start(
            f"reading s3://{bucket_name}/{key}",
            lambda: self._controller.read_text(bucket_name=bucket_name, key=key),
            on_success,
            on_error,
            None,
        )

    def write_text(
        self,
        *,
        bucket_name: str,
        key: str,
        content: str,
        on_success: Callable[[None], None],
        on_error: ErrorFn,
    ) -> OperationHandle:
        return self._start(
            f"writing s3://{bucket_name}/{key}",
            lambda: self._controller.write_text(bucket_name=bucket_name, key=key, content=content),
            on_success,
            on_error,
            None,
        )

    # Transfers

    def download_file(
        self,
        *,
        bucket_name: str,
        key: str,
        destination: str,
        on_progress: Callable[[TransferProgress], None] | None = None,
        on_success: Callable[[None], None] | None = None,
        on_error: ErrorFn | None = None,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        handle = OperationHandle(f"downloading s3://{bucket_name}/{key}")
        return self._start(
            handle.description,
            lambda: self._controller.download_file(
                bucket_name=bucket_name,
                key=key,
                destination=destination,
                progress_callback=self._relay(on_progress),
                cancel_requested=lambda: handle.cancelled,
            ),
            on_success,
            on_error,
            on_done,
            handle,
        )

    def upload_files(
        self,
        *,
        bucket_name: str,
        items: Iterable[UploadItem],
        on_progress: Callable[[int, int], None] | None = None,
        on_success: Callable[[UploadOutcome], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> OperationHandle:
        handle = OperationHandle(f"uploading files to {bucket_name}")
        pending = list(items)
        return self._start(
            handle.description,
            lambda: self._controller.upload_files(
                bucket_name=bucket_name,
                items=pending,
                on_progress=self._relay(on_progress),
                cancel_requested=lambda: handle.cancelled,
            ),
            on_success,
            on_error,
            on_done,
            handle,
        )
