from __future__ import annotations
"""Data models representing S3 listings and operation outcomes."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class BucketInfo:
    """A bucket visible to the active profile."""

    name: str
    creation_date: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectEntry:
    """One row of a directory listing.

    ``is_prefix`` marks a synthetic folder built from a common prefix rather
    than a stored object; such entries always have a size of zero.
    """

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None
    is_prefix: bool = False


@dataclass
class ListingPage:
    """Result of a single paginated listing call."""

    prefix: str = ""
    files: list[ObjectEntry] = field(default_factory=list)
    folders: list[ObjectEntry] = field(default_factory=list)
    is_truncated: bool = False
    continuation_token: Optional[str] = None
    key_count: int = 0

    @property
    def entries(self) -> list[ObjectEntry]:
        return [*self.folders, *self.files]


@dataclass(frozen=True)
class KeyResult:
    """Outcome of an operation on a single key inside a batch."""

    key: str
    success: bool
    error: Optional[str] = None


@dataclass
class DeletionOutcome:
    """Aggregate result of a sequential multi-key delete."""

    results: list[KeyResult] = field(default_factory=list)
    deleted_count: int = 0
    failed_count: int = 0
    aborted: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.failed_count == 0 and not self.aborted and self.error is None

    def record(self, key: str, error: Optional[str] = None) -> None:
        if error is None:
            self.deleted_count += 1
            self.results.append(KeyResult(key=key, success=True))
        else:
            self.failed_count += 1
            self.results.append(KeyResult(key=key, success=False, error=error))


@dataclass
class UploadOutcome:
    """Aggregate result of a sequential multi-file upload."""

    results: list[KeyResult] = field(default_factory=list)
    uploaded_count: int = 0
    failed_count: int = 0
    aborted: bool = False

    @property
    def success(self) -> bool:
        return self.failed_count == 0 and not self.aborted

    def record(self, key: str, error: Optional[str] = None) -> None:
        if error is None:
            self.uploaded_count += 1
            self.results.append(KeyResult(key=key, success=True))
        else:
            self.failed_count += 1
            self.results.append(KeyResult(key=key, success=False, error=error))


@dataclass(frozen=True)
class UploadItem:
    """A local file scheduled for upload under ``key``."""

    source_path: str
    key: str


@dataclass(frozen=True)
class TransferProgress:
    loaded: int
    total: int

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.loaded * 100 / self.total)


@dataclass
class ObjectMetadata:
    """Metadata about a single S3 object."""

    bucket: str
    key: str
    s3_url: str
    content_length: int = 0
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None
    server_side_encryption: Optional[str] = None
    version_id: Optional[str] = None
    cache_control: Optional[str] = None
    content_encoding: Optional[str] = None
    custom_metadata: dict[str, str] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorInfo:
    """User-facing description of a failure."""

    title: str
    message: str
    suggestion: Optional[str] = None
    retryable: bool = True


@dataclass
class OperationResult(Generic[T]):
    """Success payload or normalized failure returned across the UI boundary."""

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_info: Optional[ErrorInfo] = None
