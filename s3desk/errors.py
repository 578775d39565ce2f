from __future__ import annotations
"""Exception hierarchy and user-facing error classification."""
from typing import Optional

from .models import ErrorInfo


class S3DeskError(Exception):
    """Base exception for all s3desk errors."""


class ProfileNotFoundError(S3DeskError):
    """Raised when a profile name is absent from both AWS files."""

    def __init__(self, profile_name: str):
        super().__init__(f"Profile '{profile_name}' not found")
        self.profile_name = profile_name


class ProfileCredentialsError(S3DeskError):
    """Raised when a profile exists but cannot provide credentials."""

    def __init__(self, profile_name: str, reason: Optional[str] = None):
        message = f"Profile '{profile_name}' has no valid credentials"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.profile_name = profile_name
        self.reason = reason


class NotConnectedError(S3DeskError):
    """Raised when an S3 operation is attempted before selecting a profile."""

    def __init__(self, message: str = "No AWS profile selected. Please select a profile first."):
        super().__init__(message)


class OperationAbortedError(S3DeskError):
    """Raised when a long-running operation observes a cancellation request."""

    def __init__(self, message: str = "Operation aborted"):
        super().__init__(message)


class DecompressionError(S3DeskError):
    def __init__(self, key: str, cause: object):
        super().__init__(f"Decompression failed: {key}: {cause}")
        self.key = key


class CompressionError(S3DeskError):
    def __init__(self, key: str, cause: object):
        super().__init__(f"Compression failed: {key}: {cause}")
        self.key = key


_NETWORK_MARKERS = (
    "network",
    "enotfound",
    "econnrefused",
    "econnreset",
    "etimedout",
    "timeout",
    "timed out",
    "socket hang up",
    "could not connect",
)

# First matching rule wins.
_RULES: tuple[tuple[tuple[str, ...], ErrorInfo], ...] = (
    (
        ("accessdenied", "access denied", "forbidden"),
        ErrorInfo(
            title="Access Denied",
            message="You do not have permission to access this resource.",
            suggestion="Check your AWS credentials or contact your administrator.",
            retryable=False,
        ),
    ),
    (
        ("invalidsignature", "invalid signature", "signaturedoesnotmatch", "invalidaccesskeyid"),
        ErrorInfo(
            title="Invalid Credentials",
            message="Your AWS credentials appear to be invalid or expired.",
            suggestion="Try refreshing your credentials or selecting a different profile.",
            retryable=False,
        ),
    ),
    (
        ("expiredtoken", "expired token", "token has expired"),
        ErrorInfo(
            title="Credentials Expired",
            message="Your AWS session token has expired.",
            suggestion="Please refresh your credentials and try again.",
            retryable=False,
        ),
    ),
    (
        ("nosuchbucket", "no such bucket"),
        ErrorInfo(
            title="Bucket Not Found",
            message="The requested bucket does not exist.",
            suggestion="Verify the bucket name and region are correct.",
            retryable=False,
        ),
    ),
    (
        ("nosuchkey", "no such key", "not found"),
        ErrorInfo(
            title="File Not Found",
            message="The requested file could not be found.",
            suggestion="The file may have been deleted or moved.",
            retryable=False,
        ),
    ),
    (
        _NETWORK_MARKERS,
        ErrorInfo(
            title="Connection Error",
            message="Could not connect to AWS S3.",
            suggestion="Check your internet connection and try again.",
            retryable=True,
        ),
    ),
    (
        ("slowdown", "throttl", "toomanyrequests"),
        ErrorInfo(
            title="Too Many Requests",
            message="AWS is temporarily throttling requests.",
            suggestion="Please wait a moment and try again.",
            retryable=True,
        ),
    ),
    (
        ("serviceunavailable", "service unavailable", "internalerror", "internal error"),
        ErrorInfo(
            title="Service Unavailable",
            message="AWS S3 is temporarily unavailable.",
            suggestion="Please try again in a few moments.",
            retryable=True,
        ),
    ),
    (
        ("permanentredirect", "region", "authorizationheadermalformed"),
        ErrorInfo(
            title="Region Mismatch",
            message="The bucket is in a different region than expected.",
            suggestion="Try configuring the correct region in your AWS profile.",
            retryable=False,
        ),
    ),
    (
        ("entitytoolarge", "too large"),
        ErrorInfo(
            title="File Too Large",
            message="The file exceeds the maximum allowed size.",
            suggestion="Try uploading a smaller file or use multipart upload.",
            retryable=False,
        ),
    ),
    (
        ("abort", "cancel"),
        ErrorInfo(
            title="Operation Cancelled",
            message="The operation was cancelled.",
            retryable=False,
        ),
    ),
)


def error_text(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def classify_error(error: object) -> ErrorInfo:
    message = error_text(error)
    if isinstance(error, (ProfileNotFoundError, ProfileCredentialsError, NotConnectedError)):
        return ErrorInfo(
            title="Profile Error",
            message=message,
            suggestion="Select a different profile or update your AWS configuration.",
            retryable=False,
        )
    if isinstance(error, (DecompressionError, CompressionError)):
        return ErrorInfo(title="Compression Error", message=message, retryable=False)
    haystack = message.lower()
    for markers, info in _RULES:
        if any(marker in haystack for marker in markers):
            return info
    return ErrorInfo(
        title="Error",
        message=message or "An unknown error occurred.",
        suggestion="Please try again. If the problem persists, check your configuration.",
        retryable=True,
    )


def is_network_error(error: object) -> bool:
    haystack = error_text(error).lower()
    return any(marker in haystack for marker in (*_NETWORK_MARKERS, "fetch failed"))


def is_retryable_error(error: object) -> bool:
    return classify_error(error).retryable
