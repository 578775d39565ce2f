from __future__ import annotations
"""Helpers for treating flat S3 keys as hierarchical paths."""
from dataclasses import dataclass
import re
from typing import Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES = {
    # Text
    "txt": "text/plain",
    "html": "text/html",
    "css": "text/css",
    "csv": "text/csv",
    # Code
    "js": "application/javascript",
    "json": "application/json",
    "xml": "application/xml",
    "yaml": "text/yaml",
    "yml": "text/yaml",
    "ts": "text/typescript",
    "tsx": "text/typescript",
    "py": "text/x-python",
    "java": "text/x-java",
    "md": "text/markdown",
    # Images
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
    # Binary
    "pdf": "application/pdf",
    "zip": "application/zip",
    "gz": "application/gzip",
    "tar": "application/x-tar",
    "parquet": "application/x-parquet",
}

_S3_SCHEME_RE = re.compile(r"^s3://([^/]+)/?(.*)$", re.DOTALL)
_VIRTUAL_HOST_RE = re.compile(r"^https?://([^./]+)\.s3\.([^./]+\.)?amazonaws\.com/?(.*)$", re.DOTALL)
_PATH_STYLE_RE = re.compile(r"^https?://s3\.([^./]+\.)?amazonaws\.com/([^/]+)/?(.*)$", re.DOTALL)


@dataclass(frozen=True)
class S3Location:
    bucket: str
    key: str = ""

    @property
    def url(self) -> str:
        return to_s3_url(self.bucket, self.key)


def parse_s3_url(url: str) -> Optional[S3Location]:
    """Parse ``s3://``, virtual-hosted or path-style URLs.

    Returns ``None`` for anything else.
    """

    match = _S3_SCHEME_RE.match(url)
    if match:
        return S3Location(bucket=match.group(1), key=match.group(2))

    match = _VIRTUAL_HOST_RE.match(url)
    if match:
        return S3Location(bucket=match.group(1), key=match.group(3))

    match = _PATH_STYLE_RE.match(url)
    if match:
        return S3Location(bucket=match.group(2), key=match.group(3))

    return None


def to_s3_url(bucket: str, key: str = "") -> str:
    if not key:
        return f"s3://{bucket}"
    return f"s3://{bucket}/{key}"


def _strip_trailing_slash(key_or_prefix: str) -> str:
    return key_or_prefix[:-1] if key_or_prefix.endswith("/") else key_or_prefix


def parent_prefix(key_or_prefix: str) -> str:
    normalized = _strip_trailing_slash(key_or_prefix)
    index = normalized.rfind("/")
    if index == -1:
        return ""
    return normalized[: index + 1]


def leaf_name(key_or_prefix: str) -> str:
    normalized = _strip_trailing_slash(key_or_prefix)
    return normalized.rsplit("/", 1)[-1]


def compose_key(prefix: str, name: str) -> str:
    key_name = name.strip()
    if not key_name:
        raise ValueError("Object name cannot be empty")
    cleaned_prefix = prefix.strip().lstrip("/")
    if cleaned_prefix and not cleaned_prefix.endswith("/"):
        cleaned_prefix += "/"
    return f"{cleaned_prefix}{key_name}" if cleaned_prefix else key_name


def folder_key(prefix: str) -> str:
    return prefix if prefix.endswith("/") else f"{prefix}/"


def extension(key: str) -> str:
    name = leaf_name(key)
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def content_type_for_key(key: str) -> str:
    return CONTENT_TYPES.get(extension(key), DEFAULT_CONTENT_TYPE)
