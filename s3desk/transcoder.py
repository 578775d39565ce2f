from __future__ import annotations
"""Transparent gzip handling for keys ending in ``.gz``."""
import gzip
import logging
import zlib

from .errors import CompressionError, DecompressionError
from .services import S3DirectoryService

LOGGER = logging.getLogger(__name__)

GZIP_EXTENSION = ".gz"


def is_gzip_key(key: str) -> bool:
    return key.lower().endswith(GZIP_EXTENSION)


def base_extension(key: str) -> str:
    """Return the extension that describes the content, ignoring ``.gz``.

    ``data.json.gz`` and ``data.json`` both give ``json``.
    """

    name = key[: -len(GZIP_EXTENSION)] if is_gzip_key(key) else key
    return name.rsplit(".", 1)[-1].lower() if "." in name else name.lower()


def compress_text(content: str, key: str = "") -> bytes:
    try:
        return gzip.compress(content.encode("utf-8"))
    except (UnicodeEncodeError, zlib.error, OSError) as exc:
        raise CompressionError(key, exc) from exc


def decompress_bytes(data: bytes, key: str = "") -> str:
    try:
        return gzip.decompress(data).decode("utf-8")
    except (OSError, EOFError, zlib.error, UnicodeDecodeError) as exc:
        raise DecompressionError(key, exc) from exc


class ContentTranscoder:
    """Reads and writes text, compressing ``.gz`` keys on the way."""

    def __init__(self, service: S3DirectoryService):
        self._service = service

    def read_text(self, *, profile_name: str, bucket_name: str, key: str) -> str:
        if not is_gzip_key(key):
            return self._service.download_content(
                profile_name=profile_name, bucket_name=bucket_name, key=key
            )
        data = self._service.download_binary_content(
            profile_name=profile_name, bucket_name=bucket_name, key=key
        )
        text = decompress_bytes(data, key)
        LOGGER.debug("Decompressed s3://%s/%s (%d bytes -> %d characters)", bucket_name, key, len(data), len(text))
        return text

    def write_text(self, *, profile_name: str, bucket_name: str, key: str, content: str) -> None:
        body: str | bytes = compress_text(content, key) if is_gzip_key(key) else content
        self._service.upload_content(
            profile_name=profile_name, bucket_name=bucket_name, key=key, content=body
        )
