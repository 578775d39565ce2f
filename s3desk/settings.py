from __future__ import annotations
"""Application state persistence and environment overrides."""

from dataclasses import asdict, dataclass, replace
import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

LOGGER = logging.getLogger(__name__)

STATE_VERSION = 1
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
FALLBACK_REGION = "us-east-1"


@dataclass(frozen=True)
class EndpointOverride:
    """Explicit endpoint taken from the environment (LocalStack, MinIO, tests).

    When static keys are present they replace profile-based authentication.
    """

    endpoint_url: str
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    region: Optional[str] = None

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)


def load_endpoint_override(environ: Mapping[str, str] | None = None) -> Optional[EndpointOverride]:
    env = os.environ if environ is None else environ
    endpoint_url = env.get("AWS_ENDPOINT_URL") or env.get("S3_ENDPOINT_URL")
    if not endpoint_url:
        return None
    return EndpointOverride(
        endpoint_url=endpoint_url,
        access_key_id=env.get("AWS_ACCESS_KEY_ID") or None,
        secret_access_key=env.get("AWS_SECRET_ACCESS_KEY") or None,
        session_token=env.get("AWS_SESSION_TOKEN") or None,
        region=env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or None,
    )


def clamp_page_size(value: object) -> int:
    try:
        size = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return min(max(size, 1), MAX_PAGE_SIZE)


@dataclass
class AppState:
    """UI state remembered between runs."""

    last_profile: Optional[str] = None
    last_bucket: Optional[str] = None
    last_prefix: str = ""
    page_size: int = DEFAULT_PAGE_SIZE
    version: int = STATE_VERSION


class AppStateStorage:
    """JSON-backed persistence for :class:`AppState`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3desk_state.json"
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppState:
        if not self._path.exists():
            return AppState()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable state file '%s': %s", self._path, exc)
            return AppState()
        if not isinstance(data, dict) or not isinstance(data.get("version"), int):
            LOGGER.warning("Invalid app state version, using defaults")
            return AppState()
        if data["version"] > STATE_VERSION:
            LOGGER.warning(
                "App state version %s is newer than supported %s", data["version"], STATE_VERSION
            )

        last_profile = data.get("last_profile")
        last_bucket = data.get("last_bucket")
        last_prefix = data.get("last_prefix")
        return AppState(
            last_profile=last_profile if isinstance(last_profile, str) else None,
            last_bucket=last_bucket if isinstance(last_bucket, str) else None,
            last_prefix=last_prefix if isinstance(last_prefix, str) else "",
            page_size=clamp_page_size(data.get("page_size", DEFAULT_PAGE_SIZE)),
        )

    def save(self, **changes) -> bool:
        """Merge ``changes`` into the stored state; returns ``False`` on I/O failure."""

        state = replace(self.load(), **changes, version=STATE_VERSION)
        state.page_size = clamp_page_size(state.page_size)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(asdict(state), indent=2), encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("Failed to save app state: %s", exc)
            return False
        return True

    def clear(self) -> bool:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning("Failed to clear app state: %s", exc)
            return False
        return True
