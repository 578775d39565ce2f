from __future__ import annotations
"""Readers for the shared AWS ``credentials`` and ``config`` files."""
import logging
import os
from pathlib import Path
import re
from typing import Mapping

LOGGER = logging.getLogger(__name__)

SectionTable = dict[str, dict[str, str]]

CREDENTIALS_FILE_ENV = "AWS_SHARED_CREDENTIALS_FILE"
CONFIG_FILE_ENV = "AWS_CONFIG_FILE"
PROFILE_SECTION_PREFIX = "profile "

_SECTION_RE = re.compile(r"^\[([^\]]+)\]$")
_KEY_VALUE_RE = re.compile(r"^([^=]+)=(.*)$")


def parse_ini(content: str) -> SectionTable:
    """Parse INI-style text into ``{section: {key: value}}``.

    Blank lines and ``#``/``;`` comments are skipped, and so is anything that
    appears before the first section header. Values keep every character
    after the first ``=``.
    """

    sections: SectionTable = {}
    current: str | None = None
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or line.startswith(";"):
            continue

        section_match = _SECTION_RE.match(line)
        if section_match:
            current = section_match.group(1)
            sections.setdefault(current, {})
            continue

        key_value_match = _KEY_VALUE_RE.match(line)
        if key_value_match and current is not None:
            key = key_value_match.group(1).strip()
            value = key_value_match.group(2).strip()
            sections[current][key] = value
    return sections


def normalize_config_sections(sections: SectionTable) -> SectionTable:
    """Map ``[profile name]`` sections of the config file to ``name``."""

    normalized: SectionTable = {}
    for name, values in sections.items():
        if name.startswith(PROFILE_SECTION_PREFIX):
            name = name[len(PROFILE_SECTION_PREFIX):]
        normalized[name] = values
    return normalized


def credentials_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    override = env.get(CREDENTIALS_FILE_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".aws" / "credentials"


def config_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    override = env.get(CONFIG_FILE_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".aws" / "config"


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.warning("Unable to read AWS file '%s': %s", path, exc)
        return None


def read_credentials_file(path: str | Path | None = None) -> SectionTable:
    target = Path(path) if path is not None else credentials_path()
    content = _read_text(target)
    if content is None:
        return {}
    return parse_ini(content)


def read_config_file(path: str | Path | None = None) -> SectionTable:
    target = Path(path) if path is not None else config_path()
    content = _read_text(target)
    if content is None:
        return {}
    return normalize_config_sections(parse_ini(content))
