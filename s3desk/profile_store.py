from __future__ import annotations
"""In-memory holder of the active AWS profile name."""
import logging
from typing import Callable, Optional

from .errors import ProfileNotFoundError
from .profiles import AwsProfile, ParsedProfiles, ProfileResolver, ProfileValidation, validate_profile

LOGGER = logging.getLogger(__name__)


class ProfileStore:
    """Caches only the *name* of the active profile.

    Profiles are resolved afresh on every lookup. ``on_invalidate`` is called
    whenever the active profile is cleared or replaced so the owner of the
    cached connection can drop it.
    """

    def __init__(
        self,
        resolver: ProfileResolver | None = None,
        on_invalidate: Callable[[], None] | None = None,
    ):
        self._resolver = resolver or ProfileResolver()
        self._on_invalidate = on_invalidate
        self._active: Optional[str] = None

    @property
    def resolver(self) -> ProfileResolver:
        return self._resolver

    @property
    def active_name(self) -> Optional[str]:
        return self._active

    def load(self) -> ParsedProfiles:
        return self._resolver.load()

    def active_profile(self) -> Optional[AwsProfile]:
        if self._active is None:
            return None
        return self._resolver.get(self._active)

    def validate(self, name: str) -> ProfileValidation:
        profile = self._resolver.get(name)
        if profile is None:
            return ProfileValidation(valid=False, reason=str(ProfileNotFoundError(name)))
        return validate_profile(profile)

    def set_active(self, name: str) -> ProfileValidation:
        """Activate ``name`` if it resolves to a usable profile.

        A failed validation leaves the previous selection untouched.
        """

        validation = self.validate(name)
        if not validation.valid:
            LOGGER.debug("Rejected profile '%s': %s", name, validation.reason)
            return validation
        if self._active != name:
            self._invalidate()
        self._active = name
        LOGGER.debug("Active profile set to '%s'", name)
        return validation

    def clear(self) -> None:
        self._active = None
        self._invalidate()

    def refresh(self) -> ParsedProfiles:
        """Re-read the AWS files, dropping the selection if its profile vanished."""

        parsed = self._resolver.load()
        if self._active is not None and parsed.get(self._active) is None:
            LOGGER.debug("Active profile '%s' no longer exists", self._active)
            self.clear()
        return parsed

    def _invalidate(self) -> None:
        if self._on_invalidate:
            self._on_invalidate()
