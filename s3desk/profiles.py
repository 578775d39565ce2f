from __future__ import annotations
"""AWS profile models and resolution from the shared credentials/config files."""
from dataclasses import dataclass, field
from enum import Enum
import logging
from pathlib import Path
from typing import ClassVar, Optional, Union

from .aws_config import SectionTable, read_config_file, read_credentials_file

LOGGER = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"
CREDENTIAL_SOURCES = ("Environment", "Ec2InstanceMetadata", "EcsContainer")


class ProfileType(str, Enum):
    STATIC = "static"
    ROLE = "role"
    SSO = "sso"
    PROCESS = "process"
    WEB_IDENTITY = "web-identity"
    CONFIG_ONLY = "config-only"


PROFILE_TYPE_DESCRIPTIONS = {
    ProfileType.STATIC: "Access Key",
    ProfileType.ROLE: "IAM Role",
    ProfileType.SSO: "AWS SSO",
    ProfileType.PROCESS: "External Process",
    ProfileType.WEB_IDENTITY: "Web Identity",
    ProfileType.CONFIG_ONLY: "Config Only",
}


@dataclass(frozen=True)
class StaticAuth:
    profile_type: ClassVar[ProfileType] = ProfileType.STATIC

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None


@dataclass(frozen=True)
class RoleAuth:
    profile_type: ClassVar[ProfileType] = ProfileType.ROLE

    role_arn: str
    source_profile: Optional[str] = None
    credential_source: Optional[str] = None


@dataclass(frozen=True)
class SsoAuth:
    profile_type: ClassVar[ProfileType] = ProfileType.SSO

    start_url: Optional[str] = None
    session: Optional[str] = None
    account_id: Optional[str] = None
    role_name: Optional[str] = None
    region: Optional[str] = None


@dataclass(frozen=True)
class ProcessAuth:
    profile_type: ClassVar[ProfileType] = ProfileType.PROCESS

    command: str


@dataclass(frozen=True)
class WebIdentityAuth:
    profile_type: ClassVar[ProfileType] = ProfileType.WEB_IDENTITY

    token_file: str
    role_arn: Optional[str] = None


@dataclass(frozen=True)
class ConfigOnly:
    profile_type: ClassVar[ProfileType] = ProfileType.CONFIG_ONLY


AuthMechanism = Union[StaticAuth, RoleAuth, SsoAuth, ProcessAuth, WebIdentityAuth, ConfigOnly]


@dataclass(frozen=True)
class AwsProfile:
    """A named authentication identity assembled from the AWS files.

    ``auth`` is the classified mechanism; the flat optional fields keep every
    setting that was read, including ones the mechanism does not use.
    ``has_credentials`` and ``unusable_reason`` are computed against the full
    profile set when the files are resolved.
    """

    name: str
    auth: AuthMechanism
    has_credentials: bool
    unusable_reason: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    region: Optional[str] = None
    output: Optional[str] = None
    source_profile: Optional[str] = None
    role_arn: Optional[str] = None
    credential_source: Optional[str] = None
    sso_start_url: Optional[str] = None
    sso_region: Optional[str] = None
    sso_account_id: Optional[str] = None
    sso_role_name: Optional[str] = None
    sso_session: Optional[str] = None
    credential_process: Optional[str] = None
    web_identity_token_file: Optional[str] = None

    @property
    def profile_type(self) -> ProfileType:
        return self.auth.profile_type


@dataclass(frozen=True)
class ProfileValidation:
    valid: bool
    reason: Optional[str] = None


@dataclass
class ParsedProfiles:
    profiles: list[AwsProfile] = field(default_factory=list)
    default_region: Optional[str] = None

    def get(self, name: str) -> Optional[AwsProfile]:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None

    @property
    def names(self) -> list[str]:
        return [profile.name for profile in self.profiles]


@dataclass(frozen=True)
class ProfileSummary:
    """Profile row shown by profile selectors."""

    name: str
    profile_type: ProfileType
    has_credentials: bool
    is_valid: bool
    region: Optional[str] = None
    validation_message: Optional[str] = None


@dataclass(frozen=True)
class ProfileDetails:
    """Profile view with secrets masked."""

    name: str
    profile_type: ProfileType
    has_credentials: bool
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    region: Optional[str] = None
    output: Optional[str] = None
    source_profile: Optional[str] = None
    role_arn: Optional[str] = None


def _has_key_pair(row: dict[str, str] | None) -> bool:
    if not row:
        return False
    return bool(row.get("aws_access_key_id") and row.get("aws_secret_access_key"))


def _setting(config_row: dict[str, str], credentials_row: dict[str, str], name: str) -> Optional[str]:
    # The config file wins when both files carry the same setting.
    return config_row.get(name) or credentials_row.get(name) or None


def classify(credentials_row: dict[str, str], config_row: dict[str, str]) -> AuthMechanism:
    """Build the authentication mechanism for one profile, first match wins."""

    if _has_key_pair(credentials_row):
        return StaticAuth(
            access_key_id=credentials_row["aws_access_key_id"],
            secret_access_key=credentials_row["aws_secret_access_key"],
            session_token=credentials_row.get("aws_session_token") or None,
        )
    if any(
        config_row.get(key)
        for key in ("sso_start_url", "sso_session", "sso_account_id", "sso_role_name")
    ):
        return SsoAuth(
            start_url=config_row.get("sso_start_url") or None,
            session=config_row.get("sso_session") or None,
            account_id=config_row.get("sso_account_id") or None,
            role_name=config_row.get("sso_role_name") or None,
            region=config_row.get("sso_region") or None,
        )
    if config_row.get("web_identity_token_file"):
        return WebIdentityAuth(
            token_file=config_row["web_identity_token_file"],
            role_arn=config_row.get("role_arn") or None,
        )
    if config_row.get("credential_process"):
        return ProcessAuth(command=config_row["credential_process"])
    if config_row.get("role_arn"):
        return RoleAuth(
            role_arn=config_row["role_arn"],
            source_profile=_setting(config_row, credentials_row, "source_profile"),
            credential_source=_setting(config_row, credentials_row, "credential_source"),
        )
    return ConfigOnly()


def assess(auth: AuthMechanism, credentials: SectionTable) -> tuple[bool, Optional[str]]:
    """Return ``(has_credentials, reason)`` for a classified mechanism.

    Role profiles look up their ``source_profile`` in the raw credentials
    table, not among the resolved profiles.
    """

    if isinstance(auth, StaticAuth):
        return True, None
    if isinstance(auth, SsoAuth):
        if not (auth.account_id and auth.role_name):
            return False, "SSO profile requires account id and role name"
        if not (auth.start_url or auth.session):
            return False, "SSO profile requires sso_start_url or sso_session"
        return True, None
    if isinstance(auth, WebIdentityAuth):
        if auth.token_file and auth.role_arn:
            return True, None
        return False, "Web identity profile missing token file or role ARN"
    if isinstance(auth, ProcessAuth):
        if auth.command:
            return True, None
        return False, "Process credentials command not configured"
    if isinstance(auth, RoleAuth):
        if auth.credential_source:
            if auth.credential_source in CREDENTIAL_SOURCES:
                return True, None
            return False, f"Unsupported credential_source '{auth.credential_source}'"
        if auth.source_profile:
            if auth.source_profile not in credentials:
                return False, f"Source profile '{auth.source_profile}' not found in credentials file"
            if _has_key_pair(credentials[auth.source_profile]):
                return True, None
            return False, "Source profile has no valid credentials"
        return False, "Role profile requires source_profile or credential_source"
    return False, "Profile has no credentials configured"


def _sort_key(profile: AwsProfile) -> tuple[int, str]:
    return (0 if profile.name == DEFAULT_PROFILE else 1, profile.name)


def resolve_profiles(credentials: SectionTable, config: SectionTable) -> ParsedProfiles:
    """Merge parsed credentials and config tables into classified profiles."""

    names = list(dict.fromkeys([*credentials, *config]))
    profiles: list[AwsProfile] = []
    for name in names:
        credentials_row = credentials.get(name, {})
        config_row = config.get(name, {})
        auth = classify(credentials_row, config_row)
        has_credentials, reason = assess(auth, credentials)

        key_fields: dict[str, Optional[str]] = {}
        if _has_key_pair(credentials_row):
            key_fields = {
                "access_key_id": credentials_row["aws_access_key_id"],
                "secret_access_key": credentials_row["aws_secret_access_key"],
                "session_token": credentials_row.get("aws_session_token") or None,
            }

        profiles.append(
            AwsProfile(
                name=name,
                auth=auth,
                has_credentials=has_credentials,
                unusable_reason=reason,
                region=config_row.get("region") or None,
                output=config_row.get("output") or None,
                source_profile=_setting(config_row, credentials_row, "source_profile"),
                role_arn=_setting(config_row, credentials_row, "role_arn"),
                credential_source=_setting(config_row, credentials_row, "credential_source"),
                sso_start_url=config_row.get("sso_start_url") or None,
                sso_region=config_row.get("sso_region") or None,
                sso_account_id=config_row.get("sso_account_id") or None,
                sso_role_name=config_row.get("sso_role_name") or None,
                sso_session=config_row.get("sso_session") or None,
                credential_process=config_row.get("credential_process") or None,
                web_identity_token_file=config_row.get("web_identity_token_file") or None,
                **key_fields,
            )
        )

    profiles.sort(key=_sort_key)

    default_region = None
    for profile in profiles:
        if profile.name == DEFAULT_PROFILE and profile.region:
            default_region = profile.region
            break
    if default_region is None:
        default_region = next((p.region for p in profiles if p.region), None)

    LOGGER.debug("Resolved %d AWS profile(s)", len(profiles))
    return ParsedProfiles(profiles=profiles, default_region=default_region)


def load_profiles(
    credentials_path: str | Path | None = None,
    config_path: str | Path | None = None,
) -> ParsedProfiles:
    return resolve_profiles(
        read_credentials_file(credentials_path),
        read_config_file(config_path),
    )


def get_profile(
    name: str,
    credentials_path: str | Path | None = None,
    config_path: str | Path | None = None,
) -> Optional[AwsProfile]:
    return load_profiles(credentials_path, config_path).get(name)


def validate_profile(profile: AwsProfile) -> ProfileValidation:
    if profile.has_credentials:
        return ProfileValidation(valid=True)
    return ProfileValidation(
        valid=False,
        reason=profile.unusable_reason or "Profile has no credentials configured",
    )


def profile_type_description(profile_type: ProfileType) -> str:
    return PROFILE_TYPE_DESCRIPTIONS[ProfileType(profile_type)]


def mask_credential(credential: str) -> str:
    if len(credential) <= 8:
        return "****"
    return f"{credential[:4]}...{credential[-4:]}"


def describe_profile(profile: AwsProfile) -> ProfileDetails:
    return ProfileDetails(
        name=profile.name,
        profile_type=profile.profile_type,
        has_credentials=profile.has_credentials,
        access_key_id=mask_credential(profile.access_key_id) if profile.access_key_id else None,
        secret_access_key="********" if profile.secret_access_key else None,
        session_token="********" if profile.session_token else None,
        region=profile.region,
        output=profile.output,
        source_profile=profile.source_profile,
        role_arn=profile.role_arn,
    )


def summarize_profiles(parsed: ParsedProfiles) -> list[ProfileSummary]:
    summaries = []
    for profile in parsed.profiles:
        validation = validate_profile(profile)
        summaries.append(
            ProfileSummary(
                name=profile.name,
                profile_type=profile.profile_type,
                has_credentials=profile.has_credentials,
                is_valid=validation.valid,
                region=profile.region,
                validation_message=validation.reason,
            )
        )
    return summaries


class ProfileResolver:
    """Re-reads the AWS files on every call so edits apply without a restart.

    Paths left as ``None`` follow ``AWS_SHARED_CREDENTIALS_FILE`` and
    ``AWS_CONFIG_FILE`` at call time.
    """

    def __init__(
        self,
        credentials_path: str | Path | None = None,
        config_path: str | Path | None = None,
    ):
        self.credentials_path = Path(credentials_path) if credentials_path is not None else None
        self.config_path = Path(config_path) if config_path is not None else None

    def load(self) -> ParsedProfiles:
        return load_profiles(self.credentials_path, self.config_path)

    def get(self, name: str) -> Optional[AwsProfile]:
        return self.load().get(name)
