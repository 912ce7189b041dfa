"""Configuration loading utilities for the account factory."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError

DEFAULT_DESIRED_STATE_FILE = "accountfactory.json"


class PollingSettings(BaseModel):
    interval_seconds: float = Field(1.0, description="Delay between account creation status polls")
    max_wait_seconds: float = Field(1800.0, description="Give up polling after this many seconds")

    @model_validator(mode="after")
    def _check_window(self) -> "PollingSettings":
        if self.interval_seconds < 0 or self.max_wait_seconds <= 0:
            raise ValueError("polling.interval_seconds must be >= 0 and polling.max_wait_seconds > 0")
        return self


class RetrySettings(BaseModel):
    max_retries: int = Field(5, ge=0, description="Retries after the first attempt")
    base_delay_seconds: float = Field(1.0, ge=0)
    max_delay_seconds: Optional[float] = Field(60.0, ge=0)


class ProfileSettings(BaseModel):
    region: str = "us-east-1"
    output: str = "json"
    cli_executable: str = Field("aws", description="Executable used for 'configure set'")


class FactorySettings(BaseModel):
    """Runtime settings, built once at start-up and handed to every component."""

    aws_profile: Optional[str] = Field(default=None, description="Named profile for the management account")
    region: str = "us-east-1"
    secret_region: str = Field("us-east-1", description="Region of the credential secret store")
    organization_role_name: str = "OrganizationAccountAccessRole"
    admin_policy_arn: str = "arn:aws:iam::aws:policy/AdministratorAccess"
    default_username: str = "deploy"
    session_name: str = "CreateIAMUser"
    session_duration_seconds: int = Field(3600, ge=900, le=43200)
    console_domain: str = "aws.amazon.com"
    cooldown_seconds: float = Field(15.0, ge=0, description="Wait after each create-account attempt")
    account_ready_delay_seconds: float = Field(
        30.0,
        ge=0,
        description="Wait after a new account is created before assuming its access role",
    )
    polling: PollingSettings = Field(default_factory=PollingSettings)
    creation_retry: RetrySettings = Field(default_factory=RetrySettings)
    profile: ProfileSettings = Field(default_factory=ProfileSettings)

    @field_validator("default_username", "organization_role_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("value must not be blank")
        return stripped

    @field_validator("aws_profile", mode="before")
    @classmethod
    def _strip_placeholder(cls, value: Any) -> Any:
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or (stripped.startswith("<") and stripped.endswith(">")):
                return None
            return stripped
        return value

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FactorySettings":
        return cls.model_validate(raw)

    @classmethod
    def from_yaml(cls, path: Path) -> "FactorySettings":
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return cls.from_dict(data)

    def with_overrides(self, **overrides: Any) -> "FactorySettings":
        """Return a copy with the non-``None`` overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        return self.model_copy(update=changes)


def load_settings(path: str | Path | None = None) -> FactorySettings:
    """Load settings from a YAML file, or return defaults when no path is given."""
    if path is None:
        return FactorySettings()
    settings_path = Path(path).expanduser().resolve()
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")
    try:
        return FactorySettings.from_yaml(settings_path)
    except (UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Settings file {settings_path} is not valid UTF-8 YAML: {exc}") from exc


class AccountSpec(BaseModel):
    """One declared member account."""

    model_config = ConfigDict(populate_by_name=True)

    account_name: str = Field(alias="accountName")
    profile_name: str = Field(alias="profileName")
    email: str = Field(validation_alias=AliasChoices("email", "identifyingEmail"))

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        stripped = value.strip()
        local, _, domain = stripped.partition("@")
        if not local or "." not in domain:
            raise ValueError(f"'{value}' is not a valid email address")
        return stripped

    @field_validator("account_name", "profile_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("value must not be blank")
        return stripped


class DesiredState(BaseModel):
    accounts: List[AccountSpec] = Field(default_factory=list)


_CONFIG_HINT = (
    "Please ensure '{name}' exists and is valid JSON. "
    "Run 'account-factory generate-skeleton' for an example configuration."
)


def load_desired_state(path: str | Path = DEFAULT_DESIRED_STATE_FILE) -> DesiredState:
    """Read and validate the desired-state JSON file."""
    state_path = Path(path).expanduser()
    hint = _CONFIG_HINT.format(name=state_path.name)
    try:
        raw = json.loads(state_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Failed to read account factory config: {state_path} not found. {hint}") from exc
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to read account factory config: {exc}. {hint}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Account factory config must be a JSON object. {hint}")
    try:
        return DesiredState.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid account factory config: {exc}") from exc


def generate_skeleton() -> str:
    """Return an example desired-state document."""
    skeleton = {
        "accounts": [
            {
                "accountName": "Shared Services",
                "profileName": "myappname-shared",
                "email": "sharedservices@example.com",
            },
            {
                "accountName": "Staging",
                "profileName": "myappname-staging",
                "email": "staging@example.com",
            },
            {
                "accountName": "Production",
                "profileName": "myappname-production",
                "email": "production@example.com",
            },
        ]
    }
    return json.dumps(skeleton, indent=2)
