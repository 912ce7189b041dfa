"""Domain models for account provisioning."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

EXISTING_PASSWORD_SENTINEL = "**EXISTING PASSWORD NOT CHANGED**"
SECRET_NAME_PREFIX = "iam-user"


def secret_name_for(account_id: str, username: str) -> str:
    return f"{SECRET_NAME_PREFIX}/{account_id}/{username}"


@dataclass(slots=True)
class Account:
    """Member account as reported by the organization listing."""

    id: str
    email: str
    name: str = ""
    status: str = ""

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Account":
        return cls(
            id=payload["Id"],
            email=payload.get("Email", ""),
            name=payload.get("Name", ""),
            status=payload.get("Status", ""),
        )

    def matches_email(self, email: str) -> bool:
        return self.email.lower() == email.lower()


class CreationState(str, Enum):
    STARTED = "STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (CreationState.SUCCEEDED, CreationState.FAILED)


@dataclass(slots=True)
class AccountCreationStatus:
    """Transient status of an asynchronous account creation request."""

    request_id: str
    state: CreationState = CreationState.STARTED
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    failure_reason: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "AccountCreationStatus":
        return cls(
            request_id=payload["Id"],
            state=CreationState(payload.get("State", CreationState.IN_PROGRESS.value)),
            account_id=payload.get("AccountId"),
            account_name=payload.get("AccountName"),
            failure_reason=payload.get("FailureReason"),
        )


@dataclass(slots=True)
class CallerIdentity:
    account_id: str
    arn: str
    user_id: str = ""

    @property
    def is_root(self) -> bool:
        return self.arn.endswith(":root")


@dataclass(slots=True)
class OperatorCredentials:
    """Secrets generated while bootstrapping an operator user."""

    password: str
    access_key_id: str
    secret_access_key: str


@dataclass(slots=True)
class CredentialRecord:
    """Credential payload persisted in the secret store."""

    username: str
    password: str
    access_key_id: str
    secret_access_key: str
    account_id: str
    console_url: str

    @classmethod
    def build(
        cls,
        account_id: str,
        username: str,
        credentials: OperatorCredentials,
        console_domain: str = "aws.amazon.com",
    ) -> "CredentialRecord":
        return cls(
            username=username,
            password=credentials.password,
            access_key_id=credentials.access_key_id,
            secret_access_key=credentials.secret_access_key,
            account_id=account_id,
            console_url=f"https://{account_id}.signin.{console_domain}/console",
        )

    @classmethod
    def from_secret(cls, payload: Dict[str, Any]) -> "CredentialRecord":
        return cls(
            username=payload["username"],
            password=payload.get("password", ""),
            access_key_id=payload["access_key_id"],
            secret_access_key=payload["secret_access_key"],
            account_id=payload["account_id"],
            console_url=payload.get("console_url", ""),
        )

    def to_secret(self) -> Dict[str, str]:
        return {
            "username": self.username,
            "password": self.password,
            "access_key_id": self.access_key_id,
            "secret_access_key": self.secret_access_key,
            "account_id": self.account_id,
            "console_url": self.console_url,
        }


@dataclass(slots=True)
class ProvisionResult:
    """Outcome of bootstrapping the operator user in one account."""

    account_id: str
    username: str
    created: bool
    record: Optional[CredentialRecord] = None


@dataclass(slots=True)
class LocalProfile:
    """Values written to one named local CLI profile."""

    name: str
    access_key_id: str
    secret_access_key: str
    region: str = "us-east-1"
    output: str = "json"

    def settings(self) -> List[tuple[str, str]]:
        return [
            ("aws_access_key_id", self.access_key_id),
            ("aws_secret_access_key", self.secret_access_key),
            ("region", self.region),
            ("output", self.output),
        ]


@dataclass(slots=True)
class RunSummary:
    """What a create-accounts run did, in declaration order.

    ``failed`` holds accounts whose creation ended in a terminal provider failure,
    as ``{"email": ..., "reason": ...}`` entries.
    """

    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)
    bootstrapped: List[str] = field(default_factory=list)
    existing_users: List[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "created": list(self.created),
            "skipped": list(self.skipped),
            "failed": [dict(entry) for entry in self.failed],
            "bootstrapped": list(self.bootstrapped),
            "existing_users": list(self.existing_users),
        }
