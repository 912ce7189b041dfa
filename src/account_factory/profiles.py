"""Local AWS CLI profile reconciliation."""
from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Iterable, Protocol

from .config import ProfileSettings
from .errors import AccountNotFoundError, MissingCredentialsError, ProfileCommandError
from .models import Account, LocalProfile
from .secret_store import CredentialStore

logger = logging.getLogger(__name__)

_SECRET_KEYS = {"aws_access_key_id", "aws_secret_access_key"}


class ProfileWriter(Protocol):
    def set(self, profile_name: str, key: str, value: str) -> None:
        ...


class AwsCliProfileWriter:
    """Writes profile values with ``aws configure set``."""

    def __init__(self, executable: str = "aws") -> None:
        self._executable = executable
        self._checked = False

    def _ensure_available(self) -> None:
        if self._checked:
            return
        if shutil.which(self._executable) is None:
            raise ProfileCommandError(
                f"{self._executable} configure set",
                f"'{self._executable}' is required to set up profiles. Please install the AWS CLI and try again.",
            )
        self._checked = True

    def set(self, profile_name: str, key: str, value: str) -> None:
        self._ensure_available()
        shown_value = "****" if key in _SECRET_KEYS else value
        command = f"{self._executable} configure set {key} {shown_value} --profile {profile_name}"
        try:
            result = subprocess.run(
                [self._executable, "configure", "set", key, value, "--profile", profile_name],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise ProfileCommandError(command, str(exc)) from exc
        if result.returncode != 0:
            raise ProfileCommandError(command, result.stderr.strip() or f"exit status {result.returncode}")
        if result.stderr.strip():
            raise ProfileCommandError(command, result.stderr.strip())


class ProfileReconciler:
    """Materializes stored operator credentials as named local profiles."""

    def __init__(self, store: CredentialStore, writer: ProfileWriter, settings: ProfileSettings) -> None:
        self._store = store
        self._writer = writer
        self._settings = settings

    def apply(
        self,
        account_email: str,
        live_accounts: Iterable[Account],
        profile_name: str,
        username: str,
    ) -> LocalProfile:
        account = next((item for item in live_accounts if item.matches_email(account_email)), None)
        if account is None:
            raise AccountNotFoundError(f"Could not find AWS Organizations account with email {account_email}")
        logger.info(
            "Found AWS Organizations account %s with email %s and profile name %s",
            account.id,
            account_email,
            profile_name,
        )

        logger.info("Getting existing credentials for user %s in account %s", username, account.id)
        record = self._store.get(account.id, username)
        if record is None:
            raise MissingCredentialsError(
                f"No credentials found for user {username} in account {account.id}. "
                f'Please run "account-factory create-accounts --username {username}" first '
                "to create the IAM user and store credentials."
            )

        profile = LocalProfile(
            name=profile_name,
            access_key_id=record.access_key_id,
            secret_access_key=record.secret_access_key,
            region=self._settings.region,
            output=self._settings.output,
        )
        for key, value in profile.settings():
            self._writer.set(profile_name, key, value)

        logger.info("Successfully configured AWS profile '%s'", profile_name)
        logger.info("You can now use this profile with: aws --profile %s [command]", profile_name)
        return profile
