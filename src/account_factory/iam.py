"""Operator IAM user bootstrap inside member accounts."""
from __future__ import annotations

import logging
from typing import Any, Callable

from .clients import session_from_credentials
from .config import FactorySettings
from .errors import AlreadyExistsError, NotFoundError, RemoteError, remote_call
from .models import EXISTING_PASSWORD_SENTINEL, CredentialRecord, OperatorCredentials, ProvisionResult
from .passwords import generate_password

logger = logging.getLogger(__name__)


class IdentityBootstrapper:
    """Creates the operator user, its console login, policy and access key."""

    def __init__(
        self,
        sts_client: Any,
        settings: FactorySettings,
        *,
        session_factory: Callable[[dict[str, Any], str], Any] = session_from_credentials,
        password_generator: Callable[[], str] = generate_password,
    ) -> None:
        self._sts = sts_client
        self._settings = settings
        self._session_factory = session_factory
        self._generate_password = password_generator

    def role_arn(self, account_id: str) -> str:
        return f"arn:aws:iam::{account_id}:role/{self._settings.organization_role_name}"

    def get_session_for_account(self, account_id: str) -> Any:
        """Assume the organization access role in ``account_id`` and return a scoped session."""
        role_arn = self.role_arn(account_id)
        logger.debug("Assuming role %s", role_arn)
        try:
            with remote_call("AssumeRole"):
                response = self._sts.assume_role(
                    RoleArn=role_arn,
                    RoleSessionName=self._settings.session_name,
                    DurationSeconds=self._settings.session_duration_seconds,
                )
        except RemoteError as exc:
            logger.error("Failed to get a session for account %s: %s", account_id, exc)
            raise
        return self._session_factory(response["Credentials"], self._settings.region)

    def user_exists(self, session: Any, username: str) -> bool:
        iam = session.client("iam")
        try:
            with remote_call("GetUser"):
                iam.get_user(UserName=username)
        except NotFoundError:
            return False
        return True

    def create_operator_identity(self, session: Any, account_id: str, username: str) -> CredentialRecord:
        iam = session.client("iam")

        try:
            with remote_call("CreateUser"):
                iam.create_user(UserName=username)
        except AlreadyExistsError:
            logger.info("IAM user %s already exists in account %s", username, account_id)

        password = self._generate_password()
        try:
            with remote_call("CreateLoginProfile"):
                iam.create_login_profile(
                    UserName=username,
                    Password=password,
                    PasswordResetRequired=True,
                )
        except AlreadyExistsError:
            logger.warning("Login profile already exists for user %s, skipping password creation", username)
            password = EXISTING_PASSWORD_SENTINEL

        with remote_call("AttachUserPolicy"):
            iam.attach_user_policy(UserName=username, PolicyArn=self._settings.admin_policy_arn)

        with remote_call("CreateAccessKey"):
            response = iam.create_access_key(UserName=username)
        access_key = response["AccessKey"]

        credentials = OperatorCredentials(
            password=password,
            access_key_id=access_key["AccessKeyId"],
            secret_access_key=access_key["SecretAccessKey"],
        )
        return CredentialRecord.build(account_id, username, credentials, self._settings.console_domain)

    def provision(self, account_id: str, username: str) -> ProvisionResult:
        """Bootstrap ``username`` in ``account_id`` unless the user already exists."""
        logger.info("Creating IAM user %s in account %s", username, account_id)
        session = self.get_session_for_account(account_id)

        if self.user_exists(session, username):
            logger.info(
                "IAM user already exists. Skipping user creation for %s in account %s",
                username,
                account_id,
            )
            return ProvisionResult(account_id=account_id, username=username, created=False)

        logger.info("User %s does not exist in account %s. Creating new user...", username, account_id)
        record = self.create_operator_identity(session, account_id, username)
        return ProvisionResult(account_id=account_id, username=username, created=True, record=record)
