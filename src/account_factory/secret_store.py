"""Credential records persisted in AWS Secrets Manager."""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .errors import AlreadyExistsError, InvalidSecretError, NotFoundError, remote_call
from .models import CredentialRecord, secret_name_for

logger = logging.getLogger(__name__)


class CredentialStore:
    """Create-or-update store keyed ``iam-user/{account_id}/{username}``."""

    def __init__(self, secretsmanager_client: Any) -> None:
        self._client = secretsmanager_client

    def put(self, account_id: str, username: str, record: CredentialRecord) -> str:
        secret_name = secret_name_for(account_id, username)
        secret_value = json.dumps(record.to_secret())
        try:
            with remote_call("CreateSecret"):
                self._client.create_secret(
                    Name=secret_name,
                    SecretString=secret_value,
                    Description=f"Credentials for IAM user {username} in account {account_id}",
                    Tags=[
                        {"Key": "AccountId", "Value": account_id},
                        {"Key": "Username", "Value": username},
                    ],
                )
            logger.info("Stored credentials in Secrets Manager as %s", secret_name)
        except AlreadyExistsError:
            with remote_call("PutSecretValue"):
                self._client.put_secret_value(SecretId=secret_name, SecretString=secret_value)
            logger.info("Updated credentials in Secrets Manager as %s", secret_name)
        return secret_name

    def get(self, account_id: str, username: str) -> Optional[CredentialRecord]:
        secret_name = secret_name_for(account_id, username)
        logger.info("Retrieving credentials from Secrets Manager for %s", secret_name)
        try:
            with remote_call("GetSecretValue"):
                response = self._client.get_secret_value(SecretId=secret_name)
        except NotFoundError:
            logger.warning("No existing credentials found in Secrets Manager for %s", secret_name)
            return None

        secret_string = response.get("SecretString")
        if secret_string is None:
            raise InvalidSecretError(secret_name, "no SecretString value (binary secrets are not supported)")
        try:
            return CredentialRecord.from_secret(json.loads(secret_string))
        except json.JSONDecodeError as exc:
            raise InvalidSecretError(secret_name, f"not valid JSON ({exc})") from exc
        except KeyError as exc:
            raise InvalidSecretError(secret_name, f"missing field {exc}") from exc
        except (TypeError, AttributeError) as exc:
            raise InvalidSecretError(secret_name, "expected a JSON object") from exc
