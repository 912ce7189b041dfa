"""boto3 client construction for the management account."""
from __future__ import annotations

import logging
from typing import Any, Optional

import boto3

from .config import FactorySettings

logger = logging.getLogger(__name__)


class AwsClients:
    """Builds boto3 clients from one management-account session."""

    def __init__(self, settings: FactorySettings, session: Optional[Any] = None) -> None:
        self._settings = settings
        self._session = session or boto3.session.Session(
            profile_name=settings.aws_profile,
            region_name=settings.region,
        )
        self._cache: dict[tuple[str, Optional[str]], Any] = {}

    def _client(self, service: str, region: Optional[str] = None) -> Any:
        key = (service, region)
        if key not in self._cache:
            logger.debug("Creating %s client (region=%s)", service, region or self._settings.region)
            if region:
                self._cache[key] = self._session.client(service, region_name=region)
            else:
                self._cache[key] = self._session.client(service)
        return self._cache[key]

    def sts(self) -> Any:
        return self._client("sts")

    def organizations(self) -> Any:
        return self._client("organizations")

    def secretsmanager(self) -> Any:
        return self._client("secretsmanager", region=self._settings.secret_region)


def session_from_credentials(credentials: dict[str, Any], region: str) -> Any:
    """Build a session from an STS ``Credentials`` block."""
    return boto3.session.Session(
        aws_access_key_id=credentials["AccessKeyId"],
        aws_secret_access_key=credentials["SecretAccessKey"],
        aws_session_token=credentials["SessionToken"],
        region_name=region,
    )
