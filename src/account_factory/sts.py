"""Caller identity verification."""
from __future__ import annotations

import logging
from typing import Any

from .errors import AccountFactoryError, remote_call
from .models import CallerIdentity

logger = logging.getLogger(__name__)


class IdentityVerifier:
    """Confirms who the operator is before anything is mutated."""

    def __init__(self, sts_client: Any) -> None:
        self._sts = sts_client

    def verify(self) -> CallerIdentity:
        with remote_call("GetCallerIdentity"):
            response = self._sts.get_caller_identity()
        account_id = response.get("Account")
        if not account_id:
            raise AccountFactoryError("Failed to retrieve AWS account ID. Please check your AWS credentials.")
        identity = CallerIdentity(
            account_id=account_id,
            arn=response.get("Arn", ""),
            user_id=response.get("UserId", ""),
        )
        if identity.is_root:
            logger.warning("Running as the root user. Consider using an IAM user or role instead.")
        logger.info("AWS account ID: %s", identity.account_id)
        return identity
