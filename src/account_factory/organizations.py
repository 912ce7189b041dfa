"""AWS Organizations member account registry."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional

from .config import FactorySettings
from .errors import (
    AccessDeniedError,
    AccountCreationFailedError,
    AccountCreationTimeoutError,
    ConcurrencyConflictError,
    remote_call,
)
from .models import Account, AccountCreationStatus, CreationState
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

# Terminal failure reasons that are reported instead of raised.
KNOWN_FAILURE_REASONS = frozenset(
    {
        "ACCOUNT_LIMIT_EXCEEDED",
        "EMAIL_ALREADY_EXISTS",
        "INVALID_ADDRESS",
        "INVALID_EMAIL",
        "CONCURRENT_ACCOUNT_MODIFICATION",
        "INTERNAL_FAILURE",
        "GOVCLOUD_ACCOUNT_ALREADY_EXISTS",
        "MISSING_BUSINESS_VALIDATION",
        "FAILED_BUSINESS_VALIDATION",
        "PENDING_BUSINESS_VALIDATION",
        "INVALID_IDENTITY_FOR_BUSINESS_VALIDATION",
        "UNKNOWN_BUSINESS_VALIDATION",
        "MISSING_PAYMENT_INSTRUMENT",
        "INVALID_PAYMENT_INSTRUMENT",
        "UPDATE_EXISTING_RESOURCE_POLICY_WITH_TAGS_NOT_SUPPORTED",
    }
)

# Subset of the above that means the declared account is already there.
ALREADY_EXISTS_REASONS = frozenset({"EMAIL_ALREADY_EXISTS", "GOVCLOUD_ACCOUNT_ALREADY_EXISTS"})


def is_already_exists(status: AccountCreationStatus) -> bool:
    return status.state is CreationState.FAILED and status.failure_reason in ALREADY_EXISTS_REASONS


ACCESS_DENIED_HINT = (
    "Access Denied. This account does not have permissions to list or create accounts in "
    "AWS Organizations. Please use a profile with the required permissions."
)


class AccountRegistry:
    """Lists member accounts and drives asynchronous account creation."""

    def __init__(
        self,
        organizations_client: Any,
        settings: FactorySettings,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = organizations_client
        self._settings = settings
        self._sleep = sleep
        self._clock = clock
        retry = settings.creation_retry
        self._submit_policy = RetryPolicy(
            max_retries=retry.max_retries,
            base_delay=retry.base_delay_seconds,
            max_delay=retry.max_delay_seconds,
            retry_on=(ConcurrencyConflictError,),
            sleep=sleep,
        )

    def list_accounts(self) -> List[Account]:
        accounts: List[Account] = []
        next_token: Optional[str] = None
        while True:
            kwargs = {"NextToken": next_token} if next_token else {}
            try:
                with remote_call("ListAccounts"):
                    response = self._client.list_accounts(**kwargs)
            except AccessDeniedError as exc:
                logger.error(ACCESS_DENIED_HINT)
                raise AccessDeniedError(exc.operation, exc.code, ACCESS_DENIED_HINT) from exc
            accounts.extend(Account.from_api(item) for item in response.get("Accounts", []))
            next_token = response.get("NextToken")
            if not next_token:
                break
        logger.debug("Found %s accounts in the organization", len(accounts))
        return accounts

    def find_account(self, email: str) -> Optional[Account]:
        for account in self.list_accounts():
            if account.matches_email(email):
                return account
        return None

    def account_exists(self, email: str) -> bool:
        return self.find_account(email) is not None

    def create_account(
        self,
        email: str,
        account_name: str,
        role_name: Optional[str] = None,
        overwrite: bool = False,
    ) -> Optional[str]:
        """Create a member account and return its id.

        Returns ``None`` when the account already exists (and ``overwrite`` is not
        set) or when creation ends in a recognized ``FAILED`` state.
        """

        status = self.ensure_account(email, account_name, role_name, overwrite)
        if status is None or status.state is not CreationState.SUCCEEDED:
            return None
        return status.account_id

    def ensure_account(
        self,
        email: str,
        account_name: str,
        role_name: Optional[str] = None,
        overwrite: bool = False,
    ) -> Optional[AccountCreationStatus]:
        """Like :meth:`create_account` but return the terminal creation status.

        ``None`` means the email is already present and nothing was submitted. Every
        attempt that returns, including the skip, is followed by the configured cooldown.
        """

        logger.debug("Starting account creation process for %s", email)
        status = self._create_account(email, account_name, role_name, overwrite)
        self.wait_for_next_operation()
        return status

    def _create_account(
        self,
        email: str,
        account_name: str,
        role_name: Optional[str],
        overwrite: bool,
    ) -> Optional[AccountCreationStatus]:
        if not overwrite and self.account_exists(email):
            logger.info("Account %s already exists. Skipping creation...", email)
            return None

        request_id = self._submit_policy.call(
            self._submit_creation,
            email,
            account_name,
            role_name or self._settings.organization_role_name,
            description=f"CreateAccount for {email}",
        )
        logger.info("Account creation initiated: %s", request_id)

        status = self.poll_account_creation(request_id)
        if status.state is CreationState.SUCCEEDED:
            logger.info("Account creation succeeded for %s (%s)", email, status.account_id)
            return status

        if is_already_exists(status):
            logger.warning("Account %s already exists (%s). Skipping...", email, status.failure_reason)
            return status
        if status.failure_reason in KNOWN_FAILURE_REASONS:
            logger.error("Account creation failed for %s: %s", email, status.failure_reason)
            return status
        raise AccountCreationFailedError(email, status.failure_reason)

    def _submit_creation(self, email: str, account_name: str, role_name: str) -> str:
        with remote_call("CreateAccount"):
            response = self._client.create_account(
                Email=email,
                AccountName=account_name,
                RoleName=role_name,
            )
        return response["CreateAccountStatus"]["Id"]

    def describe_create_account_status(self, request_id: str) -> AccountCreationStatus:
        with remote_call("DescribeCreateAccountStatus"):
            response = self._client.describe_create_account_status(CreateAccountRequestId=request_id)
        return AccountCreationStatus.from_api(response["CreateAccountStatus"])

    def poll_account_creation(self, request_id: str) -> AccountCreationStatus:
        polling = self._settings.polling
        started = self._clock()
        status = AccountCreationStatus(request_id=request_id)
        while not status.state.is_terminal:
            elapsed = self._clock() - started
            if elapsed > polling.max_wait_seconds:
                raise AccountCreationTimeoutError(request_id, polling.max_wait_seconds)
            logger.debug("Polling account creation status (%s)...", request_id)
            status = self.describe_create_account_status(request_id)
            logger.debug("Account status for %s: %s", request_id, status.state.value)
            if not status.state.is_terminal:
                self._sleep(polling.interval_seconds)
        return status

    def wait_for_next_operation(self) -> None:
        delay = self._settings.cooldown_seconds
        if delay <= 0:
            return
        logger.info("Waiting %s seconds before next operation...", delay)
        self._sleep(delay)
