"""Service orchestration for account provisioning."""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple, cast

from .clients import AwsClients
from .config import AccountSpec, DesiredState, FactorySettings
from .errors import ConfigurationError, OperationCancelled
from .iam import IdentityBootstrapper
from .models import (
    Account,
    CreationState,
    CredentialRecord,
    LocalProfile,
    ProvisionResult,
    RunSummary,
    secret_name_for,
)
from .organizations import AccountRegistry, is_already_exists
from .pipeline import PipelineContext, PipelineRunner, PipelineStep
from .profiles import AwsCliProfileWriter, ProfileReconciler, ProfileWriter
from .secret_store import CredentialStore
from .sts import IdentityVerifier

logger = logging.getLogger(__name__)

CONFIRMATION_PROMPT = "Are you sure you want to create new accounts in AWS Organizations?"

DesiredStateLoader = Callable[[], DesiredState]


class ProvisioningOrchestrator:
    """Coordinates account creation, operator bootstrap and credential storage.

    Accounts are processed one at a time in declaration order. A step that raises
    stops the whole run; accounts already handled keep their remote state.
    """

    def __init__(
        self,
        settings: FactorySettings,
        verifier: IdentityVerifier,
        registry: AccountRegistry,
        bootstrapper: IdentityBootstrapper,
        store: CredentialStore,
        reconciler: ProfileReconciler,
        *,
        confirm: Optional[Callable[[str], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._verifier = verifier
        self._registry = registry
        self._bootstrapper = bootstrapper
        self._store = store
        self._reconciler = reconciler
        self._confirm = confirm
        self._sleep = sleep
        self._runner = PipelineRunner()

    def list_accounts(self) -> List[Account]:
        self._verifier.verify()
        return self._registry.list_accounts()

    def list_accounts_with_credentials(
        self, username: Optional[str] = None
    ) -> List[Tuple[Account, Optional[CredentialRecord]]]:
        user = username or self._settings.default_username
        self._verifier.verify()
        return [(account, self._store.get(account.id, user)) for account in self._registry.list_accounts()]

    def create_accounts(
        self,
        load_state: DesiredStateLoader,
        *,
        username: Optional[str] = None,
        overwrite: bool = False,
        skip_confirmation: bool = False,
    ) -> RunSummary:
        user = username or self._settings.default_username

        if not skip_confirmation:
            if self._confirm is None or not self._confirm(CONFIRMATION_PROMPT):
                raise OperationCancelled("Account creation cancelled by operator")

        self._verifier.verify()

        desired_state = load_state()
        if not desired_state.accounts:
            raise ConfigurationError("No accounts found in the account factory config")

        summary = RunSummary()
        for spec in desired_state.accounts:
            self._runner.run(self._account_steps(spec, user, overwrite, summary), {"spec": spec})
        return summary

    def _account_steps(
        self,
        spec: AccountSpec,
        username: str,
        overwrite: bool,
        summary: RunSummary,
    ) -> List[PipelineStep]:
        def resolve_or_create(ctx: PipelineContext) -> None:
            status = self._registry.ensure_account(
                spec.email,
                spec.account_name,
                self._settings.organization_role_name,
                overwrite,
            )
            ctx["account_id"] = None
            if status is None or is_already_exists(status):
                summary.skipped.append(spec.email)
            elif status.state is CreationState.SUCCEEDED:
                ctx["account_id"] = status.account_id
                logger.info("Account %s created with ID %s", spec.email, status.account_id)
                summary.created.append(spec.email)
            else:
                summary.failed.append({"email": spec.email, "reason": status.failure_reason or "UNKNOWN"})

        def wait_until_ready(ctx: PipelineContext) -> None:
            delay = self._settings.account_ready_delay_seconds
            if delay > 0:
                logger.info("Waiting %s seconds for account to be ready before creating IAM user...", delay)
                self._sleep(delay)

        def bootstrap_identity(ctx: PipelineContext) -> None:
            account_id = str(ctx["account_id"])
            result = self._bootstrapper.provision(account_id, username)
            ctx["provision"] = result
            if not result.created:
                summary.existing_users.append(account_id)
                logger.info(
                    "Existing credentials, if stored, can be read with: "
                    "aws secretsmanager get-secret-value --secret-id %s",
                    secret_name_for(account_id, username),
                )

        def persist_credentials(ctx: PipelineContext) -> None:
            result = cast(ProvisionResult, ctx["provision"])
            record = cast(CredentialRecord, result.record)
            logger.info(
                "Storing credentials in Secrets Manager for user %s in account %s",
                username,
                result.account_id,
            )
            self._store.put(result.account_id, username, record)
            summary.bootstrapped.append(result.account_id)

        def has_account(ctx: PipelineContext) -> bool:
            return bool(ctx.get("account_id"))

        def user_created(ctx: PipelineContext) -> bool:
            result = ctx.get("provision")
            return isinstance(result, ProvisionResult) and result.created

        return [
            PipelineStep(name="resolve_or_create", action=resolve_or_create),
            PipelineStep(name="wait_until_ready", action=wait_until_ready, when=has_account),
            PipelineStep(name="bootstrap_identity", action=bootstrap_identity, when=has_account),
            PipelineStep(name="persist_credentials", action=persist_credentials, when=user_created),
        ]

    def setup_profiles(self, load_state: DesiredStateLoader, *, username: Optional[str] = None) -> List[LocalProfile]:
        user = username or self._settings.default_username
        self._verifier.verify()
        live_accounts = self._registry.list_accounts()
        desired_state = load_state()

        profiles: List[LocalProfile] = []
        for spec in desired_state.accounts:
            logger.info("Setting up profiles for account %s", spec.email)
            profiles.append(self._reconciler.apply(spec.email, live_accounts, spec.profile_name, user))
        return profiles


def build_orchestrator(
    settings: FactorySettings,
    *,
    clients: Optional[AwsClients] = None,
    writer: Optional[ProfileWriter] = None,
    confirm: Optional[Callable[[str], bool]] = None,
) -> ProvisioningOrchestrator:
    """Wire every component from one settings value."""
    aws = clients or AwsClients(settings)
    store = CredentialStore(aws.secretsmanager())
    return ProvisioningOrchestrator(
        settings,
        IdentityVerifier(aws.sts()),
        AccountRegistry(aws.organizations(), settings),
        IdentityBootstrapper(aws.sts(), settings),
        store,
        ProfileReconciler(store, writer or AwsCliProfileWriter(settings.profile.cli_executable), settings.profile),
        confirm=confirm,
    )
