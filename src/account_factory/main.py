"""CLI entrypoint for the account factory."""
from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import NoReturn, Optional

import typer
from botocore.exceptions import BotoCoreError

from .config import DEFAULT_DESIRED_STATE_FILE, FactorySettings, generate_skeleton, load_desired_state, load_settings
from .errors import AccountFactoryError, ConfigurationError, OperationCancelled
from .orchestrator import ProvisioningOrchestrator, build_orchestrator

logger = logging.getLogger("account_factory")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def _log_directory() -> Path:
    if sys.platform == "win32":
        base = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / "accountfactory" / "logs"
    return Path.home() / ".local" / "state" / "accountfactory" / "logs"


def _configure_logging() -> None:
    env_level = os.getenv("ACCOUNT_FACTORY_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, env_level, None)
    if not isinstance(level, int):
        level = logging.INFO
        logging.warning(
            "Unrecognized ACCOUNT_FACTORY_LOG_LEVEL '%s'; defaulting to INFO",
            env_level,
        )
    logging.basicConfig(level=level, format=LOG_FORMAT)

    if os.getenv("ACCOUNT_FACTORY_ENABLE_LOGGING", "").lower() == "true":
        log_dir = _log_directory()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "accountfactory.log")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)


_configure_logging()

app = typer.Typer(help="AWS Organizations account factory")


def _settings(ctx: typer.Context) -> FactorySettings:
    return ctx.obj["settings"]


def _orchestrator(ctx: typer.Context) -> ProvisioningOrchestrator:
    try:
        return build_orchestrator(_settings(ctx), confirm=lambda message: typer.confirm(message, default=False))
    except BotoCoreError as exc:
        raise ConfigurationError(f"Unable to create AWS clients: {exc}") from exc


def _fail(exc: Exception) -> NoReturn:
    logger.debug("Command failed", exc_info=exc)
    typer.secho(f"Command failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


@app.callback()
def main(
    ctx: typer.Context,
    settings: Optional[Path] = typer.Option(None, "--settings", help="Path to a settings YAML file"),
    profile: Optional[str] = typer.Option(None, "--profile", help="AWS profile for the management account"),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region for API calls"),
) -> None:
    """Provision member accounts and their operator credentials."""

    try:
        loaded = load_settings(settings)
    except (FileNotFoundError, ValueError, ConfigurationError) as exc:
        _fail(exc)
    ctx.obj = {"settings": loaded.with_overrides(aws_profile=profile, region=region)}


@app.command("list-accounts")
def list_accounts(ctx: typer.Context) -> None:
    """List accounts in the AWS Organization."""

    try:
        accounts = _orchestrator(ctx).list_accounts()
    except AccountFactoryError as exc:
        _fail(exc)
    if not accounts:
        logger.info("No accounts found in AWS Organizations")
    typer.echo(json.dumps([asdict(account) for account in accounts], indent=2))


@app.command("list-accounts-with-credentials")
def list_accounts_with_credentials(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(None, help="IAM username whose credentials are listed"),
) -> None:
    """List accounts together with their stored operator credentials."""

    try:
        rows = _orchestrator(ctx).list_accounts_with_credentials(username)
    except AccountFactoryError as exc:
        _fail(exc)
    payload = [
        {**asdict(account), "credentials": record.to_secret() if record else None}
        for account, record in rows
    ]
    typer.echo(json.dumps(payload, indent=2))


@app.command("generate-skeleton")
def generate_skeleton_command(
    output: Optional[Path] = typer.Option(None, help="Write the skeleton to this file instead of stdout"),
) -> None:
    """Generate a skeleton accountfactory.json file."""

    skeleton = generate_skeleton()
    if output is None:
        typer.echo(skeleton)
        return
    if output.exists():
        typer.secho(f"{output} already exists; refusing to overwrite it.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    output.write_text(skeleton + "\n")
    typer.echo(f"Wrote {output}")


@app.command("create-accounts")
def create_accounts(
    ctx: typer.Context,
    config: Path = typer.Option(Path(DEFAULT_DESIRED_STATE_FILE), help="Path to the accountfactory JSON file"),
    username: Optional[str] = typer.Option(None, help="IAM username to create in each account"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Create accounts even if the email already exists"),
    skip_confirmation: bool = typer.Option(False, "--skip-confirmation", help="Skip the confirmation prompt"),
) -> None:
    """Create the declared accounts and bootstrap their operator users."""

    try:
        summary = _orchestrator(ctx).create_accounts(
            lambda: load_desired_state(config),
            username=username,
            overwrite=overwrite,
            skip_confirmation=skip_confirmation,
        )
    except OperationCancelled as exc:
        typer.secho(str(exc), fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1) from exc
    except AccountFactoryError as exc:
        _fail(exc)
    typer.echo(json.dumps(summary.as_dict(), indent=2))
    if summary.has_failures:
        for entry in summary.failed:
            typer.secho(
                f"Account creation failed for {entry['email']}: {entry['reason']}",
                fg=typer.colors.RED,
                err=True,
            )
        raise typer.Exit(code=1)


@app.command("setup-aws-profiles")
def setup_aws_profiles(
    ctx: typer.Context,
    config: Path = typer.Option(Path(DEFAULT_DESIRED_STATE_FILE), help="Path to the accountfactory JSON file"),
    username: Optional[str] = typer.Option(None, help="IAM username whose credentials are used"),
) -> None:
    """Configure local AWS profiles from credentials stored in Secrets Manager."""

    try:
        profiles = _orchestrator(ctx).setup_profiles(lambda: load_desired_state(config), username=username)
    except AccountFactoryError as exc:
        _fail(exc)
    typer.echo(json.dumps({"profiles": [profile.name for profile in profiles]}, indent=2))


if __name__ == "__main__":
    app()
