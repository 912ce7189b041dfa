from __future__ import annotations

from types import SimpleNamespace

import pytest

from account_factory.config import ProfileSettings
from account_factory.errors import AccountNotFoundError, MissingCredentialsError, ProfileCommandError
from account_factory.models import Account, CredentialRecord, OperatorCredentials
from account_factory.profiles import AwsCliProfileWriter, ProfileReconciler
from account_factory.secret_store import CredentialStore
from conftest import FakeSecretsManager, FakeWriter

LIVE_ACCOUNTS = [
    Account(id="111111111111", email="Ops@Example.com", name="Ops", status="ACTIVE"),
    Account(id="222222222222", email="dev@example.com", name="Dev", status="ACTIVE"),
]


def _store_with_record() -> CredentialStore:
    store = CredentialStore(FakeSecretsManager())
    credentials = OperatorCredentials(password="pw", access_key_id="AKIAOPS", secret_access_key="ops-secret")
    store.put("111111111111", "deploy", CredentialRecord.build("111111111111", "deploy", credentials))
    return store


def test_apply_writes_four_settings_in_order() -> None:
    writer = FakeWriter()
    reconciler = ProfileReconciler(_store_with_record(), writer, ProfileSettings())

    profile = reconciler.apply("ops@example.com", LIVE_ACCOUNTS, "myapp-ops", "deploy")

    assert profile.name == "myapp-ops"
    assert writer.writes == [
        ("myapp-ops", "aws_access_key_id", "AKIAOPS"),
        ("myapp-ops", "aws_secret_access_key", "ops-secret"),
        ("myapp-ops", "region", "us-east-1"),
        ("myapp-ops", "output", "json"),
    ]


def test_apply_uses_configured_region_and_output() -> None:
    writer = FakeWriter()
    reconciler = ProfileReconciler(_store_with_record(), writer, ProfileSettings(region="eu-west-1", output="table"))

    reconciler.apply("ops@example.com", LIVE_ACCOUNTS, "myapp-ops", "deploy")

    assert writer.writes[2:] == [("myapp-ops", "region", "eu-west-1"), ("myapp-ops", "output", "table")]


def test_apply_fails_for_unknown_account() -> None:
    writer = FakeWriter()
    reconciler = ProfileReconciler(_store_with_record(), writer, ProfileSettings())

    with pytest.raises(AccountNotFoundError):
        reconciler.apply("missing@example.com", LIVE_ACCOUNTS, "myapp-missing", "deploy")
    assert writer.writes == []


def test_apply_without_credentials_hints_at_provisioning() -> None:
    writer = FakeWriter()
    reconciler = ProfileReconciler(_store_with_record(), writer, ProfileSettings())

    with pytest.raises(MissingCredentialsError) as excinfo:
        reconciler.apply("dev@example.com", LIVE_ACCOUNTS, "myapp-dev", "deploy")

    assert "create-accounts --username deploy" in str(excinfo.value)
    assert writer.writes == []


def test_apply_stops_at_first_failed_write() -> None:
    writer = FakeWriter(fail_on="aws_secret_access_key")
    reconciler = ProfileReconciler(_store_with_record(), writer, ProfileSettings())

    with pytest.raises(ProfileCommandError):
        reconciler.apply("ops@example.com", LIVE_ACCOUNTS, "myapp-ops", "deploy")

    assert writer.writes == [("myapp-ops", "aws_access_key_id", "AKIAOPS")]


def test_cli_writer_runs_configure_set(monkeypatch: pytest.MonkeyPatch) -> None:
    commands: list[list[str]] = []

    def fake_run(args, **kwargs):
        commands.append(args)
        return SimpleNamespace(returncode=0, stdout="", stderr="")

    monkeypatch.setattr("account_factory.profiles.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr("account_factory.profiles.subprocess.run", fake_run)

    AwsCliProfileWriter().set("myapp-ops", "region", "us-east-1")

    assert commands == [["aws", "configure", "set", "region", "us-east-1", "--profile", "myapp-ops"]]


def test_cli_writer_masks_secret_on_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(args, **kwargs):
        return SimpleNamespace(returncode=1, stdout="", stderr="could not write config")

    monkeypatch.setattr("account_factory.profiles.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr("account_factory.profiles.subprocess.run", fake_run)

    with pytest.raises(ProfileCommandError) as excinfo:
        AwsCliProfileWriter().set("myapp-ops", "aws_secret_access_key", "super-secret")

    assert "super-secret" not in str(excinfo.value)
    assert "could not write config" in str(excinfo.value)


def test_cli_writer_treats_stderr_output_as_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("account_factory.profiles.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(
        "account_factory.profiles.subprocess.run",
        lambda args, **kwargs: SimpleNamespace(returncode=0, stdout="", stderr="warning: odd config"),
    )

    with pytest.raises(ProfileCommandError):
        AwsCliProfileWriter().set("myapp-ops", "output", "json")


def test_cli_writer_requires_executable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("account_factory.profiles.shutil.which", lambda name: None)

    def fail_run(*args, **kwargs):  # pragma: no cover - must not be reached
        raise AssertionError("subprocess.run should not be called")

    monkeypatch.setattr("account_factory.profiles.subprocess.run", fail_run)

    with pytest.raises(ProfileCommandError) as excinfo:
        AwsCliProfileWriter().set("myapp-ops", "output", "json")

    assert "install the AWS CLI" in str(excinfo.value)


def test_cli_writer_wraps_os_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def raising_run(*args, **kwargs):
        raise FileNotFoundError("aws")

    monkeypatch.setattr("account_factory.profiles.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr("account_factory.profiles.subprocess.run", raising_run)

    with pytest.raises(ProfileCommandError):
        AwsCliProfileWriter().set("myapp-ops", "output", "json")
