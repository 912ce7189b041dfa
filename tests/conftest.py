from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError

from account_factory.config import FactorySettings
from account_factory.errors import ProfileCommandError


def client_error(code: str, operation: str, message: str = "", status: int = 400) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": message or code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeOrganizations:
    """In-memory stand-in for the boto3 organizations client."""

    def __init__(
        self,
        pages: Optional[List[List[Dict[str, Any]]]] = None,
        statuses: Optional[List[Dict[str, Any]]] = None,
        create_errors: Optional[List[Exception]] = None,
        list_error: Optional[Exception] = None,
        request_id: str = "car-1",
    ) -> None:
        self.pages = pages if pages is not None else [[]]
        self.statuses = list(statuses or [])
        self.create_errors = list(create_errors or [])
        self.list_error = list_error
        self.request_id = request_id
        self.calls: List[tuple[str, Dict[str, Any]]] = []

    def list_accounts(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("list_accounts", kwargs))
        if self.list_error is not None:
            raise self.list_error
        index = int(kwargs.get("NextToken", "0"))
        response: Dict[str, Any] = {"Accounts": self.pages[index]}
        if index + 1 < len(self.pages):
            response["NextToken"] = str(index + 1)
        return response

    def create_account(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("create_account", kwargs))
        if self.create_errors:
            raise self.create_errors.pop(0)
        return {"CreateAccountStatus": {"Id": self.request_id, "State": "IN_PROGRESS"}}

    def describe_create_account_status(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("describe_create_account_status", kwargs))
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return {"CreateAccountStatus": {"Id": kwargs["CreateAccountRequestId"], **status}}

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class FakeIam:
    def __init__(
        self,
        *,
        user_exists: bool = False,
        login_profile_exists: bool = False,
        get_user_error: Optional[Exception] = None,
    ) -> None:
        self.user_exists = user_exists
        self.login_profile_exists = login_profile_exists
        self.get_user_error = get_user_error
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.access_keys = 0

    def get_user(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("get_user", kwargs))
        if self.get_user_error is not None:
            raise self.get_user_error
        if not self.user_exists:
            raise client_error("NoSuchEntity", "GetUser", status=404)
        return {"User": {"UserName": kwargs["UserName"]}}

    def create_user(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("create_user", kwargs))
        if self.user_exists:
            raise client_error("EntityAlreadyExists", "CreateUser", status=409)
        self.user_exists = True
        return {"User": {"UserName": kwargs["UserName"]}}

    def create_login_profile(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("create_login_profile", kwargs))
        if self.login_profile_exists:
            raise client_error("EntityAlreadyExists", "CreateLoginProfile", status=409)
        self.login_profile_exists = True
        return {"LoginProfile": {"UserName": kwargs["UserName"]}}

    def attach_user_policy(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("attach_user_policy", kwargs))
        return {}

    def create_access_key(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("create_access_key", kwargs))
        self.access_keys += 1
        return {
            "AccessKey": {
                "UserName": kwargs["UserName"],
                "AccessKeyId": f"AKIA{self.access_keys:016d}",
                "SecretAccessKey": f"secret-{self.access_keys}",
            }
        }

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]


class FakeSession:
    def __init__(self, iam: FakeIam) -> None:
        self.iam = iam

    def client(self, service: str, **kwargs: Any) -> Any:
        assert service == "iam"
        return self.iam


class FakeSts:
    def __init__(
        self,
        account: Optional[str] = "999999999999",
        arn: str = "arn:aws:iam::999999999999:user/operator",
        assume_error: Optional[Exception] = None,
    ) -> None:
        self.account = account
        self.arn = arn
        self.assume_error = assume_error
        self.assumed: List[Dict[str, Any]] = []

    def get_caller_identity(self) -> Dict[str, Any]:
        return {"Account": self.account, "Arn": self.arn, "UserId": "AIDAEXAMPLE"}

    def assume_role(self, **kwargs: Any) -> Dict[str, Any]:
        self.assumed.append(kwargs)
        if self.assume_error is not None:
            raise self.assume_error
        return {
            "Credentials": {
                "AccessKeyId": "ASIATEMP",
                "SecretAccessKey": "temp-secret",
                "SessionToken": "token",
            }
        }


class FakeSecretsManager:
    def __init__(self, get_error: Optional[Exception] = None) -> None:
        self.secrets: Dict[str, str] = {}
        self.get_error = get_error
        self.calls: List[tuple[str, Dict[str, Any]]] = []

    def create_secret(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("create_secret", kwargs))
        if kwargs["Name"] in self.secrets:
            raise client_error("ResourceExistsException", "CreateSecret")
        self.secrets[kwargs["Name"]] = kwargs["SecretString"]
        return {"Name": kwargs["Name"]}

    def put_secret_value(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("put_secret_value", kwargs))
        self.secrets[kwargs["SecretId"]] = kwargs["SecretString"]
        return {"Name": kwargs["SecretId"]}

    def get_secret_value(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("get_secret_value", kwargs))
        if self.get_error is not None:
            raise self.get_error
        if kwargs["SecretId"] not in self.secrets:
            raise client_error("ResourceNotFoundException", "GetSecretValue")
        return {"Name": kwargs["SecretId"], "SecretString": self.secrets[kwargs["SecretId"]]}


class FakeWriter:
    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.fail_on = fail_on
        self.writes: List[tuple[str, str, str]] = []

    def set(self, profile_name: str, key: str, value: str) -> None:
        if key == self.fail_on:
            raise ProfileCommandError(f"aws configure set {key}", "boom")
        self.writes.append((profile_name, key, value))


@pytest.fixture
def settings() -> FactorySettings:
    return FactorySettings.from_dict(
        {
            "cooldown_seconds": 0,
            "account_ready_delay_seconds": 0,
            "polling": {"interval_seconds": 0, "max_wait_seconds": 60},
            "creation_retry": {"max_retries": 5, "base_delay_seconds": 1.0, "max_delay_seconds": None},
        }
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []
