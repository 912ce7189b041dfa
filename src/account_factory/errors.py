"""Error taxonomy for account factory operations.

Provider errors are classified exactly once, at the boto3 call site, into a
closed set of :class:`ErrorKind` variants. Components catch the typed
exceptions below instead of inspecting provider error codes.
"""
from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from botocore.exceptions import BotoCoreError, ClientError


class ErrorKind(str, Enum):
    ACCESS_DENIED = "access_denied"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    THROTTLED = "throttled"
    REMOTE_FAILURE = "remote_failure"


_CODES_BY_KIND: dict[ErrorKind, frozenset[str]] = {
    ErrorKind.ACCESS_DENIED: frozenset(
        {
            "AccessDenied",
            "AccessDeniedException",
            "AWSOrganizationsNotInUseException",
            "UnauthorizedOperation",
        }
    ),
    ErrorKind.CONCURRENCY_CONFLICT: frozenset({"ConcurrentModificationException"}),
    ErrorKind.ALREADY_EXISTS: frozenset(
        {
            "EntityAlreadyExists",
            "EntityAlreadyExistsException",
            "ResourceExistsException",
            "DuplicateAccountException",
        }
    ),
    ErrorKind.NOT_FOUND: frozenset(
        {
            "NoSuchEntity",
            "NoSuchEntityException",
            "ResourceNotFoundException",
            "AccountNotFoundException",
            "CreateAccountStatusNotFoundException",
        }
    ),
    ErrorKind.THROTTLED: frozenset(
        {
            "Throttling",
            "ThrottlingException",
            "TooManyRequestsException",
            "RequestLimitExceeded",
        }
    ),
}

_STATUS_FALLBACKS = {
    403: ErrorKind.ACCESS_DENIED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.ALREADY_EXISTS,
}


class AccountFactoryError(RuntimeError):
    """Base class for all errors raised by account factory components."""


class ConfigurationError(AccountFactoryError):
    """Raised when settings or the desired-state file cannot be used."""


class OperationCancelled(AccountFactoryError):
    """Raised when the operator declines the confirmation prompt."""


class RemoteError(AccountFactoryError):
    """A classified error returned by the remote provider."""

    kind = ErrorKind.REMOTE_FAILURE

    def __init__(self, operation: str, code: str, message: str) -> None:
        super().__init__(f"{operation} failed ({code}): {message}")
        self.operation = operation
        self.code = code
        self.message = message


class AccessDeniedError(RemoteError):
    kind = ErrorKind.ACCESS_DENIED


class ConcurrencyConflictError(RemoteError):
    kind = ErrorKind.CONCURRENCY_CONFLICT


class AlreadyExistsError(RemoteError):
    kind = ErrorKind.ALREADY_EXISTS


class NotFoundError(RemoteError):
    kind = ErrorKind.NOT_FOUND


class ThrottledError(RemoteError):
    kind = ErrorKind.THROTTLED


class RemoteServiceError(RemoteError):
    kind = ErrorKind.REMOTE_FAILURE


_ERROR_TYPES: dict[ErrorKind, type[RemoteError]] = {
    ErrorKind.ACCESS_DENIED: AccessDeniedError,
    ErrorKind.CONCURRENCY_CONFLICT: ConcurrencyConflictError,
    ErrorKind.ALREADY_EXISTS: AlreadyExistsError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.THROTTLED: ThrottledError,
    ErrorKind.REMOTE_FAILURE: RemoteServiceError,
}


class AccountCreationTimeoutError(AccountFactoryError):
    """Raised when an account creation request does not reach a terminal state in time."""

    def __init__(self, request_id: str, waited_seconds: float) -> None:
        super().__init__(
            f"Account creation request {request_id} did not complete within {waited_seconds:.0f} seconds"
        )
        self.request_id = request_id
        self.waited_seconds = waited_seconds


class AccountCreationFailedError(AccountFactoryError):
    """Raised when account creation fails for a reason the factory does not recognize."""

    def __init__(self, email: str, failure_reason: Optional[str]) -> None:
        super().__init__(f"Account creation for {email} failed: {failure_reason or 'unknown reason'}")
        self.email = email
        self.failure_reason = failure_reason


class AccountNotFoundError(AccountFactoryError):
    """Raised when a declared account email has no matching live account."""


class MissingCredentialsError(AccountFactoryError):
    """Raised when no stored credential record exists for an account."""


class InvalidSecretError(AccountFactoryError):
    """Raised when a stored secret is not a readable credential record."""

    def __init__(self, secret_name: str, detail: str) -> None:
        super().__init__(f"Secret {secret_name} does not hold a valid credential record: {detail}")
        self.secret_name = secret_name
        self.detail = detail


class ProfileCommandError(AccountFactoryError):
    """Raised when a local profile configuration write fails."""

    def __init__(self, command: str, detail: str) -> None:
        super().__init__(f"Error running command '{command}': {detail}")
        self.command = command
        self.detail = detail


class StepFailedError(AccountFactoryError):
    """Raised when a pipeline step fails; the step name is the first argument."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(step, cause)
        self.step = step
        self.cause = cause

    def __str__(self) -> str:
        return f"Step '{self.step}' failed: {self.cause}"


def classify_client_error(exc: ClientError) -> ErrorKind:
    """Map a botocore ``ClientError`` onto an :class:`ErrorKind`."""

    error = exc.response.get("Error", {}) or {}
    code = str(error.get("Code", ""))
    for kind, codes in _CODES_BY_KIND.items():
        if code in codes:
            return kind
    status = (exc.response.get("ResponseMetadata", {}) or {}).get("HTTPStatusCode")
    if not code and status in _STATUS_FALLBACKS:
        return _STATUS_FALLBACKS[status]
    return ErrorKind.REMOTE_FAILURE


def to_remote_error(exc: ClientError, operation: str) -> RemoteError:
    error = exc.response.get("Error", {}) or {}
    kind = classify_client_error(exc)
    return _ERROR_TYPES[kind](
        operation=operation,
        code=str(error.get("Code") or "Unknown"),
        message=str(error.get("Message") or exc),
    )


@contextmanager
def remote_call(operation: str) -> Iterator[None]:
    """Translate provider errors raised inside the block into typed errors."""

    try:
        yield
    except ClientError as exc:
        raise to_remote_error(exc, operation) from exc
    except BotoCoreError as exc:
        raise RemoteServiceError(operation, type(exc).__name__, str(exc)) from exc
