"""Error taxonomy shared by the guard core, the CLI and the HTTP API."""


class GuardError(Exception):
    """Base class for every recoverable failure raised by guard_core."""


class InvalidSecret(GuardError):
    """shared_secret / identity_secret is not valid base64."""


class MissingCredentialField(GuardError):
    """The account lacks a field the requested operation needs."""

    def __init__(self, field: str, account_name: str = ""):
        self.field = field
        self.account_name = account_name
        super().__init__(f"Missing {field}" + (f" for '{account_name}'" if account_name else ""))


class TransportFailure(GuardError):
    """Connection / network error while talking to Steam."""


class ServerRejected(GuardError):
    """Well-formed response with success=false."""


class MalformedResponse(GuardError):
    """Response body is not the JSON object we expect."""


class StorageFailure(GuardError):
    """Account file could not be copied, read or deleted."""


class OperationInProgress(GuardError):
    """A list/act request is already in flight for this client."""
