"""
guard_core package
==================

Steam Guard companion core: login codes, confirmation signing, the
mobile-confirmation client and the .maFile account repository.

──────────────────────────────────────────────
Core algorithms
──────────────────────────────────────────────
- Login code:
  v = Truncate(HMAC-SHA1(key=b64decode(shared_secret), msg=be64(t // 30)))
  code = five base-26 digits of v over "23456789BCDFGHJKMNPQRTVWXY",
  least significant first.

- Confirmation signature:
  k = b64encode(HMAC-SHA1(key=b64decode(identity_secret), msg=be64(t) || tag))

──────────────────────────────────────────────
Quick usage
──────────────────────────────────────────────
>>> from guard_core import AccountRepository, current_code
>>> repo = AccountRepository()
>>> account = repo.load_all()[0]
>>> result = current_code(account.shared_secret)
>>> print(result.code, f"{result.fraction_remaining:.0%} of the window left")

>>> import asyncio
>>> from guard_core import ConfirmationClient, Session
>>> client = ConfirmationClient()
>>> session = Session.from_file("cookies.json")
>>> asyncio.run(client.list(account, session))
"""

from guard_core.accounts import Account, AccountRepository
from guard_core.confirmations import Confirmation, ConfirmationType, parse_confirmations
from guard_core.errors import (
    GuardError,
    InvalidSecret,
    MalformedResponse,
    MissingCredentialField,
    OperationInProgress,
    ServerRejected,
    StorageFailure,
    TransportFailure,
)
from guard_core.session import Session
from guard_core.steam_codes import CodeResult, current_code, generate_code, sign_confirmation
from guard_core.trade_client import ConfirmationClient, ConfirmationState, OperationResult

__all__ = [
    "Account",
    "AccountRepository",
    "CodeResult",
    "Confirmation",
    "ConfirmationClient",
    "ConfirmationState",
    "ConfirmationType",
    "GuardError",
    "InvalidSecret",
    "MalformedResponse",
    "MissingCredentialField",
    "OperationInProgress",
    "OperationResult",
    "ServerRejected",
    "Session",
    "StorageFailure",
    "TransportFailure",
    "current_code",
    "generate_code",
    "parse_confirmations",
    "sign_confirmation",
]
