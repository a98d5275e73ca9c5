"""
accounts.py - Steam account model and the .maFile repository.

Account files are plain JSON objects (no encryption at rest):

    { "shared_secret": "<base64>", "identity_secret": "<base64>"?,
      "account_name": "<string>", "device_id": "<string>"?,
      "Session": {"SteamID": <uint64>}?, "steamid": <uint64|string>? }

The repository scans the per-user accounts directory first (every file), then
the read-only bundle directory (*.maFile only). Accounts are keyed by
account_name; a later file with the same name replaces the earlier entry.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Tuple
import json
import logging
import os
import shutil

from guard_core import settings
from guard_core.errors import StorageFailure

logger = logging.getLogger(__name__)

AccountsListener = Callable[[Tuple["Account", ...]], None]


@dataclass(frozen=True)
class Account:
    account_name: str
    shared_secret: str = field(repr=False)
    identity_secret: str | None = field(default=None, repr=False)
    device_id: str | None = None
    steamid: str | None = None
    source_filename: str | None = None

    # Identity is the account name: two files for the same login are one account.
    def __eq__(self, other):
        if not isinstance(other, Account):
            return NotImplemented
        return self.account_name == other.account_name

    def __hash__(self):
        return hash(self.account_name)

    @property
    def is_bundled(self) -> bool:
        return self.source_filename is None


def _steamid_from(data: dict) -> str | None:
    """Session.SteamID (int) -> top-level int steamid -> top-level str steamid."""
    session = data.get("Session")
    if isinstance(session, dict):
        sid = session.get("SteamID")
        if isinstance(sid, int) and not isinstance(sid, bool) and sid >= 0:
            return str(sid)
    sid = data.get("steamid")
    if isinstance(sid, int) and not isinstance(sid, bool) and sid >= 0:
        return str(sid)
    if isinstance(sid, str):
        return sid
    return None


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def decode_account(data, source_filename: str | None = None) -> Account:
    """
    Build an Account from a decoded .maFile object.

    Raises:
        ValueError: if the object lacks shared_secret / account_name or a
                    field has the wrong type
    """
    if not isinstance(data, dict):
        raise ValueError("account file must contain a JSON object")
    for key in ("shared_secret", "account_name"):
        if not isinstance(data.get(key), str):
            raise ValueError(f"missing '{key}'")
    return Account(
        account_name=data["account_name"],
        shared_secret=data["shared_secret"],
        identity_secret=_optional_str(data, "identity_secret"),
        device_id=_optional_str(data, "device_id"),
        steamid=_steamid_from(data),
        source_filename=source_filename,
    )


def read_account_file(path: str, bundled: bool = False) -> Account:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return decode_account(data, None if bundled else os.path.basename(path))


@contextmanager
def scoped_access(path: str) -> Iterator:
    """
    Hold read access to an externally chosen file for the duration of a copy.

    The handle is released on exit whatever happens inside the block.
    """
    logger.debug("Acquiring access to %s", path)
    f = open(path, "rb")
    try:
        yield f
    finally:
        f.close()
        logger.debug("Released access to %s", path)


class AccountRepository:
    """Owns the in-memory account list and its backing files."""

    def __init__(self, accounts_dir: str | None = None, bundle_dir: str | None = None):
        self.accounts_dir = accounts_dir or settings.ACCOUNTS_DIR
        self.bundle_dir = bundle_dir or settings.BUNDLE_DIR
        self._accounts: list[Account] = []
        self._listeners: list[AccountsListener] = []

    # --- State ---------------------------------------------------------------
    @property
    def accounts(self) -> Tuple[Account, ...]:
        return tuple(self._accounts)

    def find(self, account_name: str) -> Account | None:
        for account in self._accounts:
            if account.account_name == account_name:
                return account
        return None

    def subscribe(self, listener: AccountsListener) -> Callable[[], None]:
        """Register a listener for account-list changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.accounts
        for listener in list(self._listeners):
            listener(snapshot)

    # --- Scanning ------------------------------------------------------------
    def _candidates(self) -> Iterator[Tuple[str, bool]]:
        if os.path.isdir(self.accounts_dir):
            try:
                names = sorted(os.listdir(self.accounts_dir))
            except OSError as e:
                logger.warning("Cannot list %s: %s", self.accounts_dir, e)
                names = []
            for name in names:
                path = os.path.join(self.accounts_dir, name)
                if os.path.isfile(path):
                    yield path, False
        if os.path.isdir(self.bundle_dir):
            try:
                names = sorted(os.listdir(self.bundle_dir))
            except OSError as e:
                logger.warning("Cannot list %s: %s", self.bundle_dir, e)
                names = []
            for name in names:
                if name.endswith(settings.BUNDLE_EXTENSION):
                    yield os.path.join(self.bundle_dir, name), True

    def load_all(self) -> Tuple[Account, ...]:
        """
        Rescan both directories and rebuild the account list.

        Undecodable files are skipped. On a name collision the later file
        replaces the earlier entry in place, so bundled accounts override
        same-named user files loaded before them.
        """
        loaded: list[Account] = []
        index: dict[str, int] = {}
        for path, bundled in self._candidates():
            try:
                account = read_account_file(path, bundled=bundled)
            except (OSError, ValueError, UnicodeDecodeError) as e:
                logger.debug("Skipping %s: %s", path, e)
                continue
            if account.account_name in index:
                loaded[index[account.account_name]] = account
            else:
                index[account.account_name] = len(loaded)
                loaded.append(account)

        self._accounts = loaded
        logger.info("Loaded %d account(s)", len(loaded))
        self._publish()
        return self.accounts

    # --- Import / delete -----------------------------------------------------
    def import_file(self, path: str) -> Account:
        """
        Copy an external .maFile into the accounts directory and reload.

        An existing file with the same name is overwritten.

        Raises:
            StorageFailure: if the copy fails or the copied file is not a
                            valid account file
        """
        filename = os.path.basename(path)
        destination = os.path.join(self.accounts_dir, filename)
        try:
            os.makedirs(self.accounts_dir, exist_ok=True)
            if os.path.abspath(path) != os.path.abspath(destination):
                with scoped_access(path) as src, open(destination, "wb") as dst:
                    shutil.copyfileobj(src, dst)
            elif not os.path.isfile(path):
                raise FileNotFoundError(path)
        except OSError as e:
            raise StorageFailure(f"Cannot import {path}: {e}") from e

        self.load_all()
        for account in self._accounts:
            if account.source_filename == filename:
                logger.info("Imported account '%s' from %s", account.account_name, filename)
                return account
        # invalid file, or its account_name is served by a later file
        raise StorageFailure(f"{filename} did not load as an account")

    def delete(self, account: Account) -> None:
        """
        Forget an account and remove its backing file.

        Bundled accounts have no backing file: they disappear from this
        session's list only and come back on the next load_all().

        Raises:
            StorageFailure: if the backing file exists but cannot be removed
        """
        self._accounts = [a for a in self._accounts if a != account]
        self._publish()

        if account.source_filename is None:
            logger.info("Removed bundled account '%s' from the session list", account.account_name)
            return
        path = os.path.join(self.accounts_dir, account.source_filename)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.debug("Backing file %s already gone", path)
        except OSError as e:
            raise StorageFailure(f"Cannot delete {path}: {e}") from e
        logger.info("Deleted account '%s'", account.account_name)
