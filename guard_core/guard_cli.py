#!/usr/bin/env python3
"""
guard_cli.py — command-line front end for guard_core.

Subcommands:
- accounts      : list known accounts (user .maFiles + bundled)
- code          : print the current Steam Guard code (--watch refreshes every second)
- import        : copy a .maFile into the accounts directory
- delete        : remove an account and its file
- confirmations : list pending mobile confirmations
- accept/decline: act on one confirmation by id

Confirmation commands need a cookie file captured from a logged-in
steamcommunity.com browser session (JSON object name -> value, or a
browser export list of {name, value}).
"""

import argparse
import asyncio
import sys
import time

from guard_core import settings
from guard_core.accounts import AccountRepository
from guard_core.errors import GuardError
from guard_core.session import Session
from guard_core.steam_codes import TIME_STEP, current_code
from guard_core.trade_client import ConfirmationClient


def _repository(args) -> AccountRepository:
    repo = AccountRepository(accounts_dir=args.accounts_dir)
    repo.load_all()
    return repo


def _account(repo: AccountRepository, name: str):
    account = repo.find(name)
    if account is None:
        raise GuardError(f"Account '{name}' not found")
    return account


def _session(path: str) -> Session:
    try:
        session = Session.from_file(path)
    except (OSError, ValueError) as e:
        raise GuardError(f"Cannot read cookie file {path}: {e}") from e
    if not session.is_authenticated:
        print(f"[!] {settings.SESSION_MARKER_COOKIE} cookie missing, Steam will likely reject the request")
    return session


# --- CLI command handlers ---
def cmd_accounts(args):
    repo = _repository(args)
    if not repo.accounts:
        print("[*] No accounts. Use 'import' to add a .maFile.")
        return 0
    for account in repo.accounts:
        origin = "bundled" if account.is_bundled else account.source_filename
        can_confirm = all((account.identity_secret, account.device_id, account.steamid))
        print(f"{account.account_name:24} {origin:32} confirmations={'yes' if can_confirm else 'no'}")
    return 0


def cmd_code(args):
    account = _account(_repository(args), args.account)
    if not args.watch:
        print(current_code(account.shared_secret).code)
        return 0

    print(f"[account={account.account_name}] Press Ctrl+C to quit.\n")
    last_code = None
    try:
        while True:
            result = current_code(account.shared_secret)
            seconds = round(result.fraction_remaining * TIME_STEP)
            if result.code != last_code:
                print(f"Steam Guard: {result.code}  (valid ~{seconds:2d}s)")
                last_code = result.code
            else:
                print(f".. {seconds:2d}s left", end="\r", flush=True)
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nBye.")
    return 0


def cmd_import(args):
    repo = AccountRepository(accounts_dir=args.accounts_dir)
    account = repo.import_file(args.file)
    print(f"[+] Imported '{account.account_name}' ({account.source_filename})")
    return 0


def cmd_delete(args):
    repo = _repository(args)
    account = _account(repo, args.account)
    repo.delete(account)
    if account.is_bundled:
        print(f"[*] '{account.account_name}' is bundled; it will be back on next start")
    else:
        print(f"[+] Deleted '{account.account_name}'")
    return 0


async def _list(client, account, session):
    result = await client.list(account, session)
    for conf in client.confirmations:
        print(f"[{conf.id}] {conf.type.label}")
        for line in conf.description.splitlines():
            print(f"    {line}")
    return result


def cmd_confirmations(args):
    account = _account(_repository(args), args.account)
    client = ConfirmationClient()
    result = asyncio.run(_list(client, account, _session(args.cookies)))
    print(("[+] " if result.ok else "[-] ") + result.message)
    return 0 if result.ok else 1


async def _act(client, account, session, cid, operation):
    listed = await client.list(account, session)
    if not listed.ok:
        return listed
    target = next((c for c in client.confirmations if c.id == cid), None)
    if target is None:
        raise GuardError(f"Confirmation {cid} not found")
    result = await client.act(target, account, session, operation)
    await client.wait_for_refresh()
    return result


def cmd_act(args):
    account = _account(_repository(args), args.account)
    client = ConfirmationClient()
    result = asyncio.run(_act(client, account, _session(args.cookies), args.id, args.operation))
    print(("[+] " if result.ok else "[-] ") + result.message)
    print(f"[*] {len(client.confirmations)} confirmation(s) still pending")
    return 0 if result.ok else 1


def cmd_help(args):
    print("'steam-guard -h' for help.")
    return 0


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Steam Guard codes and mobile confirmations")
    p.add_argument("--accounts-dir", default=None, help="Override the .maFile directory")
    p.add_argument("--log-level", default=None, help="Logging level (default from STEAM_GUARD_LOG_LEVEL)")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_help)

    pa = sub.add_parser("accounts", help="List known accounts")
    pa.set_defaults(func=cmd_accounts)

    pc = sub.add_parser("code", help="Show the current Steam Guard code")
    pc.add_argument("--account", required=True, help="account_name")
    pc.add_argument("--watch", action="store_true", help="Refresh every second")
    pc.set_defaults(func=cmd_code)

    pi = sub.add_parser("import", help="Import a .maFile")
    pi.add_argument("file", help="Path to the .maFile")
    pi.set_defaults(func=cmd_import)

    pd = sub.add_parser("delete", help="Delete an account and its file")
    pd.add_argument("--account", required=True, help="account_name")
    pd.set_defaults(func=cmd_delete)

    pl = sub.add_parser("confirmations", help="List pending confirmations")
    pl.add_argument("--account", required=True, help="account_name")
    pl.add_argument("--cookies", required=True, help="JSON cookie file of a logged-in session")
    pl.set_defaults(func=cmd_confirmations)

    for name, operation in (("accept", "allow"), ("decline", "cancel")):
        px = sub.add_parser(name, help=f"{name.capitalize()} one confirmation")
        px.add_argument("--account", required=True, help="account_name")
        px.add_argument("--cookies", required=True, help="JSON cookie file of a logged-in session")
        px.add_argument("--id", required=True, help="Confirmation id")
        px.set_defaults(func=cmd_act, operation=operation)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings.configure_logging(args.log_level)
    try:
        return args.func(args)
    except GuardError as e:
        print(f"[!] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
