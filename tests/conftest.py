"""Shared fixtures: account files on disk, a fixed clock and a fake Steam."""

import base64
import json

import httpx
import pytest

from guard_core.accounts import Account, AccountRepository
from guard_core.session import Session

SHARED_SECRET = base64.b64encode(b"shared-secret-0123456").decode("ascii")
IDENTITY_SECRET = base64.b64encode(b"identity-secret-98765").decode("ascii")
STEAMID = "76561197960287930"
DEVICE_ID = "android:7b4f2b2c-7d12-4e7a-9c1e-0f1b5b3a7c11"
NOW = 1_700_000_000


def mafile(account_name="alice", **overrides):
    data = {
        "shared_secret": SHARED_SECRET,
        "identity_secret": IDENTITY_SECRET,
        "account_name": account_name,
        "device_id": DEVICE_ID,
        "Session": {"SteamID": int(STEAMID)},
    }
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not None}


def write_json(directory, filename, data):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def accounts_dir(tmp_path):
    return tmp_path / "maFiles"


@pytest.fixture
def bundle_dir(tmp_path):
    return tmp_path / "bundled"


@pytest.fixture
def repo(accounts_dir, bundle_dir):
    return AccountRepository(accounts_dir=str(accounts_dir), bundle_dir=str(bundle_dir))


@pytest.fixture
def account():
    return Account(
        account_name="alice",
        shared_secret=SHARED_SECRET,
        identity_secret=IDENTITY_SECRET,
        device_id=DEVICE_ID,
        steamid=STEAMID,
        source_filename="alice.maFile",
    )


@pytest.fixture
def session():
    return Session({"steamLoginSecure": "76561197960287930%7C%7Ctoken", "sessionid": "abc123"})


class FakeSteam:
    """Scripted /mobileconf endpoint recording every request it gets."""

    def __init__(self):
        self.requests = []
        self.getlist = [{"success": True, "conf": []}]
        self.ajaxop = [{"success": True}]

    @staticmethod
    def _next(queue):
        # the last scripted reply repeats
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        reply = self._next(self.getlist if endpoint == "getlist" else self.ajaxop)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return httpx.Response(200, text=reply)
        return httpx.Response(200, json=reply)

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)

    def params(self, index=-1):
        return dict(self.requests[index].url.params)


@pytest.fixture
def steam():
    return FakeSteam()


def conf_record(cid, nonce, type_=1, headline="Trade with bob", summary=None):
    record = {"id": cid, "nonce": nonce, "type": type_, "headline": headline}
    if summary is not None:
        record["summary"] = summary
    return record
