"""Account decoding and the .maFile repository lifecycle."""

import json
import os

import pytest

from guard_core.accounts import Account, AccountRepository, decode_account, scoped_access
from guard_core.errors import StorageFailure
from tests.conftest import DEVICE_ID, IDENTITY_SECRET, SHARED_SECRET, STEAMID, mafile, write_json


class TestDecodeAccount:
    def test_full_file(self):
        account = decode_account(mafile(), "alice.maFile")
        assert account.account_name == "alice"
        assert account.shared_secret == SHARED_SECRET
        assert account.identity_secret == IDENTITY_SECRET
        assert account.device_id == DEVICE_ID
        assert account.steamid == STEAMID
        assert account.source_filename == "alice.maFile"

    def test_minimal_file(self):
        account = decode_account({"shared_secret": SHARED_SECRET, "account_name": "bob"})
        assert account.identity_secret is None
        assert account.device_id is None
        assert account.steamid is None
        assert account.is_bundled

    @pytest.mark.parametrize("missing", ["shared_secret", "account_name"])
    def test_mandatory_fields(self, missing):
        with pytest.raises(ValueError):
            decode_account(mafile(**{missing: None}))

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            decode_account(["shared_secret"])

    def test_steamid_prefers_session(self):
        account = decode_account(mafile(Session={"SteamID": 111}, steamid=222))
        assert account.steamid == "111"

    def test_steamid_top_level_number(self):
        account = decode_account(mafile(Session=None, steamid=222))
        assert account.steamid == "222"

    def test_steamid_top_level_string(self):
        account = decode_account(mafile(Session=None, steamid="333"))
        assert account.steamid == "333"

    def test_steamid_falls_through_bad_session(self):
        account = decode_account(mafile(Session={"SteamID": "not-a-number"}, steamid="444"))
        assert account.steamid == "444"

    def test_steamid_absent(self):
        assert decode_account(mafile(Session={})).steamid is None

    def test_equality_is_by_name(self):
        a = decode_account(mafile(), "one.maFile")
        b = decode_account(mafile(device_id="other"), "two.maFile")
        assert a == b
        assert len({a, b}) == 1

    def test_repr_hides_secrets(self):
        assert SHARED_SECRET not in repr(decode_account(mafile()))


class TestLoadAll:
    def test_missing_directories(self, repo):
        assert repo.load_all() == ()

    def test_scans_every_file_in_accounts_dir(self, repo, accounts_dir):
        write_json(accounts_dir, "alice.maFile", mafile("alice"))
        write_json(accounts_dir, "bob.json", mafile("bob"))
        write_json(accounts_dir, "carol", mafile("carol"))
        assert [a.account_name for a in repo.load_all()] == ["alice", "bob", "carol"]

    def test_skips_undecodable_files(self, repo, accounts_dir):
        write_json(accounts_dir, "a.maFile", mafile("alice"))
        write_json(accounts_dir, "b.maFile", {"account_name": "no-secret"})
        (accounts_dir / "c.maFile").write_text("{not json", encoding="utf-8")
        (accounts_dir / "d.maFile").write_bytes(b"\xff\xfe\x00")
        write_json(accounts_dir, "e.maFile", mafile("erin"))
        assert [a.account_name for a in repo.load_all()] == ["alice", "erin"]

    def test_unreadable_bundle_dir_is_skipped(self, repo, accounts_dir, bundle_dir, monkeypatch):
        write_json(accounts_dir, "a.maFile", mafile("alice"))
        bundle_dir.mkdir()
        real_listdir = os.listdir

        def listdir(path):
            if str(path) == str(bundle_dir):
                raise PermissionError(path)
            return real_listdir(path)

        monkeypatch.setattr(os, "listdir", listdir)
        assert [a.account_name for a in repo.load_all()] == ["alice"]

    def test_bundle_only_reads_mafile_extension(self, repo, bundle_dir):
        write_json(bundle_dir, "demo.maFile", mafile("demo"))
        write_json(bundle_dir, "ignored.json", mafile("ignored"))
        accounts = repo.load_all()
        assert [a.account_name for a in accounts] == ["demo"]
        assert accounts[0].source_filename is None
        assert accounts[0].is_bundled

    def test_later_entry_replaces_same_name_in_place(self, repo, accounts_dir, bundle_dir):
        write_json(accounts_dir, "a.maFile", mafile("alice", device_id="from-user-dir"))
        write_json(accounts_dir, "b.maFile", mafile("bob"))
        write_json(bundle_dir, "alice.maFile", mafile("alice", device_id="from-bundle"))
        accounts = repo.load_all()
        assert [a.account_name for a in accounts] == ["alice", "bob"]
        assert accounts[0].device_id == "from-bundle"
        assert accounts[0].is_bundled

    def test_listeners_get_snapshots(self, repo, accounts_dir):
        seen = []
        unsubscribe = repo.subscribe(seen.append)
        write_json(accounts_dir, "a.maFile", mafile("alice"))
        repo.load_all()
        unsubscribe()
        repo.load_all()
        assert len(seen) == 1
        assert [a.account_name for a in seen[0]] == ["alice"]

    def test_find(self, repo, accounts_dir):
        write_json(accounts_dir, "a.maFile", mafile("alice"))
        repo.load_all()
        assert repo.find("alice").account_name == "alice"
        assert repo.find("nobody") is None


class TestImport:
    def test_round_trip(self, repo, tmp_path, accounts_dir):
        source = write_json(tmp_path / "downloads", "alice.maFile", mafile("alice"))
        account = repo.import_file(str(source))
        assert (accounts_dir / "alice.maFile").exists()
        assert account == Account("alice", SHARED_SECRET)
        assert account.identity_secret == IDENTITY_SECRET
        assert account.device_id == DEVICE_ID
        assert account.steamid == STEAMID
        assert account.source_filename == "alice.maFile"
        assert repo.load_all() == (account,)

    def test_reimport_replaces(self, repo, tmp_path):
        downloads = tmp_path / "downloads"
        repo.import_file(str(write_json(downloads, "alice.maFile", mafile("alice", device_id="old"))))
        account = repo.import_file(str(write_json(downloads, "alice.maFile", mafile("alice", device_id="new"))))
        assert account.device_id == "new"
        assert len(repo.accounts) == 1

    def test_same_name_under_other_filename_does_not_duplicate(self, repo, tmp_path):
        downloads = tmp_path / "downloads"
        repo.import_file(str(write_json(downloads, "a.maFile", mafile("alice", device_id="a"))))
        repo.import_file(str(write_json(downloads, "b.maFile", mafile("alice", device_id="b"))))
        assert len(repo.accounts) == 1
        assert repo.accounts[0].source_filename == "b.maFile"

    def test_missing_source(self, repo, tmp_path):
        with pytest.raises(StorageFailure):
            repo.import_file(str(tmp_path / "nope.maFile"))

    def test_invalid_content(self, repo, tmp_path):
        source = tmp_path / "broken.maFile"
        source.write_text(json.dumps({"account_name": "x"}), encoding="utf-8")
        with pytest.raises(StorageFailure):
            repo.import_file(str(source))

    def test_scoped_access_releases_handle(self, tmp_path):
        path = write_json(tmp_path, "a.maFile", mafile())
        with scoped_access(str(path)) as f:
            assert f.read(1) == b"{"
        assert f.closed


class TestDelete:
    def test_removes_entry_and_file(self, repo, accounts_dir):
        path = write_json(accounts_dir, "alice.maFile", mafile("alice"))
        account = repo.load_all()[0]
        repo.delete(account)
        assert repo.accounts == ()
        assert not path.exists()
        assert repo.load_all() == ()

    def test_already_removed_file(self, repo, accounts_dir):
        path = write_json(accounts_dir, "alice.maFile", mafile("alice"))
        account = repo.load_all()[0]
        path.unlink()
        repo.delete(account)
        assert repo.accounts == ()

    def test_bundled_account_comes_back_after_reload(self, repo, bundle_dir):
        path = write_json(bundle_dir, "demo.maFile", mafile("demo"))
        account = repo.load_all()[0]
        repo.delete(account)
        assert repo.accounts == ()
        assert path.exists()
        assert [a.account_name for a in repo.load_all()] == ["demo"]

    def test_notifies_listeners(self, repo, accounts_dir):
        write_json(accounts_dir, "alice.maFile", mafile("alice"))
        account = repo.load_all()[0]
        seen = []
        repo.subscribe(seen.append)
        repo.delete(account)
        assert seen == [()]


def test_default_directories_come_from_settings(monkeypatch, tmp_path):
    from guard_core import settings

    monkeypatch.setattr(settings, "ACCOUNTS_DIR", str(tmp_path / "a"))
    monkeypatch.setattr(settings, "BUNDLE_DIR", str(tmp_path / "b"))
    repo = AccountRepository()
    assert repo.accounts_dir == str(tmp_path / "a")
    assert repo.bundle_dir == str(tmp_path / "b")
