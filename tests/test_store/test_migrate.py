"""Tests for the manifest migration engine."""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Optional

import pytest

from sgcli.exceptions import (
    AccountLoadError,
    BackupError,
    ManifestDeserializeError,
    MissingPasskeyError,
    StoreError,
    StoreIOError,
    UnexpectedPasskeyError,
    UnknownManifestVersionError,
    UpgradeChainError,
)
from sgcli.models import (
    CURRENT_MANIFEST_VERSION,
    EncryptionParams,
    Manifest,
    ManifestEntry,
    SteamGuardAccount,
)
from sgcli.store.legacy import SdaAccount, SdaManifest
from sgcli.store.loader import load_entry_file
from sgcli.store.migrate import (
    CurrentManifestVersion,
    SdaAccountVersion,
    SdaManifestVersion,
    account_into_current,
    backup_store,
    do_migrate,
    load_and_migrate,
    load_and_upgrade_sda_account,
    manifest_into_current,
    parse_manifest,
)


class _RecordingLoader:
    """Entry loader that records every call before delegating to the real one."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Optional[str], Optional[EncryptionParams]]] = []

    def __call__(
        self, path: Path, passkey: Optional[str], params: Optional[EncryptionParams]
    ) -> str:
        self.calls.append((path.name, passkey, params))
        return load_entry_file(path, passkey, params)


# ---------------------------------------------------------------------------
# Manifest parsing
# ---------------------------------------------------------------------------


class TestParseManifest:
    def test_missing_version_is_sda(self) -> None:
        result = parse_manifest(json.dumps({"encrypted": False, "entries": []}))
        assert isinstance(result, SdaManifestVersion)

    def test_null_version_is_sda(self) -> None:
        result = parse_manifest(json.dumps({"version": None, "entries": []}))
        assert isinstance(result, SdaManifestVersion)

    def test_version_1_is_current(self) -> None:
        result = parse_manifest(json.dumps({"version": 1, "entries": []}))
        assert isinstance(result, CurrentManifestVersion)
        assert result.is_latest()

    def test_unknown_version(self) -> None:
        with pytest.raises(UnknownManifestVersionError) as exc_info:
            parse_manifest(json.dumps({"version": 2, "entries": []}))
        assert exc_info.value.version == 2
        assert "2" in str(exc_info.value)

    def test_string_version_is_unknown(self) -> None:
        with pytest.raises(UnknownManifestVersionError):
            parse_manifest(json.dumps({"version": "1", "entries": []}))

    def test_bool_version_is_unknown(self) -> None:
        with pytest.raises(UnknownManifestVersionError):
            parse_manifest(json.dumps({"version": True, "entries": []}))

    def test_invalid_json(self) -> None:
        with pytest.raises(ManifestDeserializeError):
            parse_manifest("{not json")

    def test_non_object(self) -> None:
        with pytest.raises(ManifestDeserializeError):
            parse_manifest("[]")

    def test_invalid_entries(self) -> None:
        with pytest.raises(ManifestDeserializeError):
            parse_manifest(json.dumps({"version": 1, "entries": [{"steam_id": 1}]}))

    def test_unknown_version_is_a_deserialize_error(self) -> None:
        with pytest.raises(ManifestDeserializeError):
            parse_manifest(json.dumps({"version": 99}))


class TestIsEncrypted:
    def test_sda_entry_with_iv_and_salt(self) -> None:
        manifest = parse_manifest(
            json.dumps(
                {
                    "entries": [
                        {"filename": "1.maFile", "steamid": 1, "encryption_iv": "aXY=",
                         "encryption_salt": "c2FsdA=="}
                    ]
                }
            )
        )
        assert manifest.is_encrypted()

    def test_sda_entry_with_only_iv(self) -> None:
        manifest = parse_manifest(
            json.dumps(
                {"entries": [{"filename": "1.maFile", "steamid": 1, "encryption_iv": "aXY="}]}
            )
        )
        assert not manifest.is_encrypted()

    def test_empty_manifest(self) -> None:
        assert not parse_manifest(json.dumps({"version": 1})).is_encrypted()


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


class TestDoMigrate:
    def test_plain_single_account(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account()])

        manifest, accounts = do_migrate(manifest_path, None)

        assert manifest.version == CURRENT_MANIFEST_VERSION
        assert manifest.entries[0].account_name == "example"
        assert manifest.entries[0].steam_id == 1234
        assert manifest.entries[0].encryption is None
        assert accounts[0].account_name == "example"
        assert accounts[0].steam_id == 1234

    def test_encrypted_single_account(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account()], passkey="password")

        manifest, accounts = do_migrate(manifest_path, "password")

        assert manifest.version == CURRENT_MANIFEST_VERSION
        assert manifest.entries[0].account_name == "example"
        assert manifest.entries[0].steam_id == 1234
        assert manifest.entries[0].encryption is not None
        assert accounts[0].account_name == "example"
        assert accounts[0].steam_id == 1234
        assert accounts[0].revocation_code == "R12345"

    def test_preserves_order(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store(
            [
                make_sda_account("zed", 3),
                make_sda_account("alice", 1),
                make_sda_account("bob", 2),
            ]
        )

        manifest, accounts = do_migrate(manifest_path, None)

        assert len(manifest.entries) == len(accounts) == 3
        assert [e.filename for e in manifest.entries] == ["3.maFile", "1.maFile", "2.maFile"]
        assert [a.account_name for a in accounts] == ["zed", "alice", "bob"]
        assert [e.steam_id for e in manifest.entries] == [a.steam_id for a in accounts]

    def test_entry_name_is_lowercased(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account("Example")])

        manifest, accounts = do_migrate(manifest_path, None)

        assert manifest.entries[0].account_name == "example"
        assert accounts[0].account_name == "Example"

    def test_session_without_webcookie(self, write_sda_store, make_sda_account) -> None:
        account = make_sda_account()
        del account["Session"]["WebCookie"]
        manifest_path = write_sda_store([account])

        _, accounts = do_migrate(manifest_path, None)

        assert accounts[0].session is not None
        assert accounts[0].session.web_cookie is None
        assert accounts[0].session.steam_login == "1234%7C%7CABCD"

    def test_account_without_session(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account()])
        path = manifest_path.parent / "1234.maFile"
        body = json.loads(path.read_text())
        body["Session"] = None
        path.write_text(json.dumps(body))

        manifest, accounts = do_migrate(manifest_path, None)

        assert accounts[0].steam_id == 0
        assert accounts[0].session is None
        assert manifest.entries[0].steam_id == 1234

    def test_empty_store(self, tmp_path: Path) -> None:
        manifest_path = tmp_path / "manifest.json"
        manifest_path.write_text(json.dumps({"encrypted": False, "entries": []}))

        manifest, accounts = do_migrate(manifest_path, None)

        assert manifest.version == CURRENT_MANIFEST_VERSION
        assert manifest.entries == []
        assert accounts == []

    def test_current_manifest_is_a_noop(self, tmp_path: Path) -> None:
        account = SteamGuardAccount(account_name="example", steam_id=1234, shared_secret="s")
        manifest = Manifest(
            entries=[ManifestEntry(filename="1234.maFile", account_name="example", steam_id=1234)]
        )
        (tmp_path / "1234.maFile").write_text(account.to_json())
        manifest_path = tmp_path / "manifest.json"
        manifest_path.write_text(manifest.model_dump_json())

        migrated_manifest, migrated_accounts = do_migrate(manifest_path, None)

        assert migrated_manifest == manifest
        assert migrated_accounts == [account]

    def test_decrypts_once_with_original_params(
        self, write_sda_store, make_sda_account
    ) -> None:
        manifest_path = write_sda_store([make_sda_account()], passkey="password")
        raw_entry = json.loads(manifest_path.read_text())["entries"][0]
        loader = _RecordingLoader()

        do_migrate(manifest_path, "password", loader)

        assert len(loader.calls) == 1
        filename, passkey, params = loader.calls[0]
        assert filename == "1234.maFile"
        assert passkey == "password"
        assert params is not None
        assert params.iv == raw_entry["encryption_iv"]
        assert params.salt == raw_entry["encryption_salt"]

    def test_missing_passkey(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account()], passkey="password")
        loader = _RecordingLoader()

        with pytest.raises(MissingPasskeyError):
            do_migrate(manifest_path, None, loader)
        assert loader.calls == []

    def test_unexpected_passkey(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account()])

        with pytest.raises(UnexpectedPasskeyError):
            do_migrate(manifest_path, "password")

    def test_wrong_passkey(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account()], passkey="password")

        with pytest.raises(AccountLoadError) as exc_info:
            do_migrate(manifest_path, "not the password")
        assert exc_info.value.filenames == ["1234.maFile"]

    def test_one_failing_entry_fails_the_load(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account("a", 1), make_sda_account("b", 2)])
        (manifest_path.parent / "2.maFile").unlink()

        with pytest.raises(AccountLoadError) as exc_info:
            do_migrate(manifest_path, None)
        assert exc_info.value.filenames == ["2.maFile"]
        assert "2.maFile" in str(exc_info.value)

    def test_every_failing_entry_is_reported(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store(
            [make_sda_account("a", 1), make_sda_account("b", 2), make_sda_account("c", 3)]
        )
        (manifest_path.parent / "1.maFile").unlink()
        (manifest_path.parent / "3.maFile").write_text("{not json")

        with pytest.raises(AccountLoadError) as exc_info:
            do_migrate(manifest_path, None)
        assert exc_info.value.filenames == ["1.maFile", "3.maFile"]
        assert isinstance(exc_info.value.failures[0][1], StoreIOError)

    def test_custom_loader_os_error_is_collected(
        self, write_sda_store, make_sda_account
    ) -> None:
        manifest_path = write_sda_store([make_sda_account("a", 1), make_sda_account("b", 2)])

        def loader(
            path: Path, passkey: Optional[str], params: Optional[EncryptionParams]
        ) -> str:
            raise OSError(f"cannot reach {path.name}")

        with pytest.raises(AccountLoadError) as exc_info:
            do_migrate(manifest_path, None, loader)
        assert exc_info.value.filenames == ["1.maFile", "2.maFile"]
        assert isinstance(exc_info.value.failures[1][1], OSError)

    def test_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(StoreIOError):
            do_migrate(tmp_path / "manifest.json", None)

    def test_does_not_write(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account()])
        before = {p.name: p.read_bytes() for p in manifest_path.parent.iterdir()}

        do_migrate(manifest_path, None)

        after = {p.name: p.read_bytes() for p in manifest_path.parent.iterdir()}
        assert after == before


# ---------------------------------------------------------------------------
# Backups
# ---------------------------------------------------------------------------


class TestBackups:
    def test_backs_up_manifest_and_mafiles(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account("a", 1), make_sda_account("b", 2)])
        folder = manifest_path.parent
        (folder / "notes.txt").write_text("ignored")

        backups = backup_store(manifest_path)

        assert sorted(p.name for p in backups) == [
            "1.maFile.bak",
            "2.maFile.bak",
            "manifest.json.bak",
        ]
        for backup in backups:
            original = backup.with_name(backup.name[: -len(".bak")])
            assert backup.read_bytes() == original.read_bytes()
        assert not (folder / "notes.txt.bak").exists()

    def test_load_and_migrate_backs_up_first(self, write_sda_store, make_sda_account) -> None:
        manifest_path = write_sda_store([make_sda_account()])
        original = manifest_path.read_bytes()

        manifest, accounts = load_and_migrate(manifest_path, None)

        assert (manifest_path.parent / "manifest.json.bak").read_bytes() == original
        assert (manifest_path.parent / "1234.maFile.bak").exists()
        assert manifest.entries[0].account_name == "example"
        assert len(accounts) == 1

    def test_backup_failure_stops_migration(
        self, write_sda_store, make_sda_account, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        manifest_path = write_sda_store([make_sda_account()])
        loader = _RecordingLoader()

        def _fail(src, dst):
            raise PermissionError("read-only")

        monkeypatch.setattr(shutil, "copyfile", _fail)

        with pytest.raises(BackupError):
            load_and_migrate(manifest_path, None, loader)
        assert loader.calls == []

    def test_backups_survive_failed_migration(
        self, write_sda_store, make_sda_account
    ) -> None:
        manifest_path = write_sda_store([make_sda_account()], passkey="password")

        with pytest.raises(MissingPasskeyError):
            load_and_migrate(manifest_path, None)
        assert (manifest_path.parent / "manifest.json.bak").exists()
        assert (manifest_path.parent / "1234.maFile.bak").exists()


# ---------------------------------------------------------------------------
# Upgrade chain
# ---------------------------------------------------------------------------


class TestUpgradeChain:
    def test_account_into_current_rejects_legacy(self) -> None:
        with pytest.raises(UpgradeChainError):
            account_into_current(SdaAccountVersion(SdaAccount()))

    def test_manifest_into_current_rejects_legacy(self) -> None:
        with pytest.raises(UpgradeChainError):
            manifest_into_current(SdaManifestVersion(SdaManifest()))

    def test_upgrade_chain_error_is_not_a_store_error(self) -> None:
        assert not issubclass(UpgradeChainError, StoreError)

    def test_sda_account_upgrades_to_current(self, make_sda_account) -> None:
        wrapped = SdaAccountVersion(SdaAccount.model_validate(make_sda_account()))

        upgraded = wrapped.upgrade()

        assert upgraded.is_latest()
        assert account_into_current(upgraded).steam_id == 1234
        assert upgraded.upgrade() is upgraded


class TestLoadAndUpgradeSdaAccount:
    def test_upgrades(self, tmp_path: Path, make_sda_account) -> None:
        path = tmp_path / "1234.maFile"
        path.write_text(json.dumps(make_sda_account("Example")))

        account = load_and_upgrade_sda_account(path)

        assert isinstance(account, SteamGuardAccount)
        assert account.account_name == "Example"
        assert account.steam_id == 1234
        assert account.fully_enrolled is True

    def test_invalid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.maFile"
        path.write_text("nope")

        with pytest.raises(StoreError):
            load_and_upgrade_sda_account(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(StoreIOError):
            load_and_upgrade_sda_account(tmp_path / "missing.maFile")
