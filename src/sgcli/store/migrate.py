"""Upgrade an on-disk manifest and its account files to the current schema.

A manifest on disk may be any schema version this package has ever
written, or Steam Desktop Authenticator's unversioned format. Migration:

1. backs up the manifest and every ``*.maFile`` beside it,
2. parses the manifest into a version-tagged wrapper,
3. decrypts every account file exactly once, using the encryption
   parameters as they were before any upgrade,
4. upgrades the manifest and every account one version step at a time, in
   lockstep so that ``entries[i]`` always describes ``accounts[i]``,
5. unwraps the current shapes and copies each account's name onto its
   manifest entry.

The version-tagged wrappers (:class:`MigratingManifest`,
:class:`MigratingAccount`) exist only inside this module. Writing the
result back is the caller's job, see :class:`~sgcli.store.manager.AccountManager`.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

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
    SteamGuardAccount,
)
from sgcli.store.legacy import SdaAccount, SdaManifest
from sgcli.store.loader import EntryLoader, load_entry_file

logger = logging.getLogger(__name__)

ACCOUNT_FILE_SUFFIX = ".maFile"
BACKUP_SUFFIX = ".bak"


# --- Version-tagged accounts ---


@dataclass(frozen=True)
class SdaAccountVersion:
    account: SdaAccount

    def is_latest(self) -> bool:
        return False

    def upgrade(self) -> MigratingAccount:
        return CurrentAccountVersion(self.account.upgrade())


@dataclass(frozen=True)
class CurrentAccountVersion:
    account: SteamGuardAccount

    def is_latest(self) -> bool:
        return True

    def upgrade(self) -> MigratingAccount:
        return self


MigratingAccount = Union[SdaAccountVersion, CurrentAccountVersion]


def account_into_current(migrating: MigratingAccount) -> SteamGuardAccount:
    """Unwrap a fully upgraded account.

    Raises:
        UpgradeChainError: If *migrating* is not at the latest version.
    """
    if isinstance(migrating, CurrentAccountVersion):
        return migrating.account
    raise UpgradeChainError(f"Account is not at the latest version: {type(migrating).__name__}")


# --- Version-tagged manifests ---


@dataclass(frozen=True)
class _ManifestVersion:
    """Shared behaviour of the manifest wrappers."""

    def _load_targets(self) -> list[tuple[str, Optional[EncryptionParams]]]:
        raise NotImplementedError

    def _wrap_account(self, text: str) -> MigratingAccount:
        raise NotImplementedError

    def is_encrypted(self) -> bool:
        return any(params is not None for _, params in self._load_targets())

    def load_all_accounts(
        self,
        folder: Path,
        passkey: Optional[str],
        loader: EntryLoader = load_entry_file,
    ) -> list[MigratingAccount]:
        """Load every entry's account file, in manifest order.

        Every entry is attempted even after a failure.

        Raises:
            AccountLoadError: Listing every entry that failed.
        """
        logger.debug("loading all accounts for migration")
        accounts: list[MigratingAccount] = []
        failures: list[tuple[str, Exception]] = []
        for filename, params in self._load_targets():
            try:
                text = loader(folder / filename, passkey, params)
                accounts.append(self._wrap_account(text))
            except (StoreError, OSError, ValueError) as exc:
                logger.debug("failed to load %s: %s", filename, exc)
                failures.append((filename, exc))
        if failures:
            raise AccountLoadError(failures)
        return accounts


@dataclass(frozen=True)
class SdaManifestVersion(_ManifestVersion):
    manifest: SdaManifest

    def is_latest(self) -> bool:
        return False

    def upgrade(self) -> MigratingManifest:
        return CurrentManifestVersion(self.manifest.upgrade())

    def _load_targets(self) -> list[tuple[str, Optional[EncryptionParams]]]:
        return [(e.filename, e.encryption) for e in self.manifest.entries]

    def _wrap_account(self, text: str) -> MigratingAccount:
        return SdaAccountVersion(SdaAccount.model_validate_json(text))


@dataclass(frozen=True)
class CurrentManifestVersion(_ManifestVersion):
    manifest: Manifest

    def is_latest(self) -> bool:
        return True

    def upgrade(self) -> MigratingManifest:
        return self

    def _load_targets(self) -> list[tuple[str, Optional[EncryptionParams]]]:
        return [(e.filename, e.encryption) for e in self.manifest.entries]

    def _wrap_account(self, text: str) -> MigratingAccount:
        return CurrentAccountVersion(SteamGuardAccount.model_validate_json(text))


MigratingManifest = Union[SdaManifestVersion, CurrentManifestVersion]


def manifest_into_current(migrating: MigratingManifest) -> Manifest:
    """Unwrap a fully upgraded manifest.

    Raises:
        UpgradeChainError: If *migrating* is not at the latest version.
    """
    if isinstance(migrating, CurrentManifestVersion):
        return migrating.manifest
    raise UpgradeChainError(f"Manifest is not at the latest version: {type(migrating).__name__}")


_M = TypeVar("_M", bound=BaseModel)


def _validate(model: type[_M], data: dict) -> _M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ManifestDeserializeError(f"Failed to deserialize manifest: {exc}") from exc


def parse_manifest(text: str) -> MigratingManifest:
    """Parse manifest JSON of any supported version.

    A missing or null ``version`` means the SDA format.

    Raises:
        UnknownManifestVersionError: If ``version`` is present but unsupported.
        ManifestDeserializeError: If the text is not a valid manifest.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestDeserializeError(f"Failed to deserialize manifest: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestDeserializeError("Failed to deserialize manifest: expected a JSON object")

    version = data.get("version")
    logger.debug("deserializing manifest: version %s", version)
    if version is None:
        return SdaManifestVersion(_validate(SdaManifest, data))
    # bool is an int subclass, and true must not pass for version 1
    if type(version) is int and version == CURRENT_MANIFEST_VERSION:
        return CurrentManifestVersion(_validate(Manifest, data))
    raise UnknownManifestVersionError(version)


# --- Backups ---


def backup_file(path: Path) -> Path:
    """Copy *path* to ``<name>.bak`` in the same directory.

    Raises:
        BackupError: If the copy fails.
    """
    backup_path = path.with_name(f"{path.name}{BACKUP_SUFFIX}")
    try:
        shutil.copyfile(path, backup_path)
    except OSError as exc:
        raise BackupError(f"Failed to back up {path}: {exc}") from exc
    return backup_path


def backup_store(manifest_path: Path) -> list[Path]:
    """Back up the manifest and every account file next to it.

    Returns:
        The backup paths that were written.

    Raises:
        BackupError: On the first file that cannot be copied.
    """
    backups = [backup_file(manifest_path)]
    try:
        siblings = sorted(manifest_path.parent.iterdir())
    except OSError as exc:
        raise BackupError(f"Failed to list {manifest_path.parent}: {exc}") from exc
    for path in siblings:
        if path.suffix == ACCOUNT_FILE_SUFFIX and path.is_file():
            backups.append(backup_file(path))
    return backups


# --- Orchestration ---


def load_and_migrate(
    manifest_path: Path,
    passkey: Optional[str],
    loader: EntryLoader = load_entry_file,
) -> tuple[Manifest, list[SteamGuardAccount]]:
    """Back up, then migrate the store at *manifest_path* to the current version.

    Args:
        manifest_path: Path to ``manifest.json``. Account files are resolved
            relative to its directory.
        passkey: Passkey for encrypted stores. Must be ``None`` for plain ones.
        loader: Reads and decrypts one account file.

    Returns:
        The current manifest and its accounts, positionally aligned.

    Raises:
        BackupError: If any backup fails. Nothing else is attempted.
        StoreError: See :func:`do_migrate`.
    """
    backup_store(manifest_path)
    return do_migrate(manifest_path, passkey, loader)


def do_migrate(
    manifest_path: Path,
    passkey: Optional[str],
    loader: EntryLoader = load_entry_file,
) -> tuple[Manifest, list[SteamGuardAccount]]:
    """Migrate without taking backups first.

    Raises:
        StoreIOError: If the manifest cannot be read.
        ManifestDeserializeError: If the manifest cannot be parsed.
        MissingPasskeyError: If the manifest is encrypted and *passkey* is ``None``.
        UnexpectedPasskeyError: If the manifest is plain and a passkey was given.
        AccountLoadError: If any account file fails to load.
    """
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreIOError(f"IO error when upgrading manifest: {exc}") from exc
    manifest = parse_manifest(text)

    if manifest.is_encrypted() and passkey is None:
        raise MissingPasskeyError()
    if not manifest.is_encrypted() and passkey is not None:
        raise UnexpectedPasskeyError()

    accounts = manifest.load_all_accounts(manifest_path.parent, passkey, loader)

    while not manifest.is_latest():
        manifest = manifest.upgrade()
        accounts = [account.upgrade() for account in accounts]

    current = manifest_into_current(manifest)
    current_accounts = [account_into_current(a) for a in accounts]
    for entry, account in zip(current.entries, current_accounts):
        entry.account_name = account.account_name.lower()

    logger.debug("migrated %d account(s) to version %d", len(current_accounts), current.version)
    return current, current_accounts


def load_and_upgrade_sda_account(path: Path) -> SteamGuardAccount:
    """Read one unencrypted SDA maFile and upgrade it to the current shape.

    Raises:
        StoreIOError: If the file cannot be read.
        StoreError: If the file is not a valid SDA maFile.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreIOError(f"Cannot read {path}: {exc}") from exc
    try:
        account: MigratingAccount = SdaAccountVersion(SdaAccount.model_validate_json(text))
    except ValidationError as exc:
        raise StoreError(f"{path.name} is not a valid maFile: {exc}") from exc

    while not account.is_latest():
        account = account.upgrade()
    return account_into_current(account)
