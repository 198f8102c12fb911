"""Read and write a maFiles directory in the current schema.

:class:`AccountManager` is the caller the migration engine hands its result
to: it migrates an out-of-date directory on load, then persists the
manifest and every account file atomically with ``0o600`` permissions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from sgcli.config import MANIFEST_FILENAME, atomic_write
from sgcli.exceptions import (
    MissingPasskeyError,
    StoreError,
    StoreIOError,
    UnexpectedPasskeyError,
)
from sgcli.models import Manifest, ManifestEntry, SteamGuardAccount
from sgcli.store import crypto
from sgcli.store.loader import EntryLoader, load_entry_file
from sgcli.store.migrate import (
    ACCOUNT_FILE_SUFFIX,
    CurrentManifestVersion,
    account_into_current,
    load_and_migrate,
    manifest_into_current,
    parse_manifest,
)

logger = logging.getLogger(__name__)


class AccountManager:
    """Manifest and accounts for one maFiles directory.

    ``manifest.entries[i]`` always describes ``accounts[i]``.

    Args:
        directory: The maFiles directory. Created on first :meth:`save`.
        passkey: Passkey for encrypted stores. When set, :meth:`save`
            encrypts every account file.
        loader: Reads and decrypts one account file.

    Example::

        manager = AccountManager(Path("~/.config/sgcli/maFiles").expanduser())
        manager.load()
        account = manager.get_account("example")
    """

    def __init__(
        self,
        directory: Path,
        passkey: Optional[str] = None,
        loader: EntryLoader = load_entry_file,
    ) -> None:
        self._directory = directory
        self._passkey = passkey
        self._loader = loader
        self.manifest = Manifest()
        self.accounts: list[SteamGuardAccount] = []

    @property
    def manifest_path(self) -> Path:
        """Path to ``manifest.json`` inside the directory."""
        return self._directory / MANIFEST_FILENAME

    def load(self) -> None:
        """Load the directory, migrating and re-saving it when out of date.

        A directory without a manifest loads as empty.

        Raises:
            StoreError: If the manifest or any account cannot be loaded.
            UnexpectedPasskeyError: If a passkey was given for a plain,
                non-empty store.
        """
        if not self.manifest_path.is_file():
            logger.debug("no manifest at %s, starting empty", self.manifest_path)
            self.manifest = Manifest()
            self.accounts = []
            return

        try:
            text = self.manifest_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreIOError(f"Cannot read {self.manifest_path}: {exc}") from exc
        migrating = parse_manifest(text)

        if not isinstance(migrating, CurrentManifestVersion):
            logger.info("manifest is out of date, migrating %s", self.manifest_path)
            self.manifest, self.accounts = load_and_migrate(
                self.manifest_path, self._passkey, self._loader
            )
            self.save()
            return

        if migrating.is_encrypted() and self._passkey is None:
            raise MissingPasskeyError()
        # an empty store may start out encrypted
        if (
            not migrating.is_encrypted()
            and self._passkey is not None
            and migrating.manifest.entries
        ):
            raise UnexpectedPasskeyError()

        loaded = migrating.load_all_accounts(self._directory, self._passkey, self._loader)
        self.manifest = manifest_into_current(migrating)
        self.accounts = [account_into_current(a) for a in loaded]

    def save(self) -> None:
        """Write every account file, then the manifest.

        Encrypted files get a fresh salt and IV on every save.
        """
        for entry, account in zip(self.manifest.entries, self.accounts):
            body = account.to_json()
            if self._passkey is not None:
                entry.encryption = crypto.generate_params()
                body = crypto.encrypt(self._passkey, entry.encryption, body)
            else:
                entry.encryption = None
            self._write(self._directory / entry.filename, body)

        data = self.manifest.model_dump(mode="json")
        self._write(self.manifest_path, json.dumps(data, indent=2) + "\n")
        logger.debug("saved %d account(s) to %s", len(self.accounts), self._directory)

    def account_names(self) -> list[str]:
        """Account names in manifest order."""
        return [entry.account_name for entry in self.manifest.entries]

    def get_account(self, account_name: str) -> Optional[SteamGuardAccount]:
        """Find an account by name, case-insensitively."""
        wanted = account_name.lower()
        for account in self.accounts:
            if account.account_name.lower() == wanted:
                return account
        return None

    def add_account(self, account: SteamGuardAccount) -> None:
        """Add *account*, replacing any existing account with the same steam id.

        An account without a steam id (an SDA file saved without a session)
        is keyed and named by its lower-cased account name instead.

        Raises:
            StoreError: If the account has neither a steam id nor a name.
        """
        name = account.account_name.lower()
        if account.steam_id:
            stem = str(account.steam_id)
        elif name:
            stem = name
        else:
            raise StoreError("Cannot add an account with neither a steam id nor an account name")
        entry = ManifestEntry(
            filename=f"{stem}{ACCOUNT_FILE_SUFFIX}",
            account_name=name,
            steam_id=account.steam_id,
        )
        for i, existing in enumerate(self.manifest.entries):
            if existing.steam_id == account.steam_id and (
                account.steam_id or existing.account_name == name
            ):
                self.manifest.entries[i] = entry
                self.accounts[i] = account
                return
        self.manifest.entries.append(entry)
        self.accounts.append(account)

    def remove_account(self, account_name: str) -> None:
        """Remove an account and its file.

        Raises:
            StoreError: If no such account exists.
        """
        wanted = account_name.lower()
        for i, account in enumerate(self.accounts):
            if account.account_name.lower() == wanted:
                entry = self.manifest.entries.pop(i)
                self.accounts.pop(i)
                (self._directory / entry.filename).unlink(missing_ok=True)
                return
        raise StoreError(f"No account named '{account_name}'")

    def _write(self, path: Path, data: str) -> None:
        try:
            atomic_write(path, data)
        except OSError as exc:
            raise StoreIOError(f"Cannot write {path}: {exc}") from exc
