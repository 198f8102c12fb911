"""Exception hierarchy for sgcli.

All ordinary errors inherit from :class:`SgcliError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`sgcli.exit_codes`.
The top-level error handler in :func:`sgcli.app.main` catches
``SgcliError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    SgcliError (exit 1)
    +-- ConfigError                    (exit 1)
    +-- StoreError                     (exit 8)
    |   +-- ManifestDeserializeError
    |   |   +-- UnknownManifestVersionError
    |   +-- PasskeyError
    |   |   +-- MissingPasskeyError
    |   |   +-- UnexpectedPasskeyError
    |   +-- DecryptionError
    |   +-- AccountLoadError
    |   +-- StoreIOError
    |       +-- BackupError
    +-- ProtocolError                  (exit 9)
        +-- ResponseDecodeError
        +-- MissingSessionError
        +-- TransferLoginError

:class:`UpgradeChainError` deliberately sits outside this tree. It is a
fault raised when the migration engine is asked to hand out a value that
never reached the current schema version, and it is never caught by the
CLI's ordinary error handler.
"""

from __future__ import annotations

from typing import Sequence

from sgcli.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_PROTOCOL_ERROR,
    EXIT_STORE_ERROR,
)


class SgcliError(Exception):
    """Base exception for all sgcli errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`sgcli.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(SgcliError):
    """Raised for configuration problems (unreadable config file, bad paths)."""

    exit_code = EXIT_GENERIC_FAILURE


# --- Credential store ---


class StoreError(SgcliError):
    """Base class for manifest, account file, and migration failures."""

    exit_code = EXIT_STORE_ERROR


class ManifestDeserializeError(StoreError):
    """Raised when the manifest is not valid JSON or does not match its schema."""


class UnknownManifestVersionError(ManifestDeserializeError):
    """Raised when the manifest declares a ``version`` this package does not know."""

    def __init__(self, version: object):
        super().__init__(f"Unknown manifest version: {version!r}")
        self.version = version


class PasskeyError(StoreError):
    """Raised when passkey presence does not match the manifest's encryption state."""


class MissingPasskeyError(PasskeyError):
    """Raised when the manifest is encrypted but no passkey was supplied."""

    def __init__(self, message: str = "Passkey is required to decrypt manifest"):
        super().__init__(message)


class UnexpectedPasskeyError(PasskeyError):
    """Raised when a passkey was supplied for a manifest that is not encrypted.

    Continuing would encrypt the account files on the next save, which is
    almost certainly not what the user meant.
    """

    def __init__(self) -> None:
        super().__init__(
            "A passkey was provided but the manifest is not encrypted. Aborting "
            "migration because it would encrypt the maFiles, and you probably "
            "didn't mean to do that."
        )


class DecryptionError(StoreError):
    """Raised when an account file cannot be decrypted (wrong passkey, corrupt data)."""


class AccountLoadError(StoreError):
    """Raised when one or more account files fail to load.

    Every entry is attempted before this is raised, so :attr:`failures`
    lists all of the failing files rather than just the first.

    Args:
        failures: ``(filename, exception)`` pairs, in manifest order.
    """

    def __init__(self, failures: Sequence[tuple[str, Exception]]):
        self.failures = list(failures)
        details = "; ".join(f"{name}: {exc}" for name, exc in self.failures)
        super().__init__(f"Failed to load some accounts: {details}")

    @property
    def filenames(self) -> list[str]:
        """Names of the account files that failed to load."""
        return [name for name, _ in self.failures]


class StoreIOError(StoreError):
    """Raised when a store file cannot be opened, read, written, or copied."""


class BackupError(StoreIOError):
    """Raised when a file cannot be backed up before migration."""


# --- Steam protocol ---


class ProtocolError(SgcliError):
    """Base class for failures talking to Steam's web endpoints."""

    exit_code = EXIT_PROTOCOL_ERROR


class ResponseDecodeError(ProtocolError):
    """Raised when a response body is not the JSON shape the endpoint promises."""


class MissingSessionError(ProtocolError):
    """Raised when an operation needs an authenticated session and none is set."""

    def __init__(self, operation: str):
        super().__init__(f"A logged-in session is required for {operation}")
        self.operation = operation


class TransferLoginError(ProtocolError):
    """Raised when ``transfer_login`` is called without complete transfer data."""


# --- Faults ---


class UpgradeChainError(RuntimeError):
    """A value was converted to its current shape before it was fully upgraded.

    This signals a bug in the upgrade chain, not bad input.
    """
