"""Shared test fixtures for sgcli.

Provides reusable fixtures for building maFiles directories, creating
isolated config environments, managing output state, and running CLI
commands. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from sgcli.models import EncryptionParams
from sgcli.output import OutputFormat, OutputManager, reset_output, set_output
from sgcli.store import crypto


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# maFiles builders
# ---------------------------------------------------------------------------


def sda_account(
    account_name: str = "example",
    steam_id: int = 1234,
    **overrides: Any,
) -> dict[str, Any]:
    """An SDA maFile body as Steam Desktop Authenticator writes it."""
    data: dict[str, Any] = {
        "shared_secret": "zvIayp3JPvtvX/QGHqsqKBk/44s=",
        "serial_number": "kRVJGsvE1KAu4yNKWkXmKpvtORo=",
        "revocation_code": "R12345",
        "uri": "otpauth://totp/Steam:example?secret=ZZZZZ&issuer=Steam",
        "server_time": 1602522478,
        "account_name": account_name,
        "token_gid": "2d54f4d3cd3ecbb4",
        "identity_secret": "kZ7r7QjKlDiDWBNBgdtRQZMl6l4=",
        "secret_1": "secret1",
        "status": 1,
        "device_id": "android:99d2ad0e-4bad-4247-b111-26393aae0be3",
        "fully_enrolled": True,
        "Session": {
            "SessionID": "a55a9dfbcdb99f4f9f6f0e73",
            "SteamLogin": f"{steam_id}%7C%7CABCD",
            "SteamLoginSecure": f"{steam_id}%7C%7CEFGH",
            "WebCookie": None,
            "OAuthToken": "fd2fdb3d0717bcd2220d98c7ec61c7bd",
            "SteamID": steam_id,
        },
    }
    data.update(overrides)
    return data


def sda_manifest_entry(
    filename: str,
    steam_id: int = 1234,
    encryption: Optional[EncryptionParams] = None,
) -> dict[str, Any]:
    """An SDA manifest entry. Encrypted entries carry IV and salt."""
    return {
        "encryption_iv": encryption.iv if encryption else None,
        "encryption_salt": encryption.salt if encryption else None,
        "filename": filename,
        "steamid": steam_id,
    }


def sda_manifest(entries: list[dict[str, Any]], encrypted: bool = False) -> dict[str, Any]:
    """An SDA manifest body."""
    return {
        "encrypted": encrypted,
        "first_run": False,
        "entries": entries,
        "periodic_checking": False,
        "periodic_checking_interval": 5,
        "periodic_checking_checkall": False,
        "auto_confirm_market_transactions": False,
        "auto_confirm_trades": False,
    }


@pytest.fixture
def make_sda_account() -> Callable[..., dict[str, Any]]:
    """Factory for SDA maFile bodies. See :func:`sda_account`."""
    return sda_account


@pytest.fixture
def write_sda_store(tmp_path: Path) -> Callable[..., Path]:
    """Write an SDA maFiles directory and return the manifest path.

    Call with a list of account dicts (see :func:`sda_account`) and an
    optional passkey. With a passkey every account file is encrypted
    with its own fresh parameters.
    """

    def _write(
        accounts: list[dict[str, Any]],
        passkey: Optional[str] = None,
        directory: Optional[Path] = None,
    ) -> Path:
        folder = directory or tmp_path / "maFiles"
        folder.mkdir(parents=True, exist_ok=True)
        entries = []
        for account in accounts:
            steam_id = account["Session"]["SteamID"]
            filename = f"{steam_id}.maFile"
            body = json.dumps(account)
            params = None
            if passkey is not None:
                params = crypto.generate_params()
                body = crypto.encrypt(passkey, params, body)
            (folder / filename).write_text(body)
            entries.append(sda_manifest_entry(filename, steam_id, params))

        manifest_path = folder / "manifest.json"
        manifest_path.write_text(json.dumps(sda_manifest(entries, passkey is not None)))
        return manifest_path

    return _write


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config. Clears all SGCLI_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["SGCLI_MAFILES", "SGCLI_PASSKEY"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
