"""Store commands -- work on the local maFiles directory.

Typical workflow::

    sgcli --mafiles ~/sda/maFiles migrate     # upgrade an SDA directory
    sgcli import ~/Downloads/1234.maFile      # add a single SDA account file
    sgcli list                                # show stored accounts
"""

from __future__ import annotations

from pathlib import Path

import typer

from sgcli.config import resolve_mafiles_dir, resolve_passkey
from sgcli.exit_codes import EXIT_INVALID_USAGE
from sgcli.output import error, info, print_table, success, suggest
from sgcli.store import AccountManager, load_and_migrate, load_and_upgrade_sda_account


def open_manager(ctx: typer.Context) -> AccountManager:
    """Build an :class:`AccountManager` from the global ``--mafiles`` and ``--passkey``."""
    obj = ctx.obj or {}
    directory = resolve_mafiles_dir(obj.get("mafiles"))
    passkey = resolve_passkey(obj.get("passkey"))
    return AccountManager(directory, passkey=passkey)


def migrate_command(ctx: typer.Context) -> None:
    """Back up and upgrade the maFiles directory to the current format.

    Every file is copied to ``<name>.bak`` before anything is changed. An
    encrypted directory needs ``--passkey`` (or ``SGCLI_PASSKEY``); a plain
    one must not be given one.

    Example::

        sgcli --mafiles ~/sda/maFiles --passkey hunter2 migrate
    """
    manager = open_manager(ctx)
    if not manager.manifest_path.is_file():
        error(f"No manifest found at {manager.manifest_path}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    passkey = resolve_passkey((ctx.obj or {}).get("passkey"))
    manager.manifest, manager.accounts = load_and_migrate(manager.manifest_path, passkey)
    manager.save()
    success(f"Migrated {len(manager.accounts)} account(s) in {manager.manifest_path.parent}")


def import_command(
    ctx: typer.Context,
    files: list[Path] = typer.Argument(
        ..., exists=True, dir_okay=False, help="SDA maFile(s) to import."
    ),
) -> None:
    """Import unencrypted SDA account files into the maFiles directory.

    An account already stored under the same steam id is replaced. Files
    saved without a session are matched by account name instead.
    """
    manager = open_manager(ctx)
    manager.load()
    for path in files:
        account = load_and_upgrade_sda_account(path)
        manager.add_account(account)
        info(f"Imported {account.account_name or path.name}")
    manager.save()
    success(f"Imported {len(files)} account(s).")


def list_command(ctx: typer.Context) -> None:
    """List the accounts in the maFiles directory."""
    manager = open_manager(ctx)
    manager.load()
    if not manager.accounts:
        info("No accounts found.")
        suggest("Add one: sgcli setup <username>")
        return

    rows = [
        [
            entry.account_name,
            str(entry.steam_id),
            "yes" if account.fully_enrolled else "no",
            "yes" if entry.encryption is not None else "no",
        ]
        for entry, account in zip(manager.manifest.entries, manager.accounts)
    ]
    print_table(["account_name", "steam_id", "enrolled", "encrypted"], rows, title="Accounts")
