"""Credential store -- the maFiles directory and its migration engine.

Public entry points:

- :func:`~sgcli.store.migrate.load_and_migrate` -- back up and upgrade a
  directory of any supported schema version to the current one.
- :func:`~sgcli.store.migrate.load_and_upgrade_sda_account` -- upgrade a
  single Steam Desktop Authenticator maFile.
- :class:`~sgcli.store.manager.AccountManager` -- load and save a directory
  in the current schema.
- :func:`~sgcli.store.loader.load_entry_file` -- the default entry loader.
"""

from sgcli.store.loader import EntryLoader, load_entry_file
from sgcli.store.manager import AccountManager
from sgcli.store.migrate import load_and_migrate, load_and_upgrade_sda_account

__all__ = [
    "AccountManager",
    "EntryLoader",
    "load_and_migrate",
    "load_and_upgrade_sda_account",
    "load_entry_file",
]
