"""Built-in CLI commands for sgcli.

This package groups the Typer command callbacks registered on the root app:

* :mod:`~sgcli.commands.store` -- ``migrate``, ``import``, and ``list``,
  which work on the local maFiles directory.
* :mod:`~sgcli.commands.setup` -- ``setup`` and ``server-time``, which talk
  to Steam.

Each module exports plain callback functions registered directly on the root
app in :mod:`sgcli.app`.
"""
