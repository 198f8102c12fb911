"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~sgcli.exceptions.SgcliError` subclass.
Shell wrappers can inspect the exit code to determine the failure class
without parsing stderr.

Example::

    $ sgcli migrate
    $ echo $?
    8   # EXIT_STORE_ERROR -- the maFiles directory could not be migrated
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_STORE_ERROR = 8
"""The manifest or an account file could not be read, decrypted, or migrated."""

EXIT_PROTOCOL_ERROR = 9
"""Steam returned a response that could not be understood, or a session was missing."""
