"""sgcli -- Manage Steam Guard mobile authenticator secrets.

This package keeps a directory of Steam Guard account files (``maFiles``)
readable across schema versions and talks to Steam's mobile login endpoints
to enroll new authenticators.

Typical workflow::

    sgcli migrate               # upgrade an SDA maFiles directory in place
    sgcli setup myaccount       # log in and link a new authenticator
    sgcli list                  # show stored accounts

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware paths, atomic writes, and option resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    store: Manifest migration, account file decryption, and persistence.
    client: HTTP client for Steam's login and authenticator endpoints.
"""

__version__ = "0.1.0"
