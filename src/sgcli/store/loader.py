"""Entry loader -- turns one account file into decrypted JSON text.

The migration engine and :class:`~sgcli.store.manager.AccountManager` only
depend on the :class:`EntryLoader` call signature, so tests and alternative
storage backends can substitute their own loader.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from sgcli.exceptions import DecryptionError, StoreIOError
from sgcli.models import EncryptionParams
from sgcli.store import crypto

logger = logging.getLogger(__name__)


class EntryLoader(Protocol):
    """Callable that reads and, if needed, decrypts one account file."""

    def __call__(
        self,
        path: Path,
        passkey: Optional[str],
        params: Optional[EncryptionParams],
    ) -> str: ...


def load_entry_file(
    path: Path,
    passkey: Optional[str],
    params: Optional[EncryptionParams],
) -> str:
    """Read *path* and return its account JSON.

    Args:
        path: The account file.
        passkey: Passkey used to derive the key. Ignored for plain files.
        params: The entry's encryption parameters, or ``None`` when the file
            is stored in plain text.

    Raises:
        StoreIOError: If the file cannot be read.
        DecryptionError: If the file is encrypted and no passkey was given,
            or decryption fails.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreIOError(f"Cannot read account file {path}: {exc}") from exc

    if params is None:
        return text
    if passkey is None:
        raise DecryptionError(f"{path.name} is encrypted but no passkey was given")
    logger.debug("decrypting %s", path.name)
    return crypto.decrypt(passkey, params, text)
