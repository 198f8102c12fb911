"""Steam Desktop Authenticator (SDA) manifest and maFile shapes.

These are the oldest formats the migration engine understands. A manifest
without a ``version`` field is assumed to be one of these. Each model knows
how to convert itself to the current shape; nothing outside
:mod:`sgcli.store.migrate` should need them.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sgcli.models import (
    EncryptionParams,
    EncryptionScheme,
    Manifest,
    ManifestEntry,
    Session,
    SteamGuardAccount,
)


class SdaManifestEntry(BaseModel):
    filename: str
    steamid: int = 0
    encryption_iv: Optional[str] = None
    encryption_salt: Optional[str] = None

    @property
    def encryption(self) -> Optional[EncryptionParams]:
        """SDA stores iv and salt as separate nullable fields; both are needed."""
        if self.encryption_iv is None or self.encryption_salt is None:
            return None
        return EncryptionParams(
            iv=self.encryption_iv,
            salt=self.encryption_salt,
            scheme=EncryptionScheme.LEGACY_SDA_COMPATIBLE,
        )

    def upgrade(self) -> ManifestEntry:
        # account_name is unknown here and is filled in from the account
        # after migration.
        return ManifestEntry(
            filename=self.filename,
            account_name="",
            steam_id=self.steamid,
            encryption=self.encryption,
        )


class SdaManifest(BaseModel):
    encrypted: bool = False
    first_run: bool = False
    entries: list[SdaManifestEntry] = Field(default_factory=list)
    periodic_checking: bool = False
    periodic_checking_interval: int = 5
    periodic_checking_checkall: bool = False
    auto_confirm_market_transactions: bool = False
    auto_confirm_trades: bool = False

    def upgrade(self) -> Manifest:
        return Manifest(entries=[e.upgrade() for e in self.entries], keyring_id=None)


class SdaAccount(BaseModel):
    """An SDA maFile. Identical to the current account minus ``steam_id``."""

    model_config = ConfigDict(populate_by_name=True)

    account_name: str = ""
    serial_number: str = ""
    revocation_code: str = ""
    shared_secret: str = ""
    token_gid: str = ""
    identity_secret: str = ""
    secret_1: str = ""
    uri: str = ""
    device_id: str = ""
    server_time: int = 0
    fully_enrolled: bool = False
    status: int = 0
    session: Optional[Session] = Field(default=None, alias="Session")

    def upgrade(self) -> SteamGuardAccount:
        return SteamGuardAccount(
            account_name=self.account_name,
            steam_id=self.session.steam_id if self.session else 0,
            serial_number=self.serial_number,
            revocation_code=self.revocation_code,
            shared_secret=self.shared_secret,
            token_gid=self.token_gid,
            identity_secret=self.identity_secret,
            secret_1=self.secret_1,
            uri=self.uri,
            device_id=self.device_id,
            server_time=self.server_time,
            fully_enrolled=self.fully_enrolled,
            session=self.session,
        )
