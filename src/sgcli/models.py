"""Canonical Pydantic models shared across all sgcli modules.

This is the single source of truth for the current data shapes in the
project. The models fall into three groups:

**Store models** -- serialised as JSON in the maFiles directory:
    :class:`EncryptionParams`, :class:`ManifestEntry`, :class:`Manifest`,
    :class:`Session`, and :class:`SteamGuardAccount`.

**Wire models** -- parsed from Steam's web endpoints and never persisted:
    :class:`OAuthData`, :class:`LoginTransferParameters`,
    :class:`LoginResponse`, :class:`RsaResponse`, and
    :class:`AddAuthenticatorResponse`.

**Configuration models** -- :class:`SteamUrls`, injected into
    :class:`~sgcli.client.steamapi.SteamApiClient`.

Older on-disk shapes (Steam Desktop Authenticator's manifest and maFiles)
live in :mod:`sgcli.store.legacy` and are only ever seen by the migration
engine.
"""

from __future__ import annotations

import enum
import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CURRENT_MANIFEST_VERSION = 1
"""Schema version written by this package. Manifests at this version need no migration."""


# --- Store ---


class EncryptionScheme(str, enum.Enum):
    """Key-derivation and cipher scheme used for an encrypted account file."""

    LEGACY_SDA_COMPATIBLE = "LegacySdaCompatible"


class EncryptionParams(BaseModel):
    """Parameters needed to derive the decryption key for one account file.

    The migration engine never looks inside these; they are handed to the
    entry loader as-is.
    """

    iv: str = Field(description="Base64-encoded AES initialisation vector")
    salt: str = Field(description="Base64-encoded PBKDF2 salt")
    scheme: EncryptionScheme = EncryptionScheme.LEGACY_SDA_COMPATIBLE


class ManifestEntry(BaseModel):
    """One manifest record pointing at an account file."""

    filename: str
    account_name: str = ""
    steam_id: int = 0
    encryption: Optional[EncryptionParams] = None


class Manifest(BaseModel):
    """Index of known accounts and where their secrets live.

    Example::

        manifest = Manifest(entries=[ManifestEntry(filename="1234.maFile", steam_id=1234)])
        assert manifest.version == CURRENT_MANIFEST_VERSION
    """

    version: int = CURRENT_MANIFEST_VERSION
    entries: list[ManifestEntry] = Field(default_factory=list)
    keyring_id: Optional[str] = None

    def is_encrypted(self) -> bool:
        """Whether any entry carries encryption parameters."""
        return any(e.encryption is not None for e in self.entries)


class Session(BaseModel):
    """Authenticated web tokens for a logged-in Steam user.

    Serialised with the PascalCase names Steam Desktop Authenticator used,
    so that maFiles stay readable by other tools.
    """

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(default="", alias="SessionID")
    steam_login: str = Field(default="", alias="SteamLogin")
    steam_login_secure: str = Field(default="", alias="SteamLoginSecure")
    web_cookie: Optional[str] = Field(default=None, alias="WebCookie")
    token: str = Field(default="", alias="OAuthToken")
    steam_id: int = Field(default=0, alias="SteamID")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Older files write null for tokens that were never issued.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class SteamGuardAccount(BaseModel):
    """Decrypted secret bundle for one mobile authenticator."""

    model_config = ConfigDict(populate_by_name=True)

    account_name: str = ""
    steam_id: int = 0
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
    session: Optional[Session] = Field(default=None, alias="Session")

    def to_json(self) -> str:
        """Serialise to the on-disk maFile representation."""
        return self.model_dump_json(by_alias=True, indent=2)


# --- Wire ---


class OAuthData(BaseModel):
    """Token bundle returned by a successful login. Consumed to build a :class:`Session`."""

    oauth_token: str
    steamid: str
    wgtoken: str
    wgtoken_secure: str
    webcookie: str = ""


class LoginTransferParameters(BaseModel):
    """Data that must be relayed to every transfer URL after some logins."""

    steamid: str
    token_secure: str
    auth: str
    remember_login: bool = False
    webcookie: str = ""


class LoginResponse(BaseModel):
    """Result of ``POST /login/dologin``.

    Exactly one of three things is true of a response:

    * ``oauth`` is set -- login finished and a session can be built.
    * :meth:`needs_transfer_login` -- the caller must relay
      ``transfer_parameters`` with
      :meth:`~sgcli.client.steamapi.SteamApiClient.transfer_login`.
    * One of the challenge flags is set -- the caller must collect the code
      or captcha and log in again.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True)

    success: bool = False
    login_complete: bool = False
    captcha_needed: bool = False
    captcha_gid: str = ""
    emailsteamid: int = 0
    emailauth_needed: bool = False
    requires_twofactor: bool = False
    message: str = ""
    oauth: Optional[OAuthData] = None
    transfer_urls: Optional[list[str]] = None
    transfer_parameters: Optional[LoginTransferParameters] = None

    @field_validator("oauth", mode="before")
    @classmethod
    def _decode_nested_oauth(cls, value: Any) -> Any:
        # Steam sends this field as a string containing JSON.
        if isinstance(value, str):
            return json.loads(value)
        return value

    def needs_transfer_login(self) -> bool:
        """Whether the caller must finish with a transfer login."""
        return self.transfer_urls is not None or self.transfer_parameters is not None


class RsaResponse(BaseModel):
    """Public key used to encrypt the password for a login attempt."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    success: bool = False
    publickey_exp: str
    publickey_mod: str
    timestamp: str
    token_gid: str = ""


class AddAuthenticatorResult(BaseModel):
    """Body of an ``AddAuthenticator`` call. Only ``status`` is set when Steam refuses."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    shared_secret: str = ""
    serial_number: str = ""
    revocation_code: str = ""
    uri: str = ""
    server_time: int = 0
    account_name: str = ""
    token_gid: str = ""
    identity_secret: str = ""
    secret_1: str = ""
    status: str = ""


class AddAuthenticatorResponse(BaseModel):
    """Envelope returned by ``ITwoFactorService/AddAuthenticator``."""

    response: AddAuthenticatorResult

    def to_steam_guard_account(self) -> SteamGuardAccount:
        """Convert the new secrets into an account that is not yet fully enrolled.

        The device id, steam id, and session are left empty for the caller
        to fill in.
        """
        r = self.response
        return SteamGuardAccount(
            shared_secret=r.shared_secret,
            serial_number=r.serial_number,
            revocation_code=r.revocation_code,
            uri=r.uri,
            server_time=r.server_time,
            account_name=r.account_name,
            token_gid=r.token_gid,
            identity_secret=r.identity_secret,
            secret_1=r.secret_1,
            fully_enrolled=False,
            device_id="",
            session=None,
        )


# --- Configuration ---


class SteamUrls(BaseModel):
    """Base URLs for Steam's web hosts.

    Override these to point the client at a test server.
    """

    community: str = Field(
        default="https://steamcommunity.com",
        description="Host serving login, transfer, and phoneajax endpoints",
    )
    api: str = Field(
        default="https://api.steampowered.com",
        description="Host serving the ITwoFactorService endpoints",
    )
