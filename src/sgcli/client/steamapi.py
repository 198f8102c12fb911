"""Client for Steam's mobile web login and authenticator endpoints.

:class:`SteamApiClient` wraps :class:`httpx.Client` and impersonates the
official Android app:

- **Cookie jar** -- each instance owns one :class:`httpx.Cookies` jar. Every
  request sends the jar plus three fixed mobile-client cookies in a single
  ``Cookie`` header, and every ``Set-Cookie`` on a response is folded back in.
- **Fixed headers** -- a Nexus 4 User-Agent and the app's
  ``X-Requested-With`` value.
- **Session** -- a successful :meth:`~SteamApiClient.login` or
  :meth:`~SteamApiClient.transfer_login` stores a
  :class:`~sgcli.models.Session` on the client, which the phone checks and
  :meth:`~SteamApiClient.add_authenticator` then require.

Transport errors from :mod:`httpx` propagate unchanged. Bodies that are not
the JSON an endpoint promises raise
:class:`~sgcli.exceptions.ResponseDecodeError`.

A client is not safe to share between threads. Create one per account.

Example::

    with SteamApiClient() as client:
        client.update_session()
        rsa_key = client.get_rsa_key("example")
        resp = client.login("example", encrypt_password(rsa_key, "hunter2"),
                            rsa_timestamp=rsa_key.timestamp)
        if resp.needs_transfer_login():
            client.transfer_login(resp)
"""

from __future__ import annotations

import base64
import logging
import time
from hashlib import sha1
from http.cookies import SimpleCookie
from typing import Any, Optional, TypeVar

import httpx
import rsa
from pydantic import BaseModel, ValidationError

from sgcli.exceptions import MissingSessionError, ResponseDecodeError, TransferLoginError
from sgcli.models import (
    AddAuthenticatorResponse,
    LoginResponse,
    OAuthData,
    RsaResponse,
    Session,
    SteamUrls,
)

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Linux; U; Android 4.1.1; en-us; Google Nexus 4 - 4.1.1 - API 16 - "
    "768x1280 Build/JRO03S) AppleWebKit/534.30 (KHTML, like Gecko) Version/4.0 "
    "Mobile Safari/534.30"
)
REQUESTED_WITH = "com.valvesoftware.android.steam.community"
OAUTH_CLIENT_ID = "DE45CD61"
OAUTH_SCOPE = "read_profile write_profile read_client write_client"
COOKIE_DOMAIN = "steamcommunity.com"
MOBILE_COOKIES = {
    "mobileClientVersion": "0 (2.1.3)",
    "mobileClient": "android",
    "Steam_Language": "english",
}

_T = TypeVar("_T", bound=BaseModel)


def _donotcache() -> str:
    return str(int(time.time()) * 1000)


class SteamApiClient:
    """Stateful client for login, transfer login, phone checks, and enrollment.

    Args:
        urls: Base URLs for the community and API hosts.
        transport: Optional :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        urls: Optional[SteamUrls] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._urls = urls or SteamUrls()
        self._cookies = httpx.Cookies()
        self.session: Optional[Session] = None
        self._client = httpx.Client(
            transport=transport,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "X-Requested-With": REQUESTED_WITH},
        )

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> SteamApiClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._client.close()

    # ------------------------------------------------------------------ #
    # Cookies and requests
    # ------------------------------------------------------------------ #

    @property
    def urls(self) -> SteamUrls:
        """Base URLs this client talks to."""
        return self._urls

    @property
    def cookies(self) -> httpx.Cookies:
        """The client's cookie jar."""
        return self._cookies

    def _cookie_header(self) -> str:
        return "; ".join(f"{c.name}={c.value}" for c in self._cookies.jar)

    def save_cookies_from_response(self, response: httpx.Response) -> None:
        """Fold every ``Set-Cookie`` header of *response* into the jar."""
        for header in response.headers.get_list("set-cookie"):
            parsed: SimpleCookie = SimpleCookie()
            parsed.load(header)
            for name, morsel in parsed.items():
                self._cookies.set(name, morsel.value, domain=COOKIE_DOMAIN)

    def extract_session_id(self) -> Optional[str]:
        """Value of the ``sessionid`` cookie, if the jar has one."""
        for cookie in self._cookies.jar:
            if cookie.name == "sessionid":
                return cookie.value
        return None

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with the mobile cookies and jar attached.

        Args:
            method: HTTP method.
            url: Absolute URL.
            **kwargs: Forwarded to :meth:`httpx.Client.request`.
        """
        for name, value in MOBILE_COOKIES.items():
            self._cookies.set(name, value, domain=COOKIE_DOMAIN)
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Cookie"] = self._cookie_header()

        response = self._client.request(method, url, headers=headers, **kwargs)
        self.save_cookies_from_response(response)
        return response

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request. See :meth:`request`."""
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request. See :meth:`request`."""
        return self.request("POST", url, **kwargs)

    # ------------------------------------------------------------------ #
    # Response decoding
    # ------------------------------------------------------------------ #

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseDecodeError(
                f"Expected JSON from {response.request.url}, got: {response.text[:200]!r}"
            ) from exc

    @staticmethod
    def _parse(model: type[_T], response: httpx.Response) -> _T:
        try:
            return model.model_validate_json(response.text)
        except ValidationError as exc:
            raise ResponseDecodeError(
                f"Unexpected response from {response.request.url}: {exc}"
            ) from exc

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    def build_session(self, data: OAuthData) -> Session:
        """Derive a :class:`Session` from OAuth tokens and the jar's ``sessionid``."""
        try:
            steam_id = int(data.steamid)
        except ValueError as exc:
            raise ResponseDecodeError(f"steamid is not a number: {data.steamid!r}") from exc
        return Session(
            token=data.oauth_token,
            steam_id=steam_id,
            steam_login=f"{data.steamid}%7C%7C{data.wgtoken}",
            steam_login_secure=f"{data.steamid}%7C%7C{data.wgtoken_secure}",
            session_id=self.extract_session_id() or "",
            web_cookie=data.webcookie,
        )

    def _require_session(self, operation: str) -> Session:
        if self.session is None:
            raise MissingSessionError(operation)
        return self.session

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def update_session(self) -> None:
        """Fetch the login page anonymously so the jar gets baseline cookies."""
        logger.debug("updating session cookies")
        self.get(
            f"{self._urls.community}/login",
            params={"oauth_client_id": OAUTH_CLIENT_ID, "oauth_scope": OAUTH_SCOPE},
        )

    def get_rsa_key(self, username: str) -> RsaResponse:
        """Fetch the public key the password must be encrypted with.

        Endpoint: POST /login/getrsakey/
        """
        resp = self.post(
            f"{self._urls.community}/login/getrsakey/",
            data={"donotcache": _donotcache(), "username": username},
        )
        return self._parse(RsaResponse, resp)

    def login(
        self,
        username: str,
        encrypted_password: str,
        twofactor_code: str = "",
        email_code: str = "",
        captcha_gid: str = "",
        captcha_text: str = "",
        rsa_timestamp: str = "",
    ) -> LoginResponse:
        """Submit credentials and any challenge answers.

        Endpoint: POST /login/dologin

        The response either carries OAuth data (a session is built at once),
        asks for a transfer login, or sets the challenge flags the caller
        must answer before calling this again.
        """
        params = {
            "donotcache": _donotcache(),
            "username": username,
            "password": encrypted_password,
            "twofactorcode": twofactor_code,
            "emailauth": email_code,
            "captchagid": captcha_gid,
            "captcha_text": captcha_text,
            "rsatimestamp": rsa_timestamp,
            "remember_login": "true",
            "oauth_client_id": OAUTH_CLIENT_ID,
            "oauth_scope": OAUTH_SCOPE,
        }
        resp = self.post(f"{self._urls.community}/login/dologin", data=params)
        logger.debug("raw login response: %s", resp.text)

        login_resp = self._parse(LoginResponse, resp)
        if login_resp.oauth is not None:
            self.session = self.build_session(login_resp.oauth)
        return login_resp

    def transfer_login(self, login_resp: LoginResponse) -> OAuthData:
        """Relay transfer parameters to every transfer URL and build a session.

        Only needed when :meth:`LoginResponse.needs_transfer_login` is true.

        Raises:
            TransferLoginError: If the URLs, the parameters, or both are missing.
        """
        urls = login_resp.transfer_urls
        params = login_resp.transfer_parameters
        if urls is None and params is None:
            raise TransferLoginError("did not receive transfer_urls and transfer_parameters")
        if params is None:
            raise TransferLoginError("did not receive transfer_parameters")
        if urls is None:
            raise TransferLoginError("did not receive transfer_urls")

        logger.debug("received transfer parameters, relaying data...")
        body = params.model_dump()
        for url in urls:
            logger.debug("posting transfer to %s", url)
            self.post(url, json=body)

        # TODO: confirm against live traffic that wgtoken really is token_secure;
        # the transfer parameters carry no separate insecure token.
        oauth = OAuthData(
            oauth_token=params.auth,
            steamid=params.steamid,
            wgtoken=params.token_secure,
            wgtoken_secure=params.token_secure,
            webcookie=params.webcookie,
        )
        self.session = self.build_session(oauth)
        return oauth

    # ------------------------------------------------------------------ #
    # Phone and email checks
    # ------------------------------------------------------------------ #

    def _phoneajax(self, op: str, arg: str) -> bool:
        """Endpoint: POST /steamguard/phoneajax"""
        session = self._require_session(op)
        params = {"op": op, "arg": arg, "sessionid": session.session_id}
        if op == "check_sms_code":
            params["checkfortos"] = "0"
            params["skipvoip"] = "1"

        resp = self.post(f"{self._urls.community}/steamguard/phoneajax", data=params)
        result = self._json(resp)
        if not isinstance(result, dict):
            logger.debug("phoneajax returned a non-object body")
            return False

        for field in ("has_phone", "success"):
            value = result.get(field)
            if value is None:
                continue
            logger.debug("found %s field", field)
            if not isinstance(value, bool):
                raise ResponseDecodeError(f"failed to parse {field} field into boolean")
            return value

        logger.debug("did not find any expected field")
        return False

    def has_phone(self) -> bool:
        """Whether the account has a phone number attached."""
        return self._phoneajax("has_phone", "null")

    def check_sms_code(self, sms_code: str) -> bool:
        return self._phoneajax("check_sms_code", sms_code)

    def check_email_confirmation(self) -> bool:
        return self._phoneajax("email_confirmation", "")

    def add_phone_number(self, phone_number: str) -> bool:
        return self._phoneajax("add_phone_number", phone_number)

    # ------------------------------------------------------------------ #
    # Enrollment
    # ------------------------------------------------------------------ #

    def add_authenticator(self, device_id: str) -> AddAuthenticatorResponse:
        """Start linking a new authenticator to the logged-in account.

        Endpoint: POST {api}/ITwoFactorService/AddAuthenticator/v0001

        No SMS or email prerequisites are checked here; Steam rejects the
        request if they are unmet.

        Raises:
            MissingSessionError: If no session is set.
        """
        session = self._require_session("add_authenticator")
        params = {
            "access_token": session.token,
            "steamid": str(session.steam_id),
            "authenticator_type": "1",
            "device_identifier": device_id,
            "sms_phone_id": "1",
        }
        resp = self.post(
            f"{self._urls.api}/ITwoFactorService/AddAuthenticator/v0001", data=params
        )
        logger.debug("raw add authenticator response: %s", resp.text)
        return self._parse(AddAuthenticatorResponse, resp)

    def query_time(self) -> int:
        """Steam's current server time, in seconds since the epoch.

        Endpoint: POST {api}/ITwoFactorService/QueryTime/v0001
        """
        resp = self.post(
            f"{self._urls.api}/ITwoFactorService/QueryTime/v0001",
            content=b"steamid=0",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        body = self._json(resp)
        try:
            return int(body["response"]["server_time"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ResponseDecodeError(f"No server_time in response: {body!r}") from exc


def get_server_time(
    client: Optional[SteamApiClient] = None,
    urls: Optional[SteamUrls] = None,
) -> int:
    """Query Steam's server time.

    Uses *client* when given, otherwise a throwaway client for *urls*.
    """
    if client is not None:
        return client.query_time()
    with SteamApiClient(urls=urls) as throwaway:
        return throwaway.query_time()


def encrypt_password(rsa_key: RsaResponse, password: str) -> str:
    """RSA-encrypt *password* with the key from :meth:`SteamApiClient.get_rsa_key`.

    Returns:
        The base64 ciphertext expected by :meth:`SteamApiClient.login`.
    """
    public_key = rsa.PublicKey(int(rsa_key.publickey_mod, 16), int(rsa_key.publickey_exp, 16))
    encrypted = rsa.encrypt(password.encode("utf-8"), public_key)
    return base64.b64encode(encrypted).decode("ascii")


def generate_device_id(steam_id: int | str) -> str:
    """Deterministic Android-style device id derived from a steam id."""
    digest = sha1(str(steam_id).encode("ascii")).hexdigest()
    return (
        f"android:{digest[:8]}-{digest[8:12]}-{digest[12:16]}-{digest[16:20]}-{digest[20:32]}"
    )
