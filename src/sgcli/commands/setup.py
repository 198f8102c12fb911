"""Setup commands -- talk to Steam.

``setup`` logs in interactively, makes sure a phone number is attached, and
links a new authenticator. The secrets are saved with ``fully_enrolled``
unset, and the revocation code is printed to stdout.

Typical workflow::

    sgcli setup myaccount
    sgcli server-time
"""

from __future__ import annotations

import typer

from sgcli.client import SteamApiClient, encrypt_password, generate_device_id, get_server_time
from sgcli.commands.store import open_manager
from sgcli.exceptions import MissingSessionError
from sgcli.exit_codes import EXIT_GENERIC_FAILURE
from sgcli.output import debug, error, info, print_data, success, warning

MAX_LOGIN_ATTEMPTS = 5
_STATUS_OK = "1"


def _login(client: SteamApiClient, username: str, password: str) -> None:
    """Log in, prompting for whatever challenge Steam asks for.

    Returns once ``client.session`` is set.

    Raises:
        typer.Exit: If Steam rejects the login or it needs too many retries.
    """
    client.update_session()
    twofactor_code = email_code = captcha_gid = captcha_text = ""

    for attempt in range(1, MAX_LOGIN_ATTEMPTS + 1):
        debug(f"Login attempt {attempt}")
        rsa_key = client.get_rsa_key(username)
        resp = client.login(
            username,
            encrypt_password(rsa_key, password),
            twofactor_code=twofactor_code,
            email_code=email_code,
            captcha_gid=captcha_gid,
            captcha_text=captcha_text,
            rsa_timestamp=rsa_key.timestamp,
        )

        if resp.oauth is not None:
            return
        if resp.needs_transfer_login():
            client.transfer_login(resp)
            return

        if resp.captcha_needed:
            captcha_gid = resp.captcha_gid
            info(f"Captcha: {client.urls.community}/login/rendercaptcha/?gid={captcha_gid}")
            captcha_text = typer.prompt("Captcha text")
        elif resp.requires_twofactor:
            twofactor_code = typer.prompt("Steam Guard code")
        elif resp.emailauth_needed:
            email_code = typer.prompt("Email code")
        else:
            error(f"Login failed: {resp.message or 'no reason given'}")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    error(f"Login did not complete after {MAX_LOGIN_ATTEMPTS} attempts.")
    raise typer.Exit(code=EXIT_GENERIC_FAILURE)


def _ensure_phone(client: SteamApiClient) -> None:
    """Attach a phone number if the account has none."""
    if client.has_phone():
        debug("Account already has a phone number")
        return

    warning("This account has no phone number attached.")
    number = typer.prompt("Phone number (with country code, e.g. +1 5551234567)")
    if not client.add_phone_number(number):
        error("Steam did not accept the phone number.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    info("Steam sent a confirmation email.")
    while not client.check_email_confirmation():
        if not typer.confirm("Confirm the email, then continue. Try again?", default=True):
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    sms_code = typer.prompt("SMS code")
    if not client.check_sms_code(sms_code):
        error("The SMS code was not accepted.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)


def setup_command(
    ctx: typer.Context,
    username: str = typer.Argument(help="Steam account name to enroll."),
) -> None:
    """Log in and link a new authenticator to a Steam account.

    Example::

        sgcli setup myaccount
    """
    manager = open_manager(ctx)
    manager.load()

    password = typer.prompt("Password", hide_input=True)

    with SteamApiClient() as client:
        _login(client, username, password)
        session = client.session
        if session is None:
            raise MissingSessionError("setup")
        success(f"Logged in as {username}")

        _ensure_phone(client)

        device_id = generate_device_id(session.steam_id)
        resp = client.add_authenticator(device_id)

    status = resp.response.status
    if status and status != _STATUS_OK:
        error(f"Steam refused to add an authenticator (status {status}).")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    account = resp.to_steam_guard_account()
    account.device_id = device_id
    account.steam_id = session.steam_id
    account.session = session
    if not account.account_name:
        account.account_name = username

    manager.add_account(account)
    manager.save()

    success(f"Authenticator secrets for {account.account_name} saved.")
    warning("Write down the revocation code. It is the only way to remove the authenticator.")
    print_data(account.revocation_code)
    info("Saved as not fully enrolled. Linking is finalized with the SMS code Steam sent.")


def server_time_command() -> None:
    """Print Steam's current server time (seconds since the epoch)."""
    print_data(str(get_server_time()))
