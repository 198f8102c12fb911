"""HTTP client for Steam's mobile login and authenticator endpoints."""

from sgcli.client.steamapi import (
    SteamApiClient,
    encrypt_password,
    generate_device_id,
    get_server_time,
)

__all__ = ["SteamApiClient", "encrypt_password", "generate_device_id", "get_server_time"]
