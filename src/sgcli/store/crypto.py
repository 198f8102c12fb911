"""Account file encryption compatible with Steam Desktop Authenticator.

Scheme: PBKDF2-HMAC-SHA1 (50 000 iterations, 8-byte salt) derives a 256-bit
key; the account JSON is encrypted with AES-256-CBC and PKCS7 padding, and
the file body is the base64 ciphertext. Salt and IV are stored per entry in
the manifest as :class:`~sgcli.models.EncryptionParams`.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sgcli.exceptions import DecryptionError
from sgcli.models import EncryptionParams, EncryptionScheme

PBKDF2_ITERATIONS = 50000
KEY_SIZE = 32
IV_SIZE = 16
SALT_SIZE = 8


def derive_key(passkey: str, salt_b64: str) -> bytes:
    """Derive the AES key for *passkey* and a base64-encoded salt."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA1(),
        length=KEY_SIZE,
        salt=base64.b64decode(salt_b64),
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(passkey.encode("utf-8"))


def decrypt(passkey: str, params: EncryptionParams, ciphertext_b64: str) -> str:
    """Decrypt an account file body.

    Raises:
        DecryptionError: If the data is not valid base64, the padding is
            wrong (almost always a wrong passkey), or the plaintext is not
            UTF-8.
    """
    if params.scheme != EncryptionScheme.LEGACY_SDA_COMPATIBLE:
        raise DecryptionError(f"Unsupported encryption scheme: {params.scheme}")
    try:
        key = derive_key(passkey, params.salt)
        iv = base64.b64decode(params.iv)
        ciphertext = base64.b64decode(ciphertext_b64.strip())

        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(128).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except (ValueError, binascii.Error, UnicodeDecodeError) as exc:
        raise DecryptionError(f"Decryption failed, the passkey is probably wrong: {exc}") from exc


def encrypt(passkey: str, params: EncryptionParams, plaintext: str) -> str:
    """Encrypt *plaintext* and return the base64 file body."""
    key = derive_key(passkey, params.salt)
    iv = base64.b64decode(params.iv)

    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(ciphertext).decode("ascii")


def generate_params() -> EncryptionParams:
    """Fresh random salt and IV. A new pair is used every time a file is written."""
    return EncryptionParams(
        iv=base64.b64encode(os.urandom(IV_SIZE)).decode("ascii"),
        salt=base64.b64encode(os.urandom(SALT_SIZE)).decode("ascii"),
    )
