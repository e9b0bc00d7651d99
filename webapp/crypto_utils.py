from __future__ import annotations

import base64
import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.fernet import Fernet


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=200_000,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode()))


def seal_private_key(passphrase: str, privkey_hex: str) -> str:
    """Encrypt a hex private key with a passphrase; returns urlsafe base64 of salt || token."""
    salt = os.urandom(16)
    token = Fernet(_derive_key(passphrase, salt)).encrypt(bytes.fromhex(privkey_hex))
    return base64.urlsafe_b64encode(salt + token).decode()


def open_private_key(passphrase: str, sealed: str) -> str:
    data = base64.urlsafe_b64decode(sealed)
    salt, token = data[:16], data[16:]
    return Fernet(_derive_key(passphrase, salt)).decrypt(token).hex()
