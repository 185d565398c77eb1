from __future__ import annotations
import base64
import hashlib
from cryptography.fernet import Fernet, InvalidToken
from flask import current_app
from typing import Optional


def _get_fernet() -> Fernet:
    key = current_app.config.get("TOKEN_ENCRYPTION_KEY")
    if key:
        return Fernet(key.encode())
    # derive a key from SECRET_KEY so development setups work without extra config
    secret = str(current_app.config["SECRET_KEY"]).encode()
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(secret).digest()))


def encrypt_value(value: str) -> str:
    return _get_fernet().encrypt(value.encode()).decode()


def decrypt_value(token: str) -> Optional[str]:
    try:
        return _get_fernet().decrypt(token.encode()).decode()
    except InvalidToken:
        current_app.logger.warning("stored token could not be decrypted (key rotated?)")
        return None
