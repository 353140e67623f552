"""
Encryption of stored OAuth tokens and random client-link tokens
"""

import base64
import hashlib
import logging
import secrets

from cryptography.fernet import Fernet, InvalidToken

from .config import SECRET_KEY

logger = logging.getLogger(__name__)


def _derive_fernet_key(secret: str) -> bytes:
    """Fernet needs 32 url-safe base64 bytes; derive them from SECRET_KEY"""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


cipher_suite = Fernet(_derive_fernet_key(SECRET_KEY))


def encrypt_token(value: str) -> str:
    return cipher_suite.encrypt(value.encode()).decode()


def decrypt_token(value: str) -> str:
    """Decrypt a stored token; raises ValueError when the ciphertext is invalid"""
    try:
        return cipher_suite.decrypt(value.encode()).decode()
    except InvalidToken as e:
        logger.error("❌ Failed to decrypt stored token (SECRET_KEY rotated?)")
        raise ValueError("Invalid encrypted token") from e


def generate_hex_token(num_bytes: int = 32) -> str:
    """Cryptographically random token, hex encoded (64 chars for 32 bytes)"""
    return secrets.token_hex(num_bytes)
