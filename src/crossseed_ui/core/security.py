"""
Core security functions for CrossSeed UI.

- Password hashing for the single dashboard account (Argon2id)
- Field-level encryption for credentials stored in the dashboard database
  (Fernet, key derived from SECRET_KEY with HKDF)
"""

import base64
from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from crossseed_ui.config import settings


class EncryptionError(Exception):
    """Exception raised when encryption/decryption operations fail."""

    pass


_password_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a password with Argon2id using library defaults."""
    if not password:
        raise ValueError("Password cannot be empty")
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Return True if ``password`` matches ``password_hash``."""
    try:
        return _password_hasher.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


# Used to burn the same amount of time when the username does not exist.
DUMMY_PASSWORD_HASH = _password_hasher.hash("crossseed-ui-dummy-password")


class FieldEncryption:
    """
    Fernet encryption for values stored at rest (e.g. the Prowlarr API key).

    The Fernet key is derived from SECRET_KEY with HKDF-SHA256, so rotating
    SECRET_KEY makes previously stored values unreadable.
    """

    def __init__(self, secret_key: str) -> None:
        kdf = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b"crossseed-ui-fernet-v1",
            info=b"service-credential-encryption",
        )
        key_bytes = kdf.derive(secret_key.encode())
        self._cipher = Fernet(base64.urlsafe_b64encode(key_bytes))

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a string value.

        Raises:
            EncryptionError: If encryption fails
            ValueError: If plaintext is empty
        """
        if not plaintext:
            raise ValueError("Plaintext cannot be empty")

        try:
            return self._cipher.encrypt(plaintext.encode()).decode()
        except Exception as e:
            raise EncryptionError(f"Failed to encrypt data: {e}") from e

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt an encrypted string value.

        Raises:
            EncryptionError: If decryption fails or the token was tampered with
            ValueError: If ciphertext is empty
        """
        if not ciphertext:
            raise ValueError("Ciphertext cannot be empty")

        try:
            return self._cipher.decrypt(ciphertext.encode()).decode()
        except InvalidToken as e:
            raise EncryptionError("Failed to decrypt data: Invalid token or tampered data") from e
        except Exception as e:
            raise EncryptionError(f"Failed to decrypt data: {e}") from e


@lru_cache(maxsize=4)
def _field_encryption(secret_key: str) -> FieldEncryption:
    return FieldEncryption(secret_key)


def encrypt_field(plaintext: str) -> str:
    """Encrypt a field value using the application secret."""
    return _field_encryption(settings.get_secret_key()).encrypt(plaintext)


def decrypt_field(ciphertext: str) -> str:
    """Decrypt a field value using the application secret."""
    return _field_encryption(settings.get_secret_key()).decrypt(ciphertext)


def mask_secret(value: str | None) -> str:
    """Show only the last four characters of a secret."""
    if not value:
        return ""
    if len(value) > 4:
        return "••••" + value[-4:]
    return "••••"
