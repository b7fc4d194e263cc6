"""
Encryption and masking utilities.

- AES-256-GCM encryption of text values (message bodies)
- Per-chat key generation and wrapping under the server master secret
- Masking helpers for identifiers that end up in logs
"""

from base64 import urlsafe_b64decode, urlsafe_b64encode
from secrets import token_bytes

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


# =======================================
# Cryptographic Utilities
# =======================================
class CryptoUtils:
    """
    Utility class for data encryption and decryption and key management.
    """

    _NONCE_LENGTH = 12  # AES-GCM recommended nonce size

    @staticmethod
    def _normalize_key(key: bytes | str | None) -> bytes:
        """
        Accept raw 32-byte keys or their URL-safe base64 encoding and return raw bytes.
        """
        if key is None:
            raise ValueError("Encryption key must be provided")

        if isinstance(key, bytes):
            key_bytes_candidate = key
        else:
            key_bytes_candidate = key.encode("utf-8")

        # Accept already-raw 32 byte keys
        if len(key_bytes_candidate) == 32:
            return key_bytes_candidate

        # Accept URL-safe base64-encoded keys
        try:
            decoded = urlsafe_b64decode(key_bytes_candidate)
        except ValueError:
            decoded = None

        if decoded and len(decoded) == 32:
            return decoded

        raise ValueError(
            "Encryption key must be 32 bytes (AES-256) or its URL-safe base64 encoding"
        )

    @staticmethod
    def encrypt(value: str, key: bytes | str | None = None) -> str:
        """
        Encrypts a value using AES-256-GCM.

        Args:
            value: Plain text value to encrypt
            key: 32-byte AES key (raw bytes or URL-safe base64 encoded)

        Returns:
            URL-safe base64 encoded ciphertext containing nonce + ciphertext + tag
        """
        if value is None:
            raise ValueError("Cannot encrypt an empty value")
        key_bytes = CryptoUtils._normalize_key(key)
        aesgcm = AESGCM(key_bytes)
        nonce = token_bytes(CryptoUtils._NONCE_LENGTH)
        ciphertext = aesgcm.encrypt(nonce, value.encode("utf-8"), None)
        return urlsafe_b64encode(nonce + ciphertext).decode("utf-8")

    @staticmethod
    def decrypt(token: str, key: bytes | str | None = None) -> str:
        """
        Decrypts an AES-256-GCM encrypted value.

        Args:
            token: URL-safe base64 string containing nonce + ciphertext + tag
            key: 32-byte AES key (raw bytes or URL-safe base64 encoded)

        Returns:
            Decrypted plaintext string

        Raises:
            ValueError: wrong key, tampered payload or malformed token
        """
        key_bytes = CryptoUtils._normalize_key(key)
        try:
            raw = urlsafe_b64decode(token.encode("utf-8"))
            if len(raw) <= CryptoUtils._NONCE_LENGTH:
                raise ValueError("Invalid encrypted payload")
            nonce = raw[: CryptoUtils._NONCE_LENGTH]
            ciphertext = raw[CryptoUtils._NONCE_LENGTH :]
            decrypted = AESGCM(key_bytes).decrypt(nonce, ciphertext, None)
            return decrypted.decode("utf-8")
        except (InvalidTag, ValueError, TypeError) as e:
            raise ValueError("Invalid or corrupted encrypted value") from e

    @staticmethod
    def generate_key() -> bytes:
        """
        Generates a new AES-256-GCM key.

        Returns:
            bytes: The URL-safe base64 encoded key.
        """
        key = AESGCM.generate_key(bit_length=256)
        return urlsafe_b64encode(key)


class ChatCipher:
    """
    Envelope encryption for chats.

    Each chat gets its own random key. That key is only ever persisted
    encrypted under the server master secret (``wrap_key``), and message
    bodies are only ever persisted encrypted under the chat key.
    """

    def __init__(self, master_secret: bytes | str):
        # Fail at construction rather than on first message
        self._master_key = CryptoUtils._normalize_key(master_secret)

    def new_wrapped_key(self) -> str:
        """Generate a fresh chat key and return it wrapped."""
        return self.wrap_key(CryptoUtils.generate_key())

    def wrap_key(self, chat_key: bytes) -> str:
        return CryptoUtils.encrypt(chat_key.decode("utf-8"), self._master_key)

    def unwrap_key(self, wrapped_key: str) -> bytes:
        return CryptoUtils.decrypt(wrapped_key, self._master_key).encode("utf-8")

    def encrypt_message(self, wrapped_key: str, plaintext: str) -> str:
        return CryptoUtils.encrypt(plaintext, self.unwrap_key(wrapped_key))

    def decryptor(self, wrapped_key: str):
        """Unwrap the chat key once and return a function decrypting many bodies."""
        chat_key = self.unwrap_key(wrapped_key)

        def _decrypt(ciphertext: str) -> str:
            return CryptoUtils.decrypt(ciphertext, chat_key)

        return _decrypt


# =======================================
# Data Masking Utilities
# =======================================


def mask_sensitive_data(value: str, visible_chars: int = 4) -> str:
    """
    Masks sensitive data by showing only the last `visible_chars` characters.

    Args:
        value (str): The sensitive data to mask.
        visible_chars (int): Number of characters to leave visible at the end.

    Returns:
        str: The masked data.
    """
    if not value or len(value) <= visible_chars:
        return "*" * len(value or "")
    return "*" * (len(value) - visible_chars) + value[-visible_chars:]


def mask_email(email: str) -> str:
    """
    Masks an email address by showing only the first character of the local part
    and the domain.

    Args:
        email (str): The email address to mask.

    Returns:
        str: The masked email address.
    """
    local_part, sep, domain = (email or "").partition("@")
    if not sep:
        return mask_sensitive_data(email)
    if len(local_part) <= 1:
        masked_local = "*"
    else:
        masked_local = local_part[0] + "*" * (len(local_part) - 1)
    return f"{masked_local}@{domain}"
