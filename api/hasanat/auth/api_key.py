"""API key generation and hashing utilities.

Keys are high-entropy random strings, so a keyed HMAC-SHA256 is enough to
store them; a slow password hash would only add latency to every request.
"""

import hashlib
import hmac
import secrets

from hasanat.config import settings

API_KEY_PREFIX = "hs_live_"


def generate_api_key() -> tuple[str, str]:
    """
    Generate API key and its hash.

    Returns:
        Tuple of (plaintext_key, key_hash).
        The plaintext key should only be shown once to the user.
    """
    plaintext_key = f"{API_KEY_PREFIX}{secrets.token_hex(32)}"
    return plaintext_key, hash_api_key(plaintext_key)


def hash_api_key(key: str) -> str:
    """Hash API key using HMAC-SHA256 with server secret."""
    return hmac.new(
        settings.api_key_secret.encode(),
        key.encode(),
        hashlib.sha256,
    ).hexdigest()


def get_key_prefix(key: str) -> str:
    """First 12 chars of a key, stored for identification in listings."""
    return key[:12]
