"""Rate limiting middleware using slowapi."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from hasanat.auth.api_key import hash_api_key


def api_key_or_address(request: Request) -> str:
    """
    Rate limit bucket for a request: the caller's API key, else its address.

    Keys are bucketed by their hash so plaintext keys never sit in limiter storage.
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"key:{hash_api_key(api_key)}"
    return get_remote_address(request)


# Note: headers_enabled requires a Response parameter on all rate-limited
# endpoints, so rate limit headers are not emitted.
limiter = Limiter(key_func=api_key_or_address)


def reset_limiter() -> None:
    """Reset the limiter storage. Used in tests to clear rate limit state."""
    limiter.reset()
