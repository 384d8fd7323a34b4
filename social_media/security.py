"""Password storage and comparison.

Passwords are kept as plain text. These two functions are the only
places that know that, so salted hashing can replace them without
touching the stores or services.
"""

import hmac


def encode_password(raw: str) -> str:
    """Return the form of ``raw`` that is written to the account table."""
    return raw


def verify_password(raw: str, stored: str) -> bool:
    return hmac.compare_digest(
        encode_password(raw).encode("utf-8", "surrogatepass"),
        stored.encode("utf-8", "surrogatepass"),
    )
