# galerago/references.py
import secrets
import string
import time

REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
TIMESTAMP_DIGITS = 6
RANDOM_CHARS = 4


def generate_reference(prefix: str, now_ms: int = None) -> str:
    """
    Build a shareable code: prefix, last six digits of the epoch-millisecond
    clock, then four random base-36 characters.

    Two codes built within the same millisecond differ by the random suffix.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    timestamp = str(now_ms)[-TIMESTAMP_DIGITS:].zfill(TIMESTAMP_DIGITS)
    random_part = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(RANDOM_CHARS))
    return f"{prefix}{timestamp}{random_part}"


def generate_unique_reference(prefix: str, exists, attempts: int = 5) -> str:
    """Retry until `exists(reference)` reports the code is unused."""
    reference = generate_reference(prefix)
    for _ in range(attempts - 1):
        if not exists(reference):
            return reference
        reference = generate_reference(prefix)
    return reference
