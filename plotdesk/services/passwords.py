"""Password hashing with Argon2id."""

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against when no account matches, so both login failures cost the same
_DUMMY_HASH = ph.hash("plotdesk-dummy-password")


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison.

    Raises argon2's InvalidHashError for a corrupted stored hash.
    """
    try:
        return ph.verify(password_hash, password)
    except VerifyMismatchError:
        return False


def verify_dummy_password(password: str) -> None:
    verify_password(password, _DUMMY_HASH)


def needs_rehash(password_hash: str) -> bool:
    """True when the stored hash was made with outdated parameters."""
    return ph.check_needs_rehash(password_hash)
