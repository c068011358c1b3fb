"""Password hashing: argon2id via ``argon2-cffi``.

Produces PHC-format strings (``$argon2id$v=19$...``) safe for the
``users.password_hash`` column.

Usage::

    from storefront.security.passwords import hash_password, verify_password

    hashed = hash_password("correct horse")
    ok = verify_password("correct horse", hashed)
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash *password* with argon2id.

    Raises:
        ValueError: If *password* is empty.
    """
    if not password:
        msg = "Password must not be empty."
        raise ValueError(msg)
    return _hasher.hash(password)


def verify_password(password: str, phc_hash: str) -> bool:
    """Check *password* against a stored hash.

    Returns ``False`` for a mismatch, an empty input, or a hash that is not
    argon2 at all (e.g. a legacy row); never raises for those cases.
    """
    if not password or not phc_hash:
        return False
    try:
        return _hasher.verify(phc_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def needs_rehash(phc_hash: str) -> bool:
    """True when *phc_hash* was made with weaker parameters than today's."""
    try:
        return _hasher.check_needs_rehash(phc_hash)
    except InvalidHashError:
        return True
