"""Version-aware password hashing.

A password written to a CMS users table must be in a format that
installation's own login code can verify. Two eras exist:

- major version < ``ADAPTIVE_HASH_MIN_MAJOR``: salted MD5 stored as
  ``digest:salt`` (Joomla 1.x/2.5)
- major version >= ``ADAPTIVE_HASH_MIN_MAJOR``: bcrypt with work factor
  ``BCRYPT_ROUNDS``, stored with the ``$2y$`` prefix PHP's
  ``password_verify`` expects

An unknown version is treated as the oldest era: a legacy digest can
still be upgraded by the CMS on next login, while a bcrypt hash given to a
legacy verifier locks the user out.

Usage:
    from cmsum.credentials import hash_password

    result = hash_password("s3cret", version)
    result.algorithm, result.encoded
"""

import hashlib
import hmac
import logging
import secrets
import string
from enum import Enum

import bcrypt
from pydantic import BaseModel, ConfigDict, Field

from cmsum.version.models import VersionDescriptor

logger = logging.getLogger(__name__)

ADAPTIVE_HASH_MIN_MAJOR = 3
BCRYPT_ROUNDS = 10
LEGACY_SALT_LENGTH = 32

_SALT_ALPHABET = string.ascii_letters + string.digits


class HashAlgorithm(str, Enum):
    LEGACY_SALTED_DIGEST = "legacy-salted-digest"
    ADAPTIVE_SALTED_HASH = "adaptive-salted-hash"


class HashResult(BaseModel):
    """An encoded password ready to be written to the users table."""

    model_config = ConfigDict(frozen=True)

    algorithm: HashAlgorithm
    encoded: str = Field(repr=False)


def select_algorithm(major: int | None) -> HashAlgorithm:
    """Pick the hashing era for a major version (None means unknown)."""
    if major is None or major < ADAPTIVE_HASH_MIN_MAJOR:
        return HashAlgorithm.LEGACY_SALTED_DIGEST
    return HashAlgorithm.ADAPTIVE_SALTED_HASH


def _legacy_hash(cleartext: str, salt: str) -> str:
    return hashlib.md5((cleartext + salt).encode("utf-8")).hexdigest()


def _bcrypt_hash(cleartext: str) -> str:
    hashed = bcrypt.hashpw(cleartext.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    # PHP writes and prefers $2y$; the algorithm is identical to $2b$
    return "$2y$" + hashed.decode("ascii")[4:]


def hash_password(
    cleartext: str,
    version: VersionDescriptor | int | None,
) -> HashResult:
    """Hash a password for the given installation version.

    Args:
        cleartext: The new password.
        version: Resolved version, a bare major version number, or None
            when the version could not be resolved.

    Returns:
        HashResult tagged with the algorithm used.

    Raises:
        ValueError: If bcrypt is selected and the password exceeds its
            72-byte input limit.
    """
    major = version.major if isinstance(version, VersionDescriptor) else version
    algorithm = select_algorithm(major)
    if major is None:
        logger.warning("CMS version unknown; using legacy password hashing")

    if algorithm is HashAlgorithm.ADAPTIVE_SALTED_HASH:
        if len(cleartext.encode("utf-8")) > 72:
            raise ValueError("Password too long for bcrypt (72 bytes maximum)")
        encoded = _bcrypt_hash(cleartext)
    else:
        salt = "".join(secrets.choice(_SALT_ALPHABET) for _ in range(LEGACY_SALT_LENGTH))
        encoded = f"{_legacy_hash(cleartext, salt)}:{salt}"

    logger.debug("Hashed password with %s (major=%s)", algorithm.value, major)
    return HashResult(algorithm=algorithm, encoded=encoded)


def verify_password(cleartext: str, encoded: str) -> bool:
    """Check a password against either stored format.

    Examples:
        >>> verify_password("secret", hash_password("secret", 4).encoded)
        True
    """
    if encoded.startswith("$2"):
        if encoded.startswith("$2y$"):
            encoded = "$2b$" + encoded[4:]
        return bcrypt.checkpw(cleartext.encode("utf-8"), encoded.encode("ascii"))

    digest, sep, salt = encoded.partition(":")
    if not sep:
        # Unsalted MD5, as written by the oldest releases
        return hmac.compare_digest(digest, hashlib.md5(cleartext.encode("utf-8")).hexdigest())
    return hmac.compare_digest(digest, _legacy_hash(cleartext, salt))
