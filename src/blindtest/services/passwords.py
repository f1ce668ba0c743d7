"""Password hashing with bcrypt.

bcrypt is CPU bound, so both operations run in a worker thread to keep the
event loop responsive.
"""

import asyncio
import base64
import hashlib
import logging

import bcrypt

logger = logging.getLogger(__name__)


def _encode(plain: str) -> bytes:
    # bcrypt ignores input past 72 bytes, so the whole password is digested
    # first. The base64 sha256 digest is 44 bytes with no NULs.
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


def _hash(plain: str) -> str:
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt()).decode("utf-8")


def _verify(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


# Checked against when the account does not exist, so response time does not
# reveal whether an email is registered.
_DUMMY_HASH = _hash("blindtest-timing-dummy")


async def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of ``plain``."""
    return await asyncio.to_thread(_hash, plain)


async def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if ``plain`` matches ``hashed``.

    A missing hash is compared against a dummy hash and always fails.
    """
    if hashed is None:
        await asyncio.to_thread(_verify, plain, _DUMMY_HASH)
        return False
    return await asyncio.to_thread(_verify, plain, hashed)
