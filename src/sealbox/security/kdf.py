"""Argon2id password hashing and the caller-held password token.

The server hashes a share password once, at creation time, and wraps the
encoded hash in a signed token (``{"h": <hash>}``) that goes back to the
creator. Nothing derived from the password is persisted; verification needs
the caller to present the token again together with the plaintext password.
"""

from enum import Enum
from typing import Optional, Union

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from .crypto import sign_token, verify_token


DEFAULT_TIME_COST = 3
DEFAULT_MEMORY_COST = 65536
DEFAULT_PARALLELISM = 1


class TokenCheck(Enum):
    OK = "ok"
    INVALID_TOKEN = "invalid_token"
    WRONG_PASSWORD = "wrong_password"


def make_hasher(
    time_cost: int = DEFAULT_TIME_COST,
    memory_cost: int = DEFAULT_MEMORY_COST,
    parallelism: int = DEFAULT_PARALLELISM,
) -> PasswordHasher:
    """Return an Argon2id hasher with the given cost parameters."""
    return PasswordHasher(
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
    )


_default_hasher = make_hasher()


def hash_password(password: Union[str, bytes], hasher: Optional[PasswordHasher] = None) -> str:
    """Return the encoded Argon2id hash (``$argon2id$...``) of ``password``."""
    return (hasher or _default_hasher).hash(password)


def verify_password(
    encoded_hash: str, password: Union[str, bytes], hasher: Optional[PasswordHasher] = None
) -> bool:
    try:
        return (hasher or _default_hasher).verify(encoded_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def issue_password_token(
    password: Union[str, bytes], secret: Union[str, bytes], hasher: Optional[PasswordHasher] = None
) -> str:
    return sign_token({"h": hash_password(password, hasher)}, secret)


def check_password_token(
    token: str,
    password: Union[str, bytes],
    secret: Union[str, bytes],
    hasher: Optional[PasswordHasher] = None,
) -> TokenCheck:
    """
    Verify a password against a previously issued token.

    The signature is checked before the (slow) password comparison, so a
    forged token never reaches Argon2.
    """
    payload = verify_token(token, secret)
    if payload is None or not isinstance(payload.get("h"), str):
        return TokenCheck.INVALID_TOKEN
    if not verify_password(payload["h"], password, hasher):
        return TokenCheck.WRONG_PASSWORD
    return TokenCheck.OK
