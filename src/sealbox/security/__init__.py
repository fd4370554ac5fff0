"""Security helpers: envelope encryption, signed tokens and password hashing for SealBox.

This package provides:
- AES-256-GCM content encryption with a fresh nonce per call
- truncated SHA-256 key fingerprints for proof of key possession
- HMAC-SHA256 signed opaque tokens
- Argon2id password hashing wrapped in caller-held tokens
- optional OS keystore storage for the signing secret
"""

from .crypto import (
    AuthenticationFailed,
    EncryptedPayload,
    generate_key,
    encode_key,
    decode_key,
    encrypt,
    decrypt,
    key_fingerprint,
    fingerprints_match,
    sign_token,
    verify_token,
)
from .kdf import (
    TokenCheck,
    make_hasher,
    hash_password,
    verify_password,
    issue_password_token,
    check_password_token,
)

__all__ = [
    "AuthenticationFailed",
    "EncryptedPayload",
    "generate_key",
    "encode_key",
    "decode_key",
    "encrypt",
    "decrypt",
    "key_fingerprint",
    "fingerprints_match",
    "sign_token",
    "verify_token",
    "TokenCheck",
    "make_hasher",
    "hash_password",
    "verify_password",
    "issue_password_token",
    "check_password_token",
]
