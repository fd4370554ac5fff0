"""Envelope primitives: AES-256-GCM content encryption, key fingerprints and signed tokens.

Layout of the values handed to the rest of the system:

- key: 32 random bytes, exchanged as unpadded base64url (``encode_key``)
- iv: 12-byte GCM nonce, base64url
- auth_tag: 16-byte GCM tag, base64url (split off the AESGCM output so the
  ciphertext column holds ciphertext only)
- key fingerprint: first 16 bytes of SHA-256 over the *encoded* key, base64url
- signed token: ``base64url(json) + "." + base64url(hmac_sha256)``

Nothing in this module touches the database or the filesystem.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import os
from typing import Any, Dict, NamedTuple, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
FINGERPRINT_SIZE = 16


class AuthenticationFailed(Exception):
    # raised when the GCM tag does not verify (wrong key, tampered data, bad iv/tag pair)
    pass


class EncryptedPayload(NamedTuple):
    ciphertext: bytes
    iv: str
    auth_tag: str


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    if isinstance(data, bytes):
        data = data.decode("ascii")
    padding = "=" * (-len(data) % 4)
    return base64.b64decode(data + padding, altchars=b"-_", validate=True)


def generate_key() -> bytes:
    return os.urandom(KEY_SIZE)


def encode_key(key: bytes) -> str:
    return b64url_encode(key)


def decode_key(encoded: str) -> bytes:
    """Decode a base64url key; raise ``ValueError`` unless it yields exactly 32 bytes."""
    if not isinstance(encoded, str):
        raise ValueError("Key must be a base64url string")
    try:
        key = b64url_decode(encoded)
    except (binascii.Error, ValueError, UnicodeError) as e:
        raise ValueError(f"Malformed key encoding: {e}")
    if len(key) != KEY_SIZE:
        raise ValueError("Key must decode to 32 bytes")
    return key


def encrypt(plaintext: Union[bytes, str], key: bytes) -> EncryptedPayload:
    """
    Encrypt ``plaintext`` under ``key`` with AES-256-GCM.

    A fresh random 96-bit nonce is drawn for every call. ``str`` input is
    encoded as UTF-8.
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    nonce = os.urandom(NONCE_SIZE)
    sealed = AESGCM(key).encrypt(nonce, plaintext, None)
    ct, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return EncryptedPayload(ciphertext=ct, iv=b64url_encode(nonce), auth_tag=b64url_encode(tag))


def decrypt(ciphertext: bytes, key: bytes, iv: str, auth_tag: str) -> bytes:
    """Reverse :func:`encrypt`; raise :class:`AuthenticationFailed` if anything does not verify."""
    try:
        nonce = b64url_decode(iv)
        tag = b64url_decode(auth_tag)
    except (binascii.Error, ValueError) as e:
        raise AuthenticationFailed(f"malformed iv or tag: {e}")
    if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
        raise AuthenticationFailed("iv or tag has the wrong length")
    try:
        aead = AESGCM(key)
    except ValueError as e:
        raise AuthenticationFailed(f"unusable key: {e}")
    try:
        return aead.decrypt(nonce, bytes(ciphertext) + tag, None)
    except InvalidTag:
        raise AuthenticationFailed("authentication tag mismatch")


def key_fingerprint(key: Union[bytes, str]) -> str:
    """
    One-way 128-bit fingerprint of a key.

    The digest is taken over the canonical base64url form so that a raw key
    and its encoded string produce the same fingerprint.
    """
    encoded = key if isinstance(key, str) else encode_key(key)
    digest = hashlib.sha256(encoded.encode("ascii")).digest()
    return b64url_encode(digest[:FINGERPRINT_SIZE])


def fingerprints_match(presented: str, stored: str) -> bool:
    return hmac.compare_digest(presented.encode("ascii"), stored.encode("ascii"))


def _secret_bytes(secret: Union[bytes, str]) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else secret


def _sign(encoded: str, secret: Union[bytes, str]) -> str:
    mac = hmac.new(_secret_bytes(secret), encoded.encode("ascii"), hashlib.sha256).digest()
    return b64url_encode(mac)


def sign_token(payload: Dict[str, Any], secret: Union[bytes, str]) -> str:
    encoded = b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    return f"{encoded}.{_sign(encoded, secret)}"


def verify_token(token: str, secret: Union[bytes, str]) -> Optional[Dict[str, Any]]:
    """
    Return the payload of a token produced by :func:`sign_token`, or ``None``.

    Every failure mode (missing separator, non-ASCII input, signature mismatch,
    undecodable JSON, non-object payload) collapses to ``None``.
    """
    if not isinstance(token, str) or "." not in token:
        return None
    encoded, _, signature = token.partition(".")
    try:
        expected = _sign(encoded, secret).encode("ascii")
        presented = signature.encode("ascii")
    except UnicodeError:
        return None
    if not hmac.compare_digest(presented, expected):
        return None
    try:
        payload = json.loads(b64url_decode(encoded).decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeError):
        return None
    return payload if isinstance(payload, dict) else None
