"""OS keystore integration for the server-held token signing secret.

The signing secret normally comes from ``SEALBOX_APP_SECRET``. As an opt-in
convenience an operator can persist it in the OS keystore through `keyring`
instead (``sealbox init-secret``). Do not assume keyring provides
hardware-backed security on all platforms.
"""
import secrets
from typing import Optional

try:
    import keyring
except Exception:
    keyring = None


SERVICE = "sealbox"
ACCOUNT = "app-secret"


def _require_keyring():
    if keyring is None:
        raise RuntimeError("keyring package is not available; install keyring to use keystore features")


def generate_secret() -> str:
    return secrets.token_hex(32)


def save_secret(secret: str, service: str = SERVICE, account: str = ACCOUNT) -> None:
    """Persist the signing secret under (service, account)."""
    _require_keyring()
    keyring.set_password(service, account, secret)


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because the `keyring` package exposes different backends
    across platforms. If `keyring` is not available this returns (False, reason).
    """
    if keyring is None:
        return False, "keyring package is not installed"

    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File", "Fail")
    if any(tok in name for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    if "Win" in name or "Keychain" in name or "SecretService" in name or "KWallet" in name:
        return True, f"backend looks acceptable: {name} (priority={priority})"

    return True, f"unknown backend '{name}', treat with caution (priority={priority})"


def load_secret(service: str = SERVICE, account: str = ACCOUNT) -> Optional[str]:
    """Load the signing secret; returns None when keyring is missing or nothing is stored."""
    if keyring is None:
        return None
    try:
        return keyring.get_password(service, account)
    except Exception:
        # no usable backend on this host
        return None


def delete_secret(service: str = SERVICE, account: str = ACCOUNT) -> None:
    _require_keyring()
    from keyring.errors import PasswordDeleteError

    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        # nothing stored
        pass
