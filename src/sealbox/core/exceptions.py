"""
Exceptions for SealBox core module
This is placed such that there is a general error catcher

Policy errors are expected outcomes a caller can recover from; their messages
are fixed and never carry ids, keys or passwords. Faults are data-integrity
problems: the caller gets a generic message, the log gets the context.
"""


class SealBoxError(Exception):
    # general container for errors
    code = "error"
    message = "Request failed"

    def __init__(self, message=None):
        super().__init__(message or self.message)


class StorageError(SealBoxError):
    # raised if the database cannot be initialized or reached
    pass


class ConfigurationError(SealBoxError):
    # raised when required settings (e.g. the signing secret) are missing
    pass


class PolicyError(SealBoxError):
    # expected, caller-recoverable rejection
    pass


class NotFoundOrExpiredError(PolicyError):
    # id/token absent, expired or consumed; intentionally indistinguishable
    code = "not_found"
    message = "Not found or expired"


class InvalidKeyError(PolicyError):
    # fingerprint of the presented key does not match
    code = "invalid_key"
    message = "Invalid decryption key"


class PasswordRequiredError(PolicyError):
    # protected share, password or token missing
    code = "password_required"
    message = "Password required"


class InvalidPasswordError(PolicyError):
    # password or token presented but wrong
    code = "invalid_password"
    message = "Invalid password"


class AlreadyConsumedError(PolicyError):
    # lost the consumption race or view limit reached
    code = "already_consumed"
    message = "Share has already been consumed"


class FaultError(SealBoxError):
    # data-integrity fault, surfaced generically
    code = "internal_error"
    message = "Unable to open share"


class DecryptionFailedError(FaultError):
    # AEAD tag failed despite a fingerprint match
    pass


class StorageFaultError(FaultError):
    # backing blob missing or unreadable
    pass
