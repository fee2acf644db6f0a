"""
Error taxonomy shared by the store, engine, lookup and HTTP layers.

Unknown keys and exhausted quotas are admission outcomes rather than
exceptions; the engine reports them through ``RejectReason``.
"""


class GeogateError(Exception):
    """Base class for all geogate errors."""

    pass


class UnauthenticatedError(GeogateError):
    """Raised when a request carries no API key."""

    def __init__(self, message: str = "API key required") -> None:
        super().__init__(message)


class CredentialNotFoundError(GeogateError):
    """Raised when no credential exists for a key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__("API key not found")


class DuplicateNameError(GeogateError):
    """Raised when a credential name is already taken."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Name '{name}' already exists")


class DuplicateKeyError(GeogateError):
    """Raised when a generated key collides with an existing one."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__("API key already exists")


class InvalidValueError(GeogateError):
    """Raised when a provisioning value fails validation."""

    pass


class StorageError(GeogateError):
    """Raised when the credential store cannot read or persist."""

    pass


class UpstreamError(GeogateError):
    """Raised when the downstream lookup fails."""

    pass


class MalformedInputError(GeogateError):
    """Raised when a request parameter cannot be parsed."""

    pass


class OriginUnavailableError(GeogateError):
    """Raised when the caller's own address cannot be determined."""

    def __init__(self, message: str = "Could not determine client IP address") -> None:
        super().__init__(message)
