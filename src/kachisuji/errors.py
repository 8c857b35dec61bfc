"""Domain exceptions raised by services and mapped to HTTP / CLI errors."""


class KachisujiError(Exception):
    """Base class for all application errors."""


class NotFoundError(KachisujiError):
    """A requested row does not exist."""


class ValidationFailed(KachisujiError):
    """Caller input was rejected."""


class PermissionDenied(KachisujiError):
    """The row belongs to another user."""


class UnsupportedFileType(ValidationFailed):
    """An uploaded document has an extension we cannot parse."""


class UpstreamError(KachisujiError):
    """The LLM provider failed or returned something unusable."""
