"""Exception types raised by lectern."""


class LecternError(Exception):
    """Base class for every error raised by lectern."""


class ConfigurationError(LecternError):
    """Raised when models, relations or the connection are misconfigured."""


class ConnectionNotInitializedError(ConfigurationError):
    """Raised when a query runs before `Model.init()` installed a connection."""

    def __init__(self, message: str = "Database connection not initialized"):
        super().__init__(message)


class RelationNotFoundError(ConfigurationError, AttributeError):
    """Raised when a relation name cannot be resolved on a model."""

    def __init__(self, model: type, name: str):
        self.model = model
        self.name = name
        super().__init__(f"Relationship '{name}' does not exist on model {model.__name__}")


class UnsupportedRelationError(ConfigurationError):
    """Raised when a helper receives a relation kind it cannot handle."""


class ReadOnlyViolationError(LecternError, ValueError):
    """Raised when SQL would do anything but read."""


class ModelNotFoundError(LecternError, LookupError):
    """Raised by the `*_or_fail` finders when nothing matches."""
