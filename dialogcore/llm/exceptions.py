"""Text generator exception hierarchy."""


class GeneratorError(Exception):
    """Base text generator exception."""


class GeneratorNotInitialized(GeneratorError):
    """Raised when predict is called before initialize() succeeded."""


class GeneratorTimeout(GeneratorError, TimeoutError):
    """Raised when a prediction exceeds its deadline."""
