"""Text generator abstraction layer exports."""

from .generator import TextGenerator, GeneratorInfo  # noqa: F401
from .exceptions import (  # noqa: F401
    GeneratorError,
    GeneratorNotInitialized,
    GeneratorTimeout,
)
from .keyword_generator import KeywordGenerator  # noqa: F401

__all__ = [
    "TextGenerator",
    "GeneratorInfo",
    "GeneratorError",
    "GeneratorNotInitialized",
    "GeneratorTimeout",
    "KeywordGenerator",
]
