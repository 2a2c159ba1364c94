"""Dialog core: conversation cache + response orchestration for desktop pets."""

__version__ = "0.1.0"
