"""Exception hierarchy for Habla."""

from typing import Optional


class HablaError(Exception):
    """Base class for all Habla errors."""


class ConfigurationError(HablaError):
    """Unknown learning mode, unknown target language, or missing credentials."""


class ValidationError(HablaError):
    """A value (or persisted snapshot) that cannot be interpreted at all."""


class ProviderError(HablaError):
    """The chat-completion provider call itself failed."""


class MalformedResponseError(HablaError):
    """Model output did not parse into the expected shape."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw
