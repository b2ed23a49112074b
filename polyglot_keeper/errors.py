"""Error definitions for the polyglot-keeper synchronizer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


RATE_LIMIT_MARKER = "429"


class ErrorCategory(Enum):
    """Categorises handled errors for the end-of-run report."""

    FORMAT = auto()
    TRANSLATION = auto()
    RATE_LIMIT = auto()


class PolyglotError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(PolyglotError):
    """Raised when the project configuration is missing or invalid."""


class SourceNotFoundError(PolyglotError):
    """Raised when the primary locale file or content directory is absent."""


class LockFileError(PolyglotError):
    """Raised when the lock file exists but cannot be read."""


class LocaleFileError(PolyglotError):
    """Raised when a locale or markdown file cannot be decoded or parsed."""


class AbortRequested(PolyglotError):
    """Raised when the user elects to abort processing."""


class TranslationProviderConfigurationError(PolyglotError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(PolyglotError):
    """Raised when the translation provider fails or answers with garbage."""


class RateLimitError(TranslationProviderError):
    """Raised when the translation provider signals HTTP 429."""


class ResponseFormatError(TranslationProviderError):
    """Raised when the provider answer is not the JSON object that was asked for."""


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return True when the failure should be retried after the rate-limit delay."""

    if isinstance(exc, RateLimitError):
        return True
    return RATE_LIMIT_MARKER in str(exc)


def error_category(exc: BaseException) -> ErrorCategory:
    """Classify a failure caught while talking to the provider."""

    if is_rate_limit_error(exc):
        return ErrorCategory.RATE_LIMIT
    if isinstance(exc, ResponseFormatError):
        return ErrorCategory.FORMAT
    return ErrorCategory.TRANSLATION


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    locale: Optional[str] = None
    details: Optional[str] = None
