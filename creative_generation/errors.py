"""Exceptions raised by the creative generation pipeline."""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple


class CreativeGenerationError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(CreativeGenerationError, ValueError):
    """Raised when required configuration is missing or malformed."""


class FormatError(CreativeGenerationError, ValueError):
    """Raised for aspect ratio strings that are not in the W:H form."""


class ValidationError(CreativeGenerationError, ValueError):
    """Raised when a campaign brief is malformed. Fatal to the whole run."""

    def __init__(self, messages: Iterable[str]):
        self.messages: List[str] = list(messages)
        super().__init__(
            "Invalid campaign brief:\n" + "\n".join(f"  - {m}" for m in self.messages)
        )


class UnsupportedRatioError(CreativeGenerationError):
    """Raised when a ratio has no canonical size on a path that requires one."""

    def __init__(
        self,
        ratio: str,
        suggestion: Optional[str] = None,
        size: Optional[Tuple[int, int]] = None,
    ):
        self.ratio = ratio
        self.suggestion = suggestion
        self.size = size
        message = f"Unsupported aspect ratio: {ratio}"
        if suggestion:
            message += f", closest supported ratio is {suggestion}"
            if size:
                message += f" with size {size[0]}x{size[1]}"
        super().__init__(message)


class ExternalServiceError(CreativeGenerationError):
    """Raised for failures of the Firefly or scene planning services."""


class JobTimeoutError(ExternalServiceError):
    """Raised when polling exceeds a caller supplied wait or attempt bound."""


class DownloadError(CreativeGenerationError):
    """Raised when generated images could not be written to disk."""
