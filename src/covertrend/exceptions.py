"""covertrend exception hierarchy.

All exceptions follow a three-part message pattern: what failed,
likely cause, and suggested fix.
"""

from __future__ import annotations


class CovertrendError(Exception):
    """Base exception for all covertrend errors.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.

    Example:
        >>> raise CovertrendError(
        ...     what="Analysis failed",
        ...     cause="Unexpected internal state",
        ...     fix="Please report this issue",
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
    ) -> None:
        self.what = what
        self.cause = cause
        self.fix = fix
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the multi-line error message from parts."""
        parts = [self.what]
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        if self.fix:
            parts.append(f"Fix: {self.fix}")
        return "\n".join(parts)


class ConfigurationError(CovertrendError):
    """Raised for invalid configuration, coordinates or category sets.

    Example:
        >>> raise ConfigurationError(
        ...     what="Invalid buffer radius: -5",
        ...     cause="Radius must be greater than 0",
        ...     fix="Provide a positive radius in metres",
        ... )
    """


class SourceUnavailableError(CovertrendError):
    """Raised when a land cover or climate source cannot be read.

    Never retried: a partially re-read series would silently mix
    results from different attempts.

    Example:
        >>> raise SourceUnavailableError(
        ...     what="Cannot read land cover raster",
        ...     cause="HTTP 503 from remote COG",
        ...     fix="Check the source URL and try the selection again",
        ... )
    """


class AnalysisCancelledError(CovertrendError):
    """Raised inside an analysis that was superseded by a newer selection."""
