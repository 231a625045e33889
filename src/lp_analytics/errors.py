"""Error taxonomy shared by the extractor, the calculator and the CLI."""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base class for errors raised by lp-analytics."""


class PositionNotFoundError(AnalyticsError):
    """Raised when a position (or its pool) does not exist on chain."""

    def __init__(self, position_id: str, detail: str | None = None):
        self.position_id = position_id
        message = f"Position not found: {position_id}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MissingParameterError(AnalyticsError, ValueError):
    """Raised when a required input such as the position id is absent."""

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f"Missing required parameter: {parameter}")


class UpstreamUnavailableError(AnalyticsError):
    """Raised when a data source fails while building the ledger.

    Price lookups never raise this; they degrade to zero instead.
    """

    retry_recommended = True

    def __init__(self, message: str):
        super().__init__(message)
