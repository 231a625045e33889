"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .settings import AnalyticsSettings


@dataclass
class AppState:
    """Container for application-wide settings and logger.

    Passed through the pipeline to avoid global state and enable testing.
    """

    settings: AnalyticsSettings
    logger: logging.Logger
