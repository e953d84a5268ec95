"""Data models for harness runs and reports."""

from .run import (
    BrowserEngineType,
    BrowserSettings,
    Report,
    RunConfig,
    SettleReason,
    Viewport,
)

__all__ = [
    "BrowserEngineType",
    "BrowserSettings",
    "Report",
    "RunConfig",
    "SettleReason",
    "Viewport",
]
