"""Report rendering."""

from .formatters import ReportFormatter, available_formats, render

__all__ = ["ReportFormatter", "available_formats", "render"]
