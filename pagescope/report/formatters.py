"""Renderers turning a report snapshot into the run's visible output.

Supported formats: plain (human readable), json, csv and yaml.
"""

import csv
import io
import json
from typing import Any, Callable, Dict, List

import yaml

from ..models.run import Report


class ReportFormatter:
    """Formats a report into the configured output format."""

    def __init__(self, format_type: str = "plain"):
        self.format_type = format_type.lower()
        if self.format_type not in _RENDERERS:
            raise ValueError(f"Unknown output format: {format_type}")

    def render(self, report: Report) -> str:
        return _RENDERERS[self.format_type](report)


def _format_plain(report: Report) -> str:
    lines = [f"pagescope metrics for <{report.url}>:", ""]

    for name, value in report.metrics.items():
        lines.append(f"* {name}: {_scalar(value)}")

    if report.notices:
        lines.append("")
        lines.extend(f"> {notice}" for notice in report.notices)

    if report.timed_out:
        lines.append("")
        lines.append("! timeout reached before the page settled, results may be partial")

    return "\n".join(lines)


def _format_json(report: Report) -> str:
    return json.dumps(_results(report), default=str)


def _format_yaml(report: Report) -> str:
    return yaml.safe_dump(
        json.loads(_format_json(report)),
        default_flow_style=False,
        sort_keys=False,
    )


def _format_csv(report: Report) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(list(report.metrics.keys()))
    writer.writerow([_scalar(value) for value in report.metrics.values()])
    return buffer.getvalue().rstrip("\n")


def _results(report: Report) -> Dict[str, Any]:
    data = report.to_results()
    data["settledBy"] = report.settled_by.value
    return data


def _scalar(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    if value is None:
        return ""
    return str(value)


_RENDERERS: Dict[str, Callable[[Report], str]] = {
    "plain": _format_plain,
    "json": _format_json,
    "csv": _format_csv,
    "yaml": _format_yaml,
}


def available_formats() -> List[str]:
    """Names of the registered output formats."""
    return list(_RENDERERS)


def render(report: Report, format_type: str = "plain") -> str:
    """Render ``report`` in ``format_type``."""
    return ReportFormatter(format_type).render(report)
