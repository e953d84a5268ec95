"""Pydantic models describing a single harness run and its report.

This module defines the immutable run configuration handed to the
orchestrator, the viewport descriptor parser, and the report snapshot that
is produced exactly once per run.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_FORMAT = "plain"
DEFAULT_VIEWPORT = "1280x1024"
DEFAULT_TIMEOUT_SECONDS = 15


class SettleReason(str, Enum):
    """What triggered the transition into reporting."""
    REQUESTS = "requests"
    TIMEOUT = "timeout"


class BrowserEngineType(str, Enum):
    """Supported Playwright browser engines."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class Viewport(BaseModel):
    """Browser viewport dimensions in CSS pixels."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(default=1280, description="Viewport width")
    height: int = Field(default=1024, description="Viewport height")

    @classmethod
    def parse(cls, descriptor: Optional[str]) -> "Viewport":
        """Parse a ``WxH`` descriptor.

        Malformed or partially parsed dimensions fall back to the defaults
        instead of failing: ``"800x"`` keeps the default height, ``"foo"``
        keeps both defaults.
        """
        defaults = cls()
        parts = (descriptor or "").lower().split("x")
        if len(parts) != 2:
            return defaults

        return cls(
            width=_positive_int(parts[0]) or defaults.width,
            height=_positive_int(parts[1]) or defaults.height,
        )

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class BrowserSettings(BaseModel):
    """Options used when launching the browser engine."""

    model_config = ConfigDict(frozen=True)

    engine: BrowserEngineType = Field(
        default=BrowserEngineType.CHROMIUM,
        description="Browser engine to launch"
    )
    headless: bool = Field(default=True, description="Run the browser without a window")
    user_agent: Optional[str] = Field(default=None, description="User-Agent override")


class RunConfig(BaseModel):
    """Immutable configuration of one harness run."""

    model_config = ConfigDict(frozen=True)

    url: Optional[str] = Field(default=None, description="Page to load")
    format: str = Field(default=DEFAULT_FORMAT, description="Report output format")
    viewport: str = Field(default=DEFAULT_VIEWPORT, description="Viewport as WxH")
    verbose: bool = Field(default=False, description="Emit the diagnostic log")
    silent: bool = Field(default=False, description="Suppress all output")
    timeout: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        description="Hard run timeout in seconds"
    )
    modules: List[str] = Field(
        default_factory=list,
        description="Modules to activate; empty means every discovered module"
    )
    modules_dir: Optional[Path] = Field(
        default=None,
        description="Extra directory searched for module files"
    )
    strict: bool = Field(
        default=True,
        description="Let event handler exceptions abort the run"
    )
    browser: BrowserSettings = Field(default_factory=BrowserSettings)

    @field_validator("timeout", mode="before")
    @classmethod
    def normalize_timeout(cls, v: Any) -> int:
        return _positive_int(v) or DEFAULT_TIMEOUT_SECONDS

    @field_validator("modules", mode="before")
    @classmethod
    def split_modules(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [name.strip() for name in v if name and name.strip()]

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        # Import here to avoid circular imports
        from ..report.formatters import available_formats

        v = (v or DEFAULT_FORMAT).lower()
        if v not in available_formats():
            raise ValueError(f"format must be one of: {', '.join(available_formats())}")
        return v

    @property
    def parsed_viewport(self) -> Viewport:
        """Viewport dimensions with fallbacks applied."""
        return Viewport.parse(self.viewport)

    @property
    def params(self) -> Dict[str, Any]:
        """Plain dict view of the configuration, as handed to modules."""
        return self.model_dump(mode="json")


class Report(BaseModel):
    """Snapshot produced once the page has settled."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Page that was loaded")
    metrics: Dict[str, Any] = Field(default_factory=dict)
    notices: List[str] = Field(default_factory=list)
    settled_by: SettleReason = Field(
        default=SettleReason.REQUESTS,
        description="Whether the run settled naturally or hit the hard timeout"
    )
    duration_ms: Optional[int] = Field(default=None, description="Run duration")

    @property
    def timed_out(self) -> bool:
        return self.settled_by == SettleReason.TIMEOUT

    def to_results(self) -> Dict[str, Any]:
        """The ``{url, metrics, notices}`` mapping handed to renderers."""
        return {
            "url": self.url,
            "metrics": dict(self.metrics),
            "notices": list(self.notices),
        }


def _positive_int(value: Union[str, int, float, None]) -> Optional[int]:
    """Leading-integer parse; returns None unless the result is positive."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = int(value)
    else:
        digits = ""
        for ch in str(value).strip():
            if not ch.isdigit():
                break
            digits += ch
        if not digits:
            return None
        number = int(digits)
    return number if number > 0 else None
