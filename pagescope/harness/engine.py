"""Boundary between the harness and the browser engine.

The browser engine (page navigation, DOM, JavaScript execution) is an external
collaborator. The harness binds one ``EngineCallbacks`` set to it and issues a
small number of commands; nothing else crosses this boundary.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

from pydantic import BaseModel, Field

LOAD_SUCCESS = "success"
LOAD_FAIL = "fail"


class ResponseStage(str, Enum):
    """Phase of a received resource."""
    START = "start"
    END = "end"


class ResourceRequest(BaseModel):
    """Outbound request as seen by the browser."""

    id: str = Field(description="Engine-specific request identifier")
    url: str = Field(description="Request URL")
    method: str = Field(default="GET", description="HTTP method")
    resource_type: str = Field(default="other", description="Engine resource type")
    headers: Dict[str, str] = Field(default_factory=dict)
    is_navigation: bool = Field(
        default=False,
        description="Whether this request loads the main document"
    )
    time: datetime = Field(default_factory=datetime.utcnow)


class ResourceResponse(BaseModel):
    """Response (or failure) for a previously requested resource."""

    id: str = Field(description="Identifier of the matching request")
    url: str = Field(description="Response URL")
    stage: ResponseStage = Field(default=ResponseStage.END)
    status: Optional[int] = Field(default=None, description="HTTP status code")
    status_text: Optional[str] = Field(default=None)
    headers: Dict[str, str] = Field(default_factory=dict)
    content_type: Optional[str] = Field(default=None)
    body_size: Optional[int] = Field(default=None, description="Body size in bytes")
    redirect_url: Optional[str] = Field(default=None)
    failed: bool = Field(default=False, description="Request failed before completing")
    error_text: Optional[str] = Field(default=None)
    time: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_redirect(self) -> bool:
        return self.status is not None and 300 <= self.status < 400 and self.status != 304


def _noop(*_: Any) -> None:
    return None


@dataclass
class EngineCallbacks:
    """Callbacks the harness binds to the engine."""

    on_initialized: Callable[[], None] = _noop
    on_load_started: Callable[[], None] = _noop
    on_load_finished: Callable[[str], None] = _noop
    on_resource_requested: Callable[[ResourceRequest], None] = _noop
    on_resource_received: Callable[[ResourceResponse], None] = _noop
    on_alert: Callable[[str], None] = _noop
    on_console_message: Callable[[str], None] = _noop


class BrowserEngine(Protocol):
    """Commands the harness issues to the browser engine."""

    @property
    def user_agent(self) -> Optional[str]:
        ...

    def bind(self, callbacks: EngineCallbacks) -> None:
        """Register the callbacks; called once before ``open``."""
        ...

    async def open(self, url: str) -> None:
        """Start navigating to ``url``.

        Returns once navigation has started; load completion (or failure) is
        reported through ``on_load_finished``.
        """
        ...

    async def set_viewport(self, width: int, height: int) -> None:
        ...

    async def evaluate(self, expression: str) -> Any:
        """Evaluate a JavaScript expression or function in the page."""
        ...

    async def inject_script(self, path: str) -> bool:
        ...

    async def content(self) -> str:
        ...

    async def release(self) -> None:
        """Free the browser session."""
        ...
