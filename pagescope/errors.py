"""Exception hierarchy for the pagescope harness."""


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError):
    """Raised when the run configuration is unusable (e.g. no URL given)."""


class ModuleLoadError(HarnessError):
    """Raised when a core instrumentation module cannot be loaded."""


class MetricsFrozenError(HarnessError):
    """Raised when a metric or notice is written after the report snapshot."""


class EngineError(HarnessError):
    """Raised when the browser engine cannot be started."""
