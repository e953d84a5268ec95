"""Instrumentation module interface and registry.

Modules are resolved by name once at startup, validated and activated. Core
modules are activated first, in a fixed order, and cannot be skipped. Failing to
locate or import an external module is not fatal: it is logged and the run goes
on without it. Once activated, a module runs with no further isolation.
"""

import importlib
import importlib.util
import logging
import pkgutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..errors import ModuleLoadError
from .capabilities import Capabilities, CapabilitiesFactory

logger = logging.getLogger(__name__)

MODULES_PACKAGE = "pagescope.modules"
CORE_PACKAGE = "pagescope.modules.core"
CORE_MODULES = ("requests_monitor",)

# attribute a module unit must expose
MODULE_ATTRIBUTE = "module"


class InstrumentationModule(ABC):
    """Base class for all instrumentation modules."""

    def __init__(self, name: str, version: Optional[str] = None, skip: bool = False):
        self._name = name
        self._version = version
        self._skip = skip

    @property
    def name(self) -> str:
        """Unique name of this module within a run."""
        return self._name

    @property
    def version(self) -> Optional[str]:
        return self._version

    @property
    def skip(self) -> bool:
        """Skipped modules are never activated."""
        return self._skip

    @abstractmethod
    def activate(self, scope: Capabilities) -> None:
        """Register event subscriptions. Called exactly once per run."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, version={self.version!r})"


class FunctionModule(InstrumentationModule):
    """Module whose activation is a plain function."""

    def __init__(
        self,
        name: str,
        activate: Callable[[Capabilities], None],
        version: Optional[str] = None,
        skip: bool = False,
    ):
        super().__init__(name, version, skip)
        self._activate = activate

    def activate(self, scope: Capabilities) -> None:
        self._activate(scope)


class ActivationStatus(str, Enum):
    """Outcome of an activation attempt."""
    ACTIVATED = "activated"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    MISSING = "missing"


@dataclass(frozen=True)
class ActivationResult:
    name: str
    status: ActivationStatus
    version: Optional[str] = None
    core: bool = False


class ModuleRegistry:
    """Resolves, validates and activates instrumentation modules.

    Modules are looked up, in order, among explicitly registered instances,
    the optional ``modules_dir`` (``<dir>/<name>.py``) and the modules
    package (``pagescope.modules.<name>``).
    """

    def __init__(
        self,
        package: str = MODULES_PACKAGE,
        core_package: str = CORE_PACKAGE,
        modules_dir: Optional[Union[str, Path]] = None,
        core_modules: Iterable[str] = CORE_MODULES,
    ):
        self.package = package
        self.core_package = core_package
        self.modules_dir = Path(modules_dir) if modules_dir else None
        self.core_modules = tuple(core_modules)

        self._registered: Dict[str, InstrumentationModule] = {}
        self._results: List[ActivationResult] = []

    def register(self, module: InstrumentationModule) -> None:
        """Make a module instance available by name (takes precedence over lookup)."""
        self._registered[module.name] = module

    # resolution

    def load(self, name: str) -> Optional[InstrumentationModule]:
        """Resolve an external module by name; None when it cannot be loaded."""
        if name in self._registered:
            return self._registered[name]

        if not name.isidentifier():
            logger.warning(f'Unable to load module "{name}": invalid name')
            return None

        try:
            unit = self._import_unit(name)
        except Exception as e:
            logger.warning(f'Unable to load module "{name}": {e}')
            return None

        if unit is None:
            logger.warning(f'Unable to load module "{name}": not found')
            return None

        return self._module_from_unit(name, unit)

    def load_core(self, name: str) -> InstrumentationModule:
        """Resolve a core module; core modules must always be present."""
        if name in self._registered:
            return self._registered[name]

        try:
            unit = importlib.import_module(f"{self.core_package}.{name}")
        except ImportError as e:
            raise ModuleLoadError(f"Core module {name} cannot be loaded: {e}") from e

        module = self._module_from_unit(name, unit)
        if module is None:
            raise ModuleLoadError(f"Core module {name} does not define a module")
        return module

    def discover(self) -> List[str]:
        """Names of every available external module, in discovery order."""
        logger.info("Getting the list of all modules...")
        names = set()

        try:
            package = importlib.import_module(self.package)
            for info in pkgutil.iter_modules(getattr(package, "__path__", [])):
                if not info.ispkg and not info.name.startswith("_"):
                    names.add(info.name)
        except ImportError as e:
            logger.warning(f"Modules package {self.package} unavailable: {e}")

        if self.modules_dir and self.modules_dir.is_dir():
            for path in self.modules_dir.glob("*.py"):
                if not path.stem.startswith("_"):
                    names.add(path.stem)

        return sorted(names)

    # activation

    def activate(
        self,
        module: InstrumentationModule,
        capabilities: CapabilitiesFactory,
        core: bool = False,
    ) -> ActivationResult:
        """Activate one module.

        Skipped modules never receive capabilities. Errors raised by the
        activation function propagate.
        """
        label = "Core module" if core else "Module"
        version = f" v{module.version}" if module.version else ""

        if module.skip and not core:
            logger.info(f"{label} {module.name} skipped!")
            return self._record(ActivationResult(module.name, ActivationStatus.SKIPPED, module.version))

        if module.name in self.activated:
            logger.warning(f"{label} {module.name} already initialized")
            return self._record(ActivationResult(module.name, ActivationStatus.DUPLICATE, module.version))

        module.activate(capabilities(module.name))

        logger.info(f"{label} {module.name}{version} initialized")
        return self._record(ActivationResult(module.name, ActivationStatus.ACTIVATED, module.version, core))

    def activate_all(
        self,
        names: Iterable[str],
        capabilities: CapabilitiesFactory,
    ) -> List[ActivationResult]:
        """Activate core modules, then ``names`` (or every discovered module)."""
        self._results = []

        for name in self.core_modules:
            self.activate(self.load_core(name), capabilities, core=True)

        selected = list(names) or self.discover()
        for name in selected:
            module = self.load(name)
            if module is None:
                self._record(ActivationResult(name, ActivationStatus.MISSING))
                continue
            self.activate(module, capabilities)

        return list(self._results)

    @property
    def results(self) -> List[ActivationResult]:
        return list(self._results)

    @property
    def activated(self) -> List[str]:
        return self._names_with(ActivationStatus.ACTIVATED)

    @property
    def skipped(self) -> List[str]:
        return self._names_with(ActivationStatus.SKIPPED)

    @property
    def missing(self) -> List[str]:
        return self._names_with(ActivationStatus.MISSING)

    def get_status(self) -> Dict[str, Dict[str, Any]]:
        """Activation status per module, for debugging."""
        return {
            result.name: {
                "status": result.status.value,
                "version": result.version,
                "core": result.core,
            }
            for result in self._results
        }

    def _names_with(self, status: ActivationStatus) -> List[str]:
        return [result.name for result in self._results if result.status == status]

    def _record(self, result: ActivationResult) -> ActivationResult:
        self._results.append(result)
        return result

    def _import_unit(self, name: str) -> Optional[ModuleType]:
        if self.modules_dir:
            path = self.modules_dir / f"{name}.py"
            if path.is_file():
                spec = importlib.util.spec_from_file_location(f"pagescope_ext_{name}", path)
                unit = importlib.util.module_from_spec(spec)
                spec.loader.exec_module(unit)
                return unit

        qualified = f"{self.package}.{name}"
        if importlib.util.find_spec(qualified) is None:
            return None
        return importlib.import_module(qualified)

    def _module_from_unit(self, name: str, unit: ModuleType) -> Optional[InstrumentationModule]:
        module = getattr(unit, MODULE_ATTRIBUTE, None)
        if not isinstance(module, InstrumentationModule):
            logger.warning(f'Unable to load module "{name}": no {MODULE_ATTRIBUTE} defined')
            return None
        return module
