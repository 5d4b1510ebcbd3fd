"""Capability discovery for optional upload, analyze and parse backends.

Deployments can provide their own implementations of the three roles as
plain modules. Each role has an ordered list of candidate modules and an
ordered list of export names; the first module that imports and exposes one
of the names is bound. Resolution runs once at startup and the result is
shared by every request.

Bound callables may be sync or async. ``call_capability`` runs sync ones in
a worker thread so a blocking backend never stalls the event loop.
"""

import asyncio
import importlib
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from radar.core.exceptions import ConfigurationError
from radar.utils.logging import get_logger

LOGGER = get_logger(__name__)


@runtime_checkable
class Uploader(Protocol):
    """Uploads ``[{name, type, data}]`` and returns file ids or ``{"fileIds": [...]}``."""

    def __call__(self, files: List[Dict[str, Any]]) -> Any: ...


@runtime_checkable
class Analyzer(Protocol):
    """Runs an analysis for ``text`` with optional provider ``file_ids``."""

    def __call__(self, *, text: str, file_ids: Optional[List[str]] = None) -> Any: ...


@runtime_checkable
class Parser(Protocol):
    """Turns raw analyzer output into a mapping."""

    def __call__(self, raw: Any) -> Any: ...


@dataclass(frozen=True)
class CapabilitySpec:
    """Where to look for one role."""
    role: str
    modules: Tuple[str, ...]
    exports: Tuple[str, ...]


UPLOAD_SPEC = CapabilitySpec(
    role="upload",
    modules=("radar_extensions.openai_files_service",),
    exports=("upload_files_to_openai", "upload_files", "upload"),
)

ANALYZE_SPEC = CapabilitySpec(
    role="analyze",
    modules=("radar_extensions.openai_direct_service",),
    exports=("create_analysis", "analyze_with_openai", "analyze_text_with_files"),
)

PARSE_SPEC = CapabilitySpec(
    role="parse",
    modules=("radar.services.response_parser", "radar_extensions.openai_response_parser"),
    exports=("parse_openai_response", "parse_response"),
)


@dataclass(frozen=True)
class ResolvedServices:
    """Bound capabilities; a role is None when nothing provides it."""
    upload: Optional[Uploader] = None
    analyze: Optional[Analyzer] = None
    parse: Optional[Parser] = None

    def describe(self) -> Dict[str, Optional[str]]:
        return {
            role: _qualified_name(getattr(self, role))
            for role in ("upload", "analyze", "parse")
        }


def _qualified_name(func: Any) -> Optional[str]:
    if func is None:
        return None
    return f"{getattr(func, '__module__', '?')}.{getattr(func, '__qualname__', repr(func))}"


class ServiceResolver:
    """Binds each capability role to the first available implementation."""

    def __init__(
        self,
        upload_module: Optional[str] = None,
        analyze_module: Optional[str] = None,
        parse_module: Optional[str] = None,
        specs: Sequence[CapabilitySpec] = (UPLOAD_SPEC, ANALYZE_SPEC, PARSE_SPEC),
    ):
        """Initialize the resolver.

        Args:
            upload_module: Explicit module for the upload role
            analyze_module: Explicit module for the analyze role
            parse_module: Explicit module for the parse role
            specs: Default candidates per role
        """
        self.specs = {spec.role: spec for spec in specs}
        self.explicit = {
            "upload": upload_module,
            "analyze": analyze_module,
            "parse": parse_module,
        }

    def resolve(self) -> ResolvedServices:
        """Resolve every role.

        Returns:
            ResolvedServices with each role bound or None

        Raises:
            ConfigurationError: If an explicitly configured module cannot be
                imported or exposes none of the role's export names
        """
        bound = {role: self._resolve_role(role) for role in ("upload", "analyze", "parse")}
        services = ResolvedServices(**bound)
        LOGGER.info("Resolved analysis capabilities", extra=services.describe())
        return services

    def _resolve_role(self, role: str) -> Optional[Any]:
        spec = self.specs[role]
        explicit = self.explicit.get(role)

        if explicit:
            try:
                module = importlib.import_module(explicit)
            except Exception as e:
                raise ConfigurationError(
                    f"Configured {role} module '{explicit}' could not be imported", original_error=e
                ) from e
            func = self._find_export(module, spec.exports)
            if func is None:
                raise ConfigurationError(
                    f"Configured {role} module '{explicit}' exports none of {', '.join(spec.exports)}"
                )
            return func

        for module_name in spec.modules:
            try:
                module = importlib.import_module(module_name)
            except ModuleNotFoundError as e:
                if e.name == module_name or module_name.startswith(f"{e.name}."):
                    LOGGER.debug(f"No {role} module at {module_name}")
                    continue
                self._skip_broken_candidate(role, module_name)
                continue
            except Exception:
                self._skip_broken_candidate(role, module_name)
                continue

            func = self._find_export(module, spec.exports)
            if func is not None:
                return func
            LOGGER.debug(f"{module_name} exposes no {role} export")

        return None

    @staticmethod
    def _skip_broken_candidate(role: str, module_name: str) -> None:
        LOGGER.warning(
            f"Skipping {role} candidate {module_name}: import failed",
            extra={"role": role, "candidate": module_name},
            exc_info=True,
        )

    @staticmethod
    def _find_export(module: Any, exports: Sequence[str]) -> Optional[Any]:
        for name in exports:
            candidate = getattr(module, name, None)
            if callable(candidate):
                return candidate
        return None


async def call_capability(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call a bound capability without blocking the event loop.

    Coroutine functions are awaited directly. Anything else runs in a worker
    thread, and an awaitable it hands back is awaited afterwards.

    Args:
        func: Bound capability
        *args: Positional arguments for ``func``
        **kwargs: Keyword arguments for ``func``

    Returns:
        Whatever the capability returns
    """
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)

    result = await asyncio.to_thread(func, *args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
