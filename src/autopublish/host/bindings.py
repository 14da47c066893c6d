"""Loading a concrete host integration.

The upload entry point runs inside the host, where the real host control
surface, builder SDK and consent client live. The integration is named in
config as ``"package.module:factory"``; the factory receives the loaded
``PublisherConfig`` and returns a ``HostBindings``.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable

from autopublish.core.config import PublisherConfig
from autopublish.core.errors import BindingsError
from autopublish.core.logging import get_logger
from autopublish.host.protocol import (
    BuilderProvider,
    ConsentService,
    HostBindings,
    HostControl,
    SessionState,
)

_logger = get_logger("host.bindings")

BindingsFactory = Callable[[PublisherConfig], HostBindings]

_REQUIRED: dict[str, type] = {
    "host": HostControl,
    "builders": BuilderProvider,
    "consent": ConsentService,
    "session": SessionState,
}


def resolve_factory(spec: str) -> BindingsFactory:
    """Import the factory named by ``"module:attribute"``.

    Raises:
        BindingsError: If the spec is malformed or the target is missing.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise BindingsError(f"Bindings must look like 'package.module:factory', got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise BindingsError(f"Cannot import bindings module {module_name!r}: {e}") from e
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise BindingsError(f"{module_name!r} has no callable {attr!r}")
    return factory


def load_bindings(spec: str, config: PublisherConfig) -> HostBindings:
    """Import, call and check a bindings factory.

    Raises:
        BindingsError: If the factory cannot be found, fails, or returns
            something other than a complete ``HostBindings``.
    """
    factory = resolve_factory(spec)
    try:
        bindings = factory(config)
    except Exception as e:
        raise BindingsError(f"Bindings factory {spec!r} failed: {e}") from e

    if not isinstance(bindings, HostBindings):
        raise BindingsError(
            f"Bindings factory {spec!r} returned {type(bindings).__name__}, expected HostBindings"
        )
    for name, protocol in _REQUIRED.items():
        if not isinstance(getattr(bindings, name), protocol):
            raise BindingsError(
                f"Bindings {name!r} from {spec!r} does not implement {protocol.__name__}"
            )

    _logger.info("bindings.loaded", spec=spec)
    return bindings


__all__ = ["BindingsFactory", "load_bindings", "resolve_factory"]
