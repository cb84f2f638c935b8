"""Registry of source suffixes handled by custom loaders.

The registry is a :class:`importlib.abc.MetaPathFinder`: once activated it
finds ``<name><suffix>`` files on the import path for every registered suffix
and loads them through the handler registered for that suffix.
"""

from __future__ import annotations

import importlib.abc
import importlib.util
import logging
import os
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from importlib.machinery import ModuleSpec
from pathlib import Path
from types import ModuleType


logger = logging.getLogger(__name__)

Handler = Callable[[ModuleType, str], None]


@dataclass(frozen=True, slots=True)
class LoaderRegistration:
    """Handler bound to a file suffix."""

    suffix: str
    handler: Handler


class ExtensionLoader(importlib.abc.SourceLoader):
    """Loader that hands module execution to a registered handler."""

    def __init__(self, fullname: str, path: str, handler: Handler) -> None:
        self.fullname = fullname
        self.path = path
        self.handler = handler

    def get_filename(self, fullname: str) -> str:
        return self.path

    def get_data(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def exec_module(self, module: ModuleType) -> None:
        self.handler(module, self.get_filename(module.__name__))


class ExtensionRegistry(importlib.abc.MetaPathFinder):
    """Maps file suffixes to load handlers.

    Registering a suffix again replaces its handler.
    """

    def __init__(self) -> None:
        self._registrations: dict[str, LoaderRegistration] = {}

    def register(self, suffix: str, handler: Handler) -> LoaderRegistration:
        if not suffix.startswith("."):
            msg = f"Suffix must start with '.': {suffix!r}"
            raise ValueError(msg)
        if suffix in self._registrations:
            logger.debug("Replacing loader handler for %s", suffix)
        registration = LoaderRegistration(suffix=suffix, handler=handler)
        self._registrations[suffix] = registration
        return registration

    def handler_for(self, suffix: str) -> Handler | None:
        registration = self._registrations.get(suffix)
        return registration.handler if registration else None

    @property
    def suffixes(self) -> list[str]:
        return list(self._registrations)

    @property
    def active(self) -> bool:
        return self in sys.meta_path

    def activate(self) -> None:
        """Append the registry to ``sys.meta_path`` unless already there.

        Finders ahead of it, the path finder included, resolve ordinary
        modules first, so only names they cannot find are looked up here.
        """
        if not self.active:
            sys.meta_path.append(self)
            logger.debug("Activated loader registry for %s", ", ".join(self.suffixes) or "no suffixes")

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None = None,
        target: ModuleType | None = None,
    ) -> ModuleSpec | None:
        name = fullname.rpartition(".")[2]
        for entry in sys.path if path is None else path:
            if not isinstance(entry, str):
                continue
            directory = entry or os.getcwd()
            if not os.path.isdir(directory):
                continue
            for registration in self._registrations.values():
                candidate = os.path.join(directory, name + registration.suffix)
                if os.path.isfile(candidate):
                    return self._spec(fullname, candidate, registration)
        return None

    def _spec(self, fullname: str, filename: str, registration: LoaderRegistration) -> ModuleSpec | None:
        loader = ExtensionLoader(fullname, filename, registration.handler)
        return importlib.util.spec_from_file_location(fullname, filename, loader=loader)

    def load_path(self, path: Path | str, module_name: str | None = None) -> ModuleType:
        """Load a registered-suffix file directly, caching it in ``sys.modules``."""
        path = Path(path).resolve()
        module_name = module_name or path.stem
        if (cached := sys.modules.get(module_name)) is not None:
            return cached

        registration = self._registrations.get(path.suffix)
        if registration is None:
            msg = f"No loader registered for {path.suffix!r} files: {path}"
            raise ImportError(msg)

        spec = self._spec(module_name, str(path), registration)
        if spec is None or spec.loader is None:
            msg = f"Cannot load module from {path}"
            raise ImportError(msg)

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module


_default_registry: ExtensionRegistry | None = None


def get_default_registry() -> ExtensionRegistry:
    """Get the process-wide registry, creating it on first use."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ExtensionRegistry()
    return _default_registry
