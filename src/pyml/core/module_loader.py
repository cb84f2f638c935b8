import ast
import logging
import re
from collections.abc import Callable
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol

from pyml.config import DEFAULT_EXCLUDE_PATTERN, SOURCE_SUFFIX, InstrumentMode
from pyml.core.markup_transformer import MarkupTransformer
from pyml.core.registry import ExtensionRegistry
from pyml.coverage.instrumenter import CoverageInstrumenter
from pyml.errors import ConfigurationError


logger = logging.getLogger(__name__)


class SourceTransformer(Protocol):
    def transform(self, source: str, filename: str) -> str: ...

    def injected_globals(self) -> dict[str, Any]: ...


def read_source(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


class LoadInterceptor:
    """Compiles ``.pyml`` modules as they are imported.

    Each load reads the file, compiles its markup to Python, optionally adds
    coverage counters, and executes the result in the module being imported.
    Import caching stays with the import system, so a module is compiled once
    per process. Errors propagate to the importer unchanged.
    """

    def __init__(
        self,
        registry: ExtensionRegistry,
        *,
        mode: InstrumentMode = InstrumentMode.DISABLED,
        transformer: SourceTransformer | None = None,
        instrumenter: CoverageInstrumenter | None = None,
        read_source: Callable[[str], str] = read_source,
        suffix: str = SOURCE_SUFFIX,
        exclude: str = DEFAULT_EXCLUDE_PATTERN,
    ) -> None:
        if mode.enabled and instrumenter is None:
            msg = "Instrumentation is enabled but no instrumenter was given"
            raise ConfigurationError(msg)
        self.registry = registry
        self.mode = mode
        self.transformer = transformer or MarkupTransformer()
        self.instrumenter = instrumenter
        self.read_source = read_source
        self.suffix = suffix
        self._exclude = re.compile(exclude)

    def install(self) -> "LoadInterceptor":
        """Register :meth:`load` for the suffix and activate the registry."""
        self.registry.register(self.suffix, self.load)
        self.registry.activate()
        logger.debug("Installed %s loader (instrumentation %s)", self.suffix, self.mode.value)
        return self

    def should_instrument(self, filename: str) -> bool:
        return self.mode.enabled and self._exclude.search(filename) is None

    def load(self, module: ModuleType, filename: str) -> None:
        source = self.read_source(filename)
        code = self.transformer.transform(source, filename)
        module.__dict__.update(self.transformer.injected_globals())

        compiled: str | ast.Module = code
        if self.should_instrument(filename):
            compiled = self.instrumenter.instrument(code, filename)
            module.__dict__.update(self.instrumenter.injected_globals(filename))
        else:
            logger.debug("Loading %s without instrumentation", filename)

        exec(compile(compiled, filename, "exec"), module.__dict__)
