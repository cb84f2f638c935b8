"""PyML - component test helpers with on-import markup compilation."""

from .components import FRAGMENT, Component, Element, create_element
from .config import InstrumentMode, PymlSettings
from .core import ExtensionRegistry, LoadInterceptor, MarkupTransformer, TransformOptions, get_default_registry, transform
from .coverage import CoverageAccumulator, CoverageInstrumenter, get_default_accumulator
from .errors import ConfigurationError, MarkupSyntaxError, PymlError
from .testing import ComponentHarness, RenderBackend, markup_transpile, stub_component, with_context
from .version import __version__


__all__ = [
    # Components
    "FRAGMENT",
    "Component",
    "Element",
    "create_element",
    # Test helpers
    "ComponentHarness",
    "RenderBackend",
    "markup_transpile",
    "stub_component",
    "with_context",
    # Load pipeline
    "ExtensionRegistry",
    "LoadInterceptor",
    "MarkupTransformer",
    "TransformOptions",
    "get_default_registry",
    "transform",
    # Coverage
    "CoverageAccumulator",
    "CoverageInstrumenter",
    "get_default_accumulator",
    # Configuration and errors
    "ConfigurationError",
    "InstrumentMode",
    "MarkupSyntaxError",
    "PymlError",
    "PymlSettings",
    "__version__",
]
