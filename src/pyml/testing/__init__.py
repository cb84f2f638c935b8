"""Component test helpers.

Renders, drives and queries components through a rendering backend, and
compiles ``.pyml`` modules on import.
"""

from pyml.components import FRAGMENT, Component, Element, create_element

from .helpers import ComponentHarness, RenderBackend, markup_transpile, stub_component, with_context


__all__ = [
    "FRAGMENT",
    "Component",
    "ComponentHarness",
    "Element",
    "RenderBackend",
    "create_element",
    "markup_transpile",
    "stub_component",
    "with_context",
]
