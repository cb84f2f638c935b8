"""Helpers for testing PyML components against a rendering backend."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from pyml.components import Component, as_children, create_element, display_name_of
from pyml.config import InstrumentMode
from pyml.core.module_loader import LoadInterceptor
from pyml.core.registry import ExtensionRegistry, get_default_registry
from pyml.coverage.accumulator import CoverageAccumulator, get_default_accumulator
from pyml.coverage.instrumenter import CoverageInstrumenter


@runtime_checkable
class RenderBackend(Protocol):
    """Rendering engine the helpers delegate to."""

    def render(self, element: Any) -> Any: ...

    def unmount(self, handle: Any) -> bool: ...

    def find_dom_node(self, target: Any) -> Any: ...

    def simulate(self, node: Any, event: str, data: Mapping[str, Any] | None = None) -> None: ...

    def simulate_native(self, node: Any, event: str) -> None: ...

    def query_selector(self, handle: Any, selector: str) -> Any: ...

    def query_selector_all(self, handle: Any, selector: str) -> list[Any]: ...


class ComponentHarness:
    """Render, drive and query components through a :class:`RenderBackend`."""

    def __init__(self, backend: RenderBackend) -> None:
        self.backend = backend

    def render_component(self, component: Any, props: Mapping[str, Any] | None = None, *children: Any) -> Any:
        """Render ``component`` with ``props`` and ``children`` into a detached document.

        Arguments match :func:`~pyml.components.create_element`.
        """
        return self.backend.render(create_element(component, props, *children))

    def unmount_component(self, handle: Any) -> bool:
        """Unmount a rendered component; True if something was unmounted."""
        return self.backend.unmount(handle)

    def _node(self, target: Any) -> Any:
        node = self.backend.find_dom_node(target)
        return target if node is None else node

    def simulate_event(self, target: Any, event: str, data: Mapping[str, Any] | None = None) -> None:
        """Dispatch a synthetic ``event`` on a rendered component or node."""
        self.backend.simulate(self._node(target), event, data)

    def simulate_native_event(self, target: Any, event: str) -> None:
        self.backend.simulate_native(self._node(target), event)

    def element_query_selector(self, handle: Any, query: str) -> Any:
        """First node under ``handle`` matching the CSS selector ``query``, or None."""
        return self.backend.query_selector(handle, query)

    def element_query_selector_all(self, handle: Any, query: str) -> list[Any]:
        return self.backend.query_selector_all(handle, query)


def stub_component(tag: Any, children: Any = None, show_data_props: bool = False) -> type[Component]:
    """Create a component that renders ``tag`` with the props it receives.

    Args:
        tag: Tag name or component to render in place of the real component.
        children: Children rendered when the stub receives none.
        show_data_props: Also mirror every prop as ``data-<lowercased key>``.
    """

    class ComponentStub(Component):
        display_name = display_name_of(tag)

        def get_stub_props(self) -> dict[str, Any]:
            props: dict[str, Any] = {}
            for key, value in self.props.items():
                if key == "children":
                    continue
                props[key] = value
                if show_data_props:
                    props[f"data-{key.lower()}"] = value
            return props

        def render(self) -> Any:
            return create_element(tag, self.get_stub_props(), *as_children(self.props.get("children") or children))

    return ComponentStub


def with_context(component: Any, context: Mapping[str, Any]) -> type[Component]:
    """Wrap ``component`` in a parent that provides ``context`` to it.

    The wrapper renders ``component`` with its own props under the ref
    ``"child"``; :meth:`run_child_method` calls methods on that child.
    """

    class ContextWrapper(Component):
        display_name = f"{display_name_of(component) if component is not None else 'Component'}:withContext"
        child_context_types = {key: Any for key in context}
        default_props = {"ref": "child"}

        def run_child_method(self, name: str, *args: Any) -> Any:
            child = self.refs["child"]
            return getattr(child, name)(*args)

        def get_child_context(self) -> Mapping[str, Any]:
            return context

        def render(self) -> Any:
            return create_element(component, self.props)

    return ContextWrapper


def markup_transpile(
    instrument: Any = False,
    *,
    registry: ExtensionRegistry | None = None,
    accumulator: CoverageAccumulator | None = None,
) -> LoadInterceptor:
    """Compile ``.pyml`` modules on import.

    Args:
        instrument: Boolean-ish flag; when enabled, modules outside test and
            dependency directories get coverage counters.
        registry: Registry to install into. Defaults to the process-wide one.
        accumulator: Where coverage is recorded. Defaults to the process-wide one.

    Returns:
        The installed :class:`LoadInterceptor`.
    """
    mode = InstrumentMode.parse(instrument)
    if registry is None:
        registry = get_default_registry()
    instrumenter = None
    if mode.enabled:
        if accumulator is None:
            accumulator = get_default_accumulator()
        instrumenter = CoverageInstrumenter(accumulator)
    interceptor = LoadInterceptor(registry, mode=mode, instrumenter=instrumenter)
    return interceptor.install()
