"""Element descriptors and the component base class.

Compiled markup calls :func:`create_element`; rendering the resulting
:class:`Element` trees is left to a rendering backend.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar


FRAGMENT = "#fragment"


@dataclass(frozen=True, slots=True)
class Element:
    """Immutable description of a component or tag to render.

    Children are stored under ``props["children"]``: a single child as is,
    several children as a tuple.
    """

    type: Any
    props: dict[str, Any] = field(default_factory=dict)

    @property
    def children(self) -> tuple[Any, ...]:
        return as_children(self.props.get("children"))

    @property
    def display_name(self) -> str:
        return display_name_of(self.type)


def as_children(value: Any) -> tuple[Any, ...]:
    """Normalize a ``children`` prop into a tuple."""
    if value is None:
        return ()
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return (value,)


def create_element(type_: Any, props: Mapping[str, Any] | None = None, *children: Any) -> Element:
    """Build an :class:`Element`, mirroring ``createElement(type, props, ...children)``."""
    merged = dict(props or {})
    if len(children) == 1:
        merged["children"] = children[0]
    elif children:
        merged["children"] = children
    return Element(type=type_, props=merged)


def display_name_of(tag: Any) -> str:
    if isinstance(tag, str):
        return tag
    name = getattr(tag, "display_name", None)
    if name:
        return name
    return getattr(tag, "__name__", type(tag).__name__)


class Component:
    """Base class for class components.

    Subclasses implement :meth:`render` and may set ``display_name``,
    ``default_props`` and ``child_context_types``.
    """

    display_name: ClassVar[str | None] = None
    default_props: ClassVar[Mapping[str, Any]] = {}
    child_context_types: ClassVar[Mapping[str, Any]] = {}

    def __init__(self, props: Mapping[str, Any] | None = None, context: Mapping[str, Any] | None = None) -> None:
        self.props: dict[str, Any] = {**self.default_props, **(props or {})}
        self.context: dict[str, Any] = dict(context or {})
        self.refs: dict[str, Any] = {}

    def get_child_context(self) -> Mapping[str, Any]:
        return {}

    def render(self) -> Any:
        raise NotImplementedError(f"{type(self).__name__} must implement render()")

    def __repr__(self) -> str:
        return f"<{display_name_of(type(self))} props={self.props!r}>"
