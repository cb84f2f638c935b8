"""Tests for pyml.core.markup_transformer.

Markup literals compile to element-factory calls; everything else passes
through untouched and the line count never changes.
"""

import traceback

import pytest

from pyml.components import FRAGMENT, Component, Element
from pyml.core.markup_transformer import MarkupTransformer, TransformOptions, transform
from pyml.errors import MarkupSyntaxError


def run(source: str, filename: str = "widget.pyml") -> dict:
    """Compile ``source`` and execute it with the element factory bound."""
    code = transform(source, filename)
    namespace = MarkupTransformer().injected_globals()
    exec(compile(code, filename, "exec"), namespace)
    return namespace


# ---------------------------------------------------------------------------
# Output shape
# ---------------------------------------------------------------------------


class TestGeneratedCode:
    """Exact output for simple literals."""

    def test_self_closing_tag(self):
        assert transform("x = <div/>\n") == "x = __pyml_element__('div', None)\n"

    def test_attributes_and_text(self):
        code = transform('y = <a href="/x" disabled>Hi</a>\n')
        assert code == "y = __pyml_element__('a', {'href': '/x', 'disabled': True, }, 'Hi')\n"

    def test_custom_pragma(self):
        options = TransformOptions(pragma="h", pragma_frag="Fragment")
        assert transform("x = <><br/></>\n", options=options) == "x = h(Fragment, None, h('br', None))\n"

    def test_plain_python_is_unchanged(self):
        source = (
            "import os\n"
            "s = '<div>'  # <span>\n"
            't = f"{s}<b>"\n'
            "ok = len(s) <len(t)\n"
        )
        assert transform(source) == source

    def test_transform_is_deterministic(self):
        source = '<Panel title="a">{[<li>{i}</li> for i in range(3)]}</Panel>\n'
        assert transform(source, "a.pyml") == transform(source, "a.pyml")


# ---------------------------------------------------------------------------
# Semantics of compiled markup
# ---------------------------------------------------------------------------


class TestElements:
    def test_comparison_after_operand_is_not_markup(self):
        ns = run("a = 1\nb = 2\nflag = a <b\n")
        assert ns["flag"] is True

    @pytest.mark.parametrize(
        "source",
        [
            "shift = 3\nmask = 1<<shift\n",
            "x = [1]\nn = 2\ny = x[0]<<n\n",
            "v = 1\nk = 4\nv <<= k\n",
            "value = 1 << 2 < 8\n",
        ],
    )
    def test_left_shift_is_not_markup(self, source):
        assert transform(source) == source

    def test_left_shift_inside_expression_children(self):
        el = run("n = 2\nel = <p>{1<<n}</p>\n")["el"]
        assert el.children == (4,)

    def test_lowercase_names_are_tags_and_capitalized_names_are_references(self):
        ns = run(
            "class Widget:\n"
            "    pass\n"
            "el = <Widget><span/></Widget>\n"
        )
        el = ns["el"]
        assert isinstance(el, Element)
        assert el.type is ns["Widget"]
        assert el.children[0].type == "span"

    def test_dotted_names_are_references(self):
        ns = run(
            "import types\n"
            "class Button:\n"
            "    pass\n"
            "ui = types.SimpleNamespace(button=Button)\n"
            'el = <ui.button label="Go"/>\n'
        )
        assert ns["el"].type is ns["Button"]
        assert ns["el"].props == {"label": "Go"}

    def test_dashed_names_are_tags(self):
        el = run('el = <my-widget data-id="3" aria-label={"x"}/>\n')["el"]
        assert el.type == "my-widget"
        assert el.props == {"data-id": "3", "aria-label": "x"}

    def test_expression_children_and_nested_markup_in_expressions(self):
        ns = run(
            "def view(items):\n"
            '    return <ul class="list">\n'
            "        {[<li key={i}>{item}</li> for i, item in enumerate(items)]}\n"
            "    </ul>\n"
            'el = view(["a", "b"])\n'
        )
        el = ns["el"]
        assert el.type == "ul"
        assert el.props["class"] == "list"
        assert [li.props["key"] for li in el.children] == [0, 1]
        assert [li.props["children"] for li in el.children] == ["a", "b"]

    def test_text_whitespace_is_collapsed(self):
        el = run("el = <p>\n  Hello\n  world  \n</p>\n")["el"]
        assert el.children == ("Hello world",)

    def test_single_space_between_expressions_is_kept(self):
        assert transform("x = <p>{a} {b}</p>\n") == "x = __pyml_element__('p', None, (a), ' ', (b))\n"

        el = run("a = 1\nb = 2\nel = <p>{a} {b}</p>\n")["el"]
        assert el.children == (1, " ", 2)

    def test_whitespace_only_lines_between_expressions_are_dropped(self):
        el = run("a = 1\nb = 2\nel = <p>{a}\n   {b}</p>\n")["el"]
        assert el.children == (1, 2)

    def test_entities_are_decoded(self):
        el = run('el = <p title="a &lt; b">fish &amp; chips</p>\n')["el"]
        assert el.props["title"] == "a < b"
        assert el.children == ("fish & chips",)

    def test_fragment(self):
        el = run("el = <><b/><i/></>\n")["el"]
        assert el.type == FRAGMENT
        assert [child.type for child in el.children] == ["b", "i"]

    def test_spread_attributes_and_children(self):
        ns = run(
            "extra = {'a': 1}\n"
            "items = ['x', 'y']\n"
            'el = <div {...extra} id="main">{...items}</div>\n'
        )
        assert ns["el"].props == {"a": 1, "id": "main", "children": ("x", "y")}

    def test_element_as_attribute_value(self):
        el = run("el = <layout header=<h1>Title</h1>/>\n")["el"]
        assert el.props["header"].type == "h1"
        assert el.props["header"].children == ("Title",)

    def test_empty_expressions_and_comments_are_ignored(self):
        el = run("el = <p>{}x{# note\n}</p>\n")["el"]
        assert el.children == ("x",)

    def test_markup_after_keywords(self):
        ns = run(
            "def pick(flag):\n"
            "    return <b/> if flag else <i/>\n"
            "a = pick(True)\n"
            "b = pick(False)\n"
        )
        assert ns["a"].type == "b"
        assert ns["b"].type == "i"


class TestComponentSource:
    def test_component_classes_work_in_compiled_code(self):
        code = transform(
            "class Greeting(Component):\n"
            "    def render(self):\n"
            '        return <p class="greeting">Hello, {self.props["name"]}!</p>\n',
            "greeting.pyml",
        )
        namespace = {**MarkupTransformer().injected_globals(), "Component": Component}
        exec(compile(code, "greeting.pyml", "exec"), namespace)

        el = namespace["Greeting"]({"name": "Ada"}).render()
        assert el.type == "p"
        assert el.children == ("Hello, ", "Ada", "!")


# ---------------------------------------------------------------------------
# Line preservation
# ---------------------------------------------------------------------------


class TestLinePreservation:
    SOURCE = (
        "def view():\n"
        "    return <div\n"
        "        id='main'>\n"
        "        {missing}\n"
        "    </div>\n"
    )

    @pytest.mark.parametrize(
        "source",
        [
            SOURCE,
            "x = <p>\n\n  a\n  b\n</p>\n",
            "x = <a\n  href={\n    'x'\n  }\n  title='multi\nline'\n/>\n",
            "y = [\n  <li/>,\n  <li/>,\n]\n",
            '"""doc\n<not markup>\n"""\n',
        ],
    )
    def test_newline_count_is_preserved(self, source):
        assert transform(source).count("\n") == source.count("\n")

    def test_crlf_line_endings(self):
        source = "x = <p>\r\n  a\r\n</p>\r\n"
        assert transform(source).count("\n") == source.count("\n")

    def test_runtime_errors_point_at_source_line(self):
        ns = run(self.SOURCE, "view.pyml")
        with pytest.raises(NameError) as exc_info:
            ns["view"]()

        frame = traceback.extract_tb(exc_info.value.__traceback__)[-1]
        assert frame.filename == "view.pyml"
        assert frame.lineno == 4


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_unclosed_element(self):
        with pytest.raises(MarkupSyntaxError) as exc_info:
            transform("x = 1\ny = <div>\n  text\n", "broken.pyml")

        err = exc_info.value
        assert isinstance(err, SyntaxError)
        assert err.filename == "broken.pyml"
        assert err.lineno == 2
        assert "Unterminated" in err.msg

    def test_mismatched_closing_tag(self):
        with pytest.raises(MarkupSyntaxError) as exc_info:
            transform("x = <a>\n</b>\n", "broken.pyml")

        assert exc_info.value.lineno == 2
        assert "closing tag for <a>" in exc_info.value.msg

    def test_unexpected_brace_in_text(self):
        with pytest.raises(MarkupSyntaxError):
            transform("x = <p>a } b</p>\n")

    def test_invalid_python_raises_syntax_error(self):
        with pytest.raises(SyntaxError) as exc_info:
            transform("function( {\n", "broken.pyml")

        assert not isinstance(exc_info.value, MarkupSyntaxError)
        assert exc_info.value.filename == "broken.pyml"

    def test_markup_rejected_without_non_standard(self):
        with pytest.raises(SyntaxError):
            transform("x = <div/>\n", options=TransformOptions(non_standard=False))

    def test_plain_python_accepted_without_non_standard(self):
        source = "x = 1 < 2\n"
        assert transform(source, options=TransformOptions(non_standard=False)) == source
