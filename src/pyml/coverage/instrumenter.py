"""AST rewriting that adds coverage counters to compiled PyML modules.

Instrumented modules are executed with ``__pyml_cov__`` bound to the
:class:`~pyml.coverage.accumulator.FileCoverage` for their file (see
:meth:`CoverageInstrumenter.injected_globals`). The rewritten tree records:

- every statement, via ``__pyml_cov__.hit_statement(id)`` placed before it,
- every function entry, via ``__pyml_cov__.hit_function(id)``,
- every arm of ``if``/``else`` and ``match`` cases, via
  ``__pyml_cov__.hit_branch(id, arm)``,
- every operand of conditional expressions and ``and``/``or``, via
  ``__pyml_cov__.tally_branch(id, arm, value)``, which returns ``value``.

IDs are assigned in traversal order, so instrumenting the same source for the
same file always yields the same tree.
"""

from __future__ import annotations

import ast
import logging
from typing import Any

from pyml.coverage.accumulator import BranchInfo, CoverageAccumulator, FileCoverage, FunctionInfo, Location


logger = logging.getLogger(__name__)

COVERAGE_GLOBAL = "__pyml_cov__"


def _location(node: ast.AST) -> Location:
    return Location(
        line=node.lineno,
        column=node.col_offset,
        end_line=getattr(node, "end_lineno", None),
        end_column=getattr(node, "end_col_offset", None),
    )


def _counter(method: str, *args: int | ast.expr) -> ast.Call:
    return ast.Call(
        func=ast.Attribute(value=ast.Name(id=COVERAGE_GLOBAL, ctx=ast.Load()), attr=method, ctx=ast.Load()),
        args=[arg if isinstance(arg, ast.expr) else ast.Constant(arg) for arg in args],
        keywords=[],
    )


def _is_docstring(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


class CoverageTransformer(ast.NodeTransformer):
    """Insert counters into a module tree and build its coverage maps."""

    def __init__(self, filename: str) -> None:
        self.coverage = FileCoverage(path=filename)

    # Helpers ------------------------------------------------------------

    def _statement_counter(self, stmt: ast.stmt) -> ast.stmt:
        sid = len(self.coverage.statement_map)
        self.coverage.statement_map[sid] = _location(stmt)
        return ast.copy_location(ast.Expr(value=_counter("hit_statement", sid)), stmt)

    def _new_branch(self, kind: str, node: ast.AST, arms: list[ast.AST]) -> int:
        bid = len(self.coverage.branch_map)
        self.coverage.branch_map[bid] = BranchInfo(
            kind=kind,
            location=_location(node),
            arms=tuple(_location(arm) for arm in arms),
        )
        return bid

    def _branch_counter(self, bid: int, arm: int, anchor: ast.AST) -> ast.stmt:
        return ast.copy_location(ast.Expr(value=_counter("hit_branch", bid, arm)), anchor)

    def _tally(self, bid: int, arm: int, value: ast.expr) -> ast.expr:
        return ast.copy_location(_counter("tally_branch", bid, arm, value), value)

    def _body(self, body: list[ast.stmt], *, header: bool = False) -> list[ast.stmt]:
        """Instrument a statement list.

        With ``header`` a leading docstring and any ``from __future__``
        imports stay in front, uncounted.
        """
        rest = list(body)
        out: list[ast.stmt] = []
        if header:
            if rest and _is_docstring(rest[0]):
                out.append(rest.pop(0))
            while rest and isinstance(rest[0], ast.ImportFrom) and rest[0].module == "__future__":
                out.append(rest.pop(0))

        for stmt in rest:
            out.append(self._statement_counter(stmt))
            visited = self.visit(stmt)
            if isinstance(visited, list):
                out.extend(visited)
            elif visited is not None:
                out.append(visited)
        return out

    # Statements ---------------------------------------------------------

    def visit_Module(self, node: ast.Module) -> ast.Module:  # noqa: N802 - ast API
        node.body = self._body(node.body, header=True)
        return node

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> ast.AST:
        node.decorator_list = [self.visit(d) for d in node.decorator_list]
        node.args = self.visit(node.args)
        fid = len(self.coverage.function_map)
        self.coverage.function_map[fid] = FunctionInfo(name=node.name, location=_location(node))
        body = self._body(node.body, header=True)
        docstring = 1 if body and _is_docstring(body[0]) else 0
        anchor = node.body[docstring] if len(node.body) > docstring else node
        entry = ast.copy_location(ast.Expr(value=_counter("hit_function", fid)), anchor)
        body.insert(docstring, entry)
        node.body = body
        return node

    visit_FunctionDef = _visit_function  # noqa: N815 - ast API
    visit_AsyncFunctionDef = _visit_function  # noqa: N815 - ast API

    def visit_ClassDef(self, node: ast.ClassDef) -> ast.ClassDef:  # noqa: N802 - ast API
        node.decorator_list = [self.visit(d) for d in node.decorator_list]
        node.bases = [self.visit(b) for b in node.bases]
        node.keywords = [self.visit(k) for k in node.keywords]
        node.body = self._body(node.body, header=True)
        return node

    def visit_If(self, node: ast.If) -> ast.If:  # noqa: N802 - ast API
        node.test = self.visit(node.test)
        anchor_else = node.orelse[0] if node.orelse else node
        bid = self._new_branch("if", node, [node.body[0], anchor_else])
        node.body = [self._branch_counter(bid, 0, node.body[0]), *self._body(node.body)]
        node.orelse = [self._branch_counter(bid, 1, anchor_else), *self._body(node.orelse)]
        return node

    def visit_Match(self, node: ast.Match) -> ast.Match:  # noqa: N802 - ast API
        node.subject = self.visit(node.subject)
        bid = self._new_branch("match", node, [case.pattern for case in node.cases])
        for arm, case in enumerate(node.cases):
            if case.guard is not None:
                case.guard = self.visit(case.guard)
            case.body = [self._branch_counter(bid, arm, case.body[0]), *self._body(case.body)]
        return node

    def _visit_block(self, node: Any) -> Any:
        for name in ("body", "orelse", "finalbody"):
            block = getattr(node, name, None)
            if block:
                setattr(node, name, self._body(block))
        for handler in getattr(node, "handlers", []):
            if handler.type is not None:
                handler.type = self.visit(handler.type)
            handler.body = self._body(handler.body)
        for field_name in ("test", "iter", "target"):
            value = getattr(node, field_name, None)
            if isinstance(value, ast.expr):
                setattr(node, field_name, self.visit(value))
        if hasattr(node, "items"):
            for item in node.items:
                item.context_expr = self.visit(item.context_expr)
        return node

    visit_For = _visit_block  # noqa: N815 - ast API
    visit_AsyncFor = _visit_block  # noqa: N815 - ast API
    visit_While = _visit_block  # noqa: N815 - ast API
    visit_With = _visit_block  # noqa: N815 - ast API
    visit_AsyncWith = _visit_block  # noqa: N815 - ast API
    visit_Try = _visit_block  # noqa: N815 - ast API
    visit_TryStar = _visit_block  # noqa: N815 - ast API

    # Expressions --------------------------------------------------------

    def visit_IfExp(self, node: ast.IfExp) -> ast.IfExp:  # noqa: N802 - ast API
        self.generic_visit(node)
        bid = self._new_branch("cond-expr", node, [node.body, node.orelse])
        node.body = self._tally(bid, 0, node.body)
        node.orelse = self._tally(bid, 1, node.orelse)
        return node

    def visit_BoolOp(self, node: ast.BoolOp) -> ast.BoolOp:  # noqa: N802 - ast API
        self.generic_visit(node)
        kind = "and" if isinstance(node.op, ast.And) else "or"
        bid = self._new_branch(kind, node, node.values)
        node.values = [self._tally(bid, arm, value) for arm, value in enumerate(node.values)]
        return node


class CoverageInstrumenter:
    """Rewrites module source to count executions into a :class:`CoverageAccumulator`."""

    def __init__(self, accumulator: CoverageAccumulator) -> None:
        self.accumulator = accumulator

    def instrument(self, source: str, filename: str) -> ast.Module:
        """Parse ``source`` and return the instrumented module tree.

        The file's coverage maps are registered with the accumulator; a file
        already registered keeps its counters.

        Raises:
            SyntaxError: ``source`` is not valid Python.
        """
        tree = ast.parse(source, filename=filename)
        transformer = CoverageTransformer(filename)
        tree = ast.fix_missing_locations(transformer.visit(tree))
        coverage = transformer.coverage
        coverage.reset()
        self.accumulator.register(coverage)
        logger.debug(
            "Instrumented %s: %d statements, %d branches, %d functions",
            filename,
            len(coverage.statement_map),
            len(coverage.branch_map),
            len(coverage.function_map),
        )
        return tree

    def injected_globals(self, filename: str) -> dict[str, Any]:
        """Globals referenced by instrumented code for ``filename``."""
        coverage = self.accumulator.get(filename)
        if coverage is None:
            msg = f"{filename} has not been instrumented"
            raise KeyError(msg)
        return {COVERAGE_GLOBAL: coverage}
