"""Hit-count storage shared by every instrumented module."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, TypeVar

from coverage import CoverageData
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Location:
    line: int
    column: int
    end_line: int | None = None
    end_column: int | None = None


@dataclass(frozen=True, slots=True)
class FunctionInfo:
    name: str
    location: Location


@dataclass(frozen=True, slots=True)
class BranchInfo:
    """A decision point and the location of each of its arms."""

    kind: str
    location: Location
    arms: tuple[Location, ...]


@dataclass(slots=True)
class FileCoverage:
    """Coverage maps and hit counters for one source file.

    Instrumented code calls the ``hit_*`` methods and :meth:`tally_branch`
    through the ``__pyml_cov__`` global bound to this object.
    """

    path: str
    statement_map: dict[int, Location] = field(default_factory=dict)
    function_map: dict[int, FunctionInfo] = field(default_factory=dict)
    branch_map: dict[int, BranchInfo] = field(default_factory=dict)
    statements: dict[int, int] = field(default_factory=dict)
    functions: dict[int, int] = field(default_factory=dict)
    branches: dict[int, list[int]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.statements = dict.fromkeys(self.statement_map, 0)
        self.functions = dict.fromkeys(self.function_map, 0)
        self.branches = {bid: [0] * len(info.arms) for bid, info in self.branch_map.items()}

    def hit_statement(self, sid: int) -> None:
        self.statements[sid] += 1

    def hit_function(self, fid: int) -> None:
        self.functions[fid] += 1

    def hit_branch(self, bid: int, arm: int) -> None:
        self.branches[bid][arm] += 1

    def tally_branch(self, bid: int, arm: int, value: T) -> T:
        self.branches[bid][arm] += 1
        return value

    def same_maps(self, other: FileCoverage) -> bool:
        return (
            self.statement_map == other.statement_map
            and self.function_map == other.function_map
            and self.branch_map == other.branch_map
        )

    def line_hits(self) -> dict[int, int]:
        """Hits per source line, taking the busiest statement starting on each line."""
        lines: dict[int, int] = {}
        for sid, location in self.statement_map.items():
            lines[location.line] = max(lines.get(location.line, 0), self.statements.get(sid, 0))
        return dict(sorted(lines.items()))

    def summary(self) -> FileSummary:
        arm_hits = [hits for counts in self.branches.values() for hits in counts]
        return FileSummary(
            path=self.path,
            statements=Totals.of(self.statements.values()),
            branches=Totals.of(arm_hits),
            functions=Totals.of(self.functions.values()),
            lines=Totals.of(self.line_hits().values()),
        )


class Totals(BaseModel):
    """Covered/total counts for one metric."""

    total: int = 0
    covered: int = 0
    pct: float = Field(default=100.0, description="Percentage covered; 100 when nothing is measurable")

    @classmethod
    def of(cls, hits: Any) -> Totals:
        counts = list(hits)
        covered = sum(1 for h in counts if h > 0)
        return cls(total=len(counts), covered=covered, pct=_pct(covered, len(counts)))

    def __add__(self, other: Totals) -> Totals:
        total = self.total + other.total
        covered = self.covered + other.covered
        return Totals(total=total, covered=covered, pct=_pct(covered, total))


class FileSummary(BaseModel):
    path: str
    statements: Totals
    branches: Totals
    functions: Totals
    lines: Totals


class CoverageSummary(BaseModel):
    files: list[FileSummary] = Field(default_factory=list)
    total: FileSummary


def _pct(covered: int, total: int) -> float:
    return round(100.0 * covered / total, 2) if total else 100.0


class CoverageAccumulator:
    """Collects coverage for instrumented modules, keyed by file path."""

    def __init__(self) -> None:
        self._files: dict[str, FileCoverage] = {}

    def register(self, coverage: FileCoverage) -> FileCoverage:
        """Add coverage maps for a file.

        Counts already collected for the file are kept when its maps are
        unchanged. If the source changed, the new maps replace the old entry.
        """
        existing = self._files.get(coverage.path)
        if existing is not None:
            if existing.same_maps(coverage):
                logger.debug("Coverage for %s already registered; keeping existing counters", coverage.path)
                return existing
            logger.debug("Source of %s changed; replacing its coverage maps", coverage.path)
        self._files[coverage.path] = coverage
        return coverage

    def get(self, path: str) -> FileCoverage | None:
        return self._files.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[FileCoverage]:
        return iter(self._files.values())

    def __len__(self) -> int:
        return len(self._files)

    @property
    def paths(self) -> list[str]:
        return list(self._files)

    def reset(self) -> None:
        """Zero every counter, keeping the registered maps."""
        for coverage in self._files.values():
            coverage.reset()

    def clear(self) -> None:
        self._files.clear()

    def summary(self) -> CoverageSummary:
        files = [coverage.summary() for coverage in sorted(self._files.values(), key=lambda c: c.path)]
        total = FileSummary(path="All files", statements=Totals(), branches=Totals(), functions=Totals(), lines=Totals())
        for item in files:
            total = FileSummary(
                path=total.path,
                statements=total.statements + item.statements,
                branches=total.branches + item.branches,
                functions=total.functions + item.functions,
                lines=total.lines + item.lines,
            )
        return CoverageSummary(files=files, total=total)

    def to_coverage_data(self) -> CoverageData:
        """Export executed lines as an in-memory ``coverage.CoverageData``."""
        data = CoverageData(no_disk=True)
        data.add_lines(
            {
                coverage.path: [line for line, hits in coverage.line_hits().items() if hits]
                for coverage in self._files.values()
            }
        )
        return data


_default_accumulator: CoverageAccumulator | None = None


def get_default_accumulator() -> CoverageAccumulator:
    """Get the process-wide accumulator, creating it on first use."""
    global _default_accumulator
    if _default_accumulator is None:
        _default_accumulator = CoverageAccumulator()
    return _default_accumulator
