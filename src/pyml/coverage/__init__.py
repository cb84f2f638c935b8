"""Coverage instrumentation for PyML modules."""

from .accumulator import (
    BranchInfo,
    CoverageAccumulator,
    CoverageSummary,
    FileCoverage,
    FileSummary,
    FunctionInfo,
    Location,
    Totals,
    get_default_accumulator,
)
from .instrumenter import COVERAGE_GLOBAL, CoverageInstrumenter
from .report import render_coverage_table


__all__ = [
    "COVERAGE_GLOBAL",
    "BranchInfo",
    "CoverageAccumulator",
    "CoverageInstrumenter",
    "CoverageSummary",
    "FileCoverage",
    "FileSummary",
    "FunctionInfo",
    "Location",
    "Totals",
    "get_default_accumulator",
    "render_coverage_table",
]
