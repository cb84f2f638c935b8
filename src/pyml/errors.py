"""Exceptions raised by the PyML load pipeline."""


class PymlError(Exception):
    """Base class for PyML errors that are not syntax errors."""


class ConfigurationError(PymlError, ValueError):
    """Raised when the load pipeline is wired inconsistently."""


class MarkupSyntaxError(SyntaxError):
    """Malformed markup literal in a ``.pyml`` source file.

    Subclasses :class:`SyntaxError` so importers see the usual
    ``filename``/``lineno``/``offset`` attributes and tracebacks.
    """

    def __init__(self, msg: str, source: str, pos: int, filename: str) -> None:
        lineno = source.count("\n", 0, pos) + 1
        line_start = source.rfind("\n", 0, pos) + 1
        line_end = source.find("\n", pos)
        if line_end == -1:
            line_end = len(source)
        text = source[line_start:line_end]
        super().__init__(msg, (filename, lineno, pos - line_start + 1, text))
