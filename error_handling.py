"""
Error handling for alc-lisp
Host-level failures (lexing, parsing, evaluation) and report formatting
"""

from typing import Dict, List, Optional


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class AlcError(Exception):
    """Base class for failures reported to the host.

    ``position`` is a ``(line, col)`` pair when the failure can be tied to
    the source text; ``context`` holds the chain of enclosing frames, outermost
    first, as added by ``with_context``.
    """

    kind = "Error"

    def __init__(self, message: str, position: Optional[tuple] = None,
                 context: Optional[List[str]] = None, source_line: str = ""):
        self.message = message
        self.position = position
        self.context = list(context or [])
        self.source_line = source_line
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        return ": ".join(self.context + [self.message])

    def with_context(self, text: str) -> "AlcError":
        """Return a copy of this error wrapped in one more frame of context"""
        return type(self)(self.message, self.position, [text] + self.context, self.source_line)

    @property
    def root_message(self) -> str:
        return self.message


class AlcLexError(AlcError):
    """Raised when the source cannot be split into tokens"""
    kind = "Lex error"


class AlcParseError(AlcError):
    """Raised on unrecoverable structural problems in the token stream"""
    kind = "Parse error"


class AlcRuntimeError(AlcError):
    """Raised when evaluation has to abort"""
    kind = "Runtime error"


class StackDepthError(AlcRuntimeError):
    """Raised when the call stack would grow past its configured depth.

    ``depth`` is the configured maximum and ``reached`` the number of frames
    active when evaluation gave up. The two differ only when the host ran out
    of stack before the call stack filled up.
    """
    kind = "Stack overflow"

    def __init__(self, depth: int, position: Optional[tuple] = None,
                 context: Optional[List[str]] = None, source_line: str = "",
                 reached: Optional[int] = None):
        self.depth = depth
        self.reached = depth if reached is None else reached
        if self.reached >= depth:
            message = f"stack depth exceeded (max {depth} frames)"
        else:
            message = f"host stack exhausted at {self.reached} frames (max {depth} frames)"
        super().__init__(message, position, context, source_line)

    def with_context(self, text: str) -> "StackDepthError":
        return StackDepthError(self.depth, self.position, [text] + self.context, self.source_line,
                               self.reached)


# ============================================================================
# REPORT FORMATTING
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:
            context_parts.append(f"{'':6}{' ' * max(col_num - 1, 0)}^ Error here")

    return '\n'.join(context_parts)


def make_error_report(error: AlcError, source_text: Optional[str] = None,
                      filename: str = "<input>") -> Dict:
    """Collect everything a host needs to render a failure"""
    line, col = error.position if error.position else (0, 0)
    context = None
    if source_text is not None and line > 0:
        context = get_context_lines(source_text, line, col)
    return {
        'kind': error.kind,
        'message': str(error),
        'filename': filename,
        'line': line,
        'column': col,
        'context': context,
    }


def format_error_report(report: Dict) -> str:
    """Format an error report as a string"""
    if report['line']:
        text = f"{report['kind']} in {report['filename']} at line {report['line']}, column {report['column']}:\n"
    else:
        text = f"{report['kind']} in {report['filename']}:\n"
    text += f"  {report['message']}\n"

    if report['context']:
        text += f"{report['context']}\n"

    return text


def format_error(error: AlcError, source_text: Optional[str] = None, filename: str = "<input>") -> str:
    """Shortcut for ``format_error_report(make_error_report(...))``"""
    return format_error_report(make_error_report(error, source_text, filename))
