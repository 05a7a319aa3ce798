"""
Error taxonomy and diagnostics for the Curly interpreter
Every stage reports failures as a CurlyError carrying a source location
"""

from typing import List, Optional, Dict
from pyparsing import ParseBaseException


# ============================================================================
# ERROR CLASSES
# ============================================================================

class CurlyError(Exception):
    """Base class for every error the interpreter reports to the user"""
    stage = "Curly"

    def __init__(self, message: str, line: int = 0, column: int = 0):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(message)

    def __str__(self) -> str:
        return format_diagnostic(self.stage, self.message, self.line, self.column)


class CurlyLexError(CurlyError):
    """Invalid character, unterminated string or block comment"""
    stage = "Lex"


class CurlyParseError(CurlyError):
    """Unexpected token, unmatched bracket, malformed declaration"""
    stage = "Parse"


class CurlyRuntimeError(CurlyError):
    """Errors raised while evaluating a program"""
    stage = "Runtime"


class CurlyArityError(CurlyRuntimeError):
    """Closure, builtin or constructor called with the wrong argument count"""
    stage = "Arity"


class CurlyUnboundNameError(CurlyRuntimeError):
    """Name referenced before it is bound, or declared twice"""
    stage = "Unbound"


class CurlyTypeError(CurlyRuntimeError):
    """Value of the wrong shape: not callable, non-boolean condition, bad operand"""
    stage = "Type"


# ============================================================================
# FORMATTING
# ============================================================================

def format_diagnostic(stage: str, message: str, line: int = 0, column: int = 0) -> str:
    """Render the one-line diagnostic written to stderr"""
    if line:
        return f"{stage}Error: {message} (line {line}, column {column})"
    return f"{stage}Error: {message}"


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
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^ Error here")

    return '\n'.join(context_parts)


def generate_suggestions(error: CurlyError) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []
    message = error.message

    if "between arguments" in message:
        suggestions.append("Separate call arguments with ',' (only a trailing { ... } may omit it)")

    if "unterminated string" in message:
        suggestions.append("Close the string literal with '\"'")

    if "unterminated block comment" in message:
        suggestions.append("Close the block comment with '*/'")

    if "end of statement" in message:
        suggestions.append("Put each statement on its own line or separate them with ';'")

    if isinstance(error, CurlyUnboundNameError) and "already" not in message:
        suggestions.append("Bind the name with 'name = ...' or declare it with 'type' before using it")

    if isinstance(error, CurlyArityError):
        suggestions.append("Check the number of parameters between '{' and '|'")

    if "condition" in message:
        suggestions.append("Conditions must be Booleans, e.g. produced by '==' or '<'")

    return suggestions


def make_error_report(error: CurlyError, source_text: Optional[str] = None) -> Dict:
    """Create an error report structure for display"""
    context = None
    if source_text is not None and error.line:
        context = get_context_lines(source_text, error.line, max(error.column, 1))

    return {
        'stage': error.stage,
        'message': error.message,
        'line': error.line,
        'column': error.column,
        'context': context,
        'suggestions': generate_suggestions(error)
    }


def format_error_report(report: Dict) -> str:
    """Format an error report as the diagnostic line plus optional detail"""
    result = format_diagnostic(report['stage'], report['message'], report['line'], report['column'])

    if report['context']:
        result += f"\n{report['context']}"

    if report['suggestions']:
        result += "\n  Suggestions:"
        for suggestion in report['suggestions']:
            result += f"\n    - {suggestion}"

    return result


# ============================================================================
# PYPARSING CONVERSION
# ============================================================================

def enhance_pyparsing_exception(exc: ParseBaseException) -> CurlyLexError:
    """Convert a pyparsing exception raised by a token pattern to a CurlyLexError"""
    return CurlyLexError(exc.msg, exc.lineno, exc.col)
