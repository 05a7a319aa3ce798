"""
Curly tokenizer
Turns source text into a flat token stream with source spans.
Token patterns are pyparsing elements scanned over the whole text.
"""

from typing import List, Any, Optional, Tuple
from dataclasses import dataclass

from pyparsing import (
    Literal, MatchFirst, ParseBaseException, ParseFatalException, ParserElement,
    Regex, Word, alphanums, alphas, c_style_comment, col, lineno, one_of
)

from error_handling import CurlyLexError, enhance_pyparsing_exception


OPERATORS = {'+', '-', '*', '/', '%', '==', '!=', '<', '<=', '>', '>=', '&&', '||', '!'}
PUNCTUATION = {'(', ')', '[', ']', '{', '}', ',', '|', '=', ';', '.'}

OPENING_BRACKETS = {'(': ')', '[': ']', '{': '}'}
CLOSING_BRACKETS = {')', ']', '}'}

# Characters that may separate tokens; newlines are tokens of their own
INLINE_WHITESPACE = " \t\r\f\v"


@dataclass(frozen=True)
class SourceSpan:
    """Source location information for tokens and AST nodes"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    @property
    def line(self) -> int:
        return self.start_line

    @property
    def column(self) -> int:
        return self.start_col

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


@dataclass(frozen=True)
class Token:
    """Curly token with source information"""
    type: str
    value: Any
    span: SourceSpan

    def is_symbol(self, symbol: str) -> bool:
        return self.type in ("PUNCT", "OPERATOR") and self.value == symbol

    def __str__(self) -> str:
        return f"{self.type}({self.value!r})"


def _fail(message: str):
    """Build a parse action that rejects the match as a fatal lexical error"""
    def action(text, loc, toks):
        raise ParseFatalException(text, loc, message)
    return action


class CurlyTokenizer:
    """Curly tokenizer built from pyparsing token patterns"""

    def __init__(self, filename: str = "<input>"):
        self.filename = filename
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns, in priority order"""

        block_comment = c_style_comment.copy().set_parse_action(lambda t: ("COMMENT", t[0]))
        line_comment = Regex(r"//[^\n]*").set_parse_action(lambda t: ("COMMENT", t[0]))
        open_comment = Regex(r"/\*").set_parse_action(_fail("unterminated block comment"))

        # Strings may span lines; backslashes are kept as written
        string_literal = Regex(r'"[^"]*"').set_parse_action(lambda t: ("STRING", t[0][1:-1]))
        open_string = Regex(r'"').set_parse_action(_fail("unterminated string literal"))

        # Numbers: a fraction or exponent makes the literal a Float
        number = Regex(r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?").set_parse_action(
            lambda t: ("FLOAT", t[0]) if any(c in t[0] for c in ".eE") else ("INT", t[0])
        )

        identifier = Word(alphas + "_", alphanums + "_").set_parse_action(lambda t: ("IDENTIFIER", t[0]))

        newline = Literal("\n").set_parse_action(lambda t: ("NEWLINE", "\n"))

        symbol = one_of(sorted(OPERATORS | PUNCTUATION)).set_parse_action(lambda t: ("SYMBOL", t[0]))

        patterns = MatchFirst([
            block_comment,
            line_comment,
            open_comment,
            string_literal,
            open_string,
            number,
            identifier,
            newline,
            symbol,
        ])
        # Newlines are tokens; only inline whitespace separates tokens
        for pattern in patterns.exprs:
            pattern.set_whitespace_chars(INLINE_WHITESPACE)
        patterns.set_whitespace_chars(INLINE_WHITESPACE)
        patterns.parse_with_tabs()
        self.token_pattern: ParserElement = patterns

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize Curly source code, ending the stream with an EOF token"""
        tokens: List[Token] = []
        brackets: List[str] = []
        last_end = 0

        try:
            for result, start, end in self.token_pattern.scan_string(text):
                self._check_gap(text, last_end, start)
                last_end = end

                token_type, raw = result[0]
                if token_type == "COMMENT":
                    continue

                span = self._make_span(text, start, end)

                if token_type == "NEWLINE":
                    # Newlines end statements only at block level
                    if brackets and brackets[-1] != '{':
                        continue
                    if not tokens or tokens[-1].type == "NEWLINE":
                        continue
                    tokens.append(Token("NEWLINE", "\n", span))
                    continue

                token_type, value = self._convert(token_type, raw)
                if value in OPENING_BRACKETS and token_type == "PUNCT":
                    brackets.append(value)
                elif value in CLOSING_BRACKETS and token_type == "PUNCT" and brackets:
                    brackets.pop()

                tokens.append(Token(token_type, value, span))

            self._check_gap(text, last_end, len(text))
        except ParseBaseException as e:
            raise enhance_pyparsing_exception(e) from None

        tokens.append(Token("EOF", None, self._make_span(text, len(text), len(text))))
        return tokens

    def _convert(self, token_type: str, raw: str) -> Tuple[str, Any]:
        """Turn a raw pattern match into the token's type and payload"""
        if token_type == "INT":
            return "INT", int(raw)
        if token_type == "FLOAT":
            return "FLOAT", float(raw)
        if token_type == "SYMBOL":
            return ("OPERATOR" if raw in OPERATORS else "PUNCT"), raw
        return token_type, raw

    def _check_gap(self, text: str, start: int, end: int) -> None:
        """Text no pattern matched may only be whitespace"""
        for pos in range(start, end):
            char = text[pos]
            if char not in INLINE_WHITESPACE:
                raise CurlyLexError(f"unexpected character {char!r}", lineno(pos, text), col(pos, text))

    def _make_span(self, text: str, start: int, end: int) -> SourceSpan:
        return SourceSpan(
            self.filename,
            lineno(start, text), col(start, text),
            lineno(end, text), col(end, text),
            text[start:end]
        )


def tokenize(text: str, filename: str = "<input>") -> List[Token]:
    """Tokenize Curly source code"""
    return CurlyTokenizer(filename).tokenize(text)


def describe_token(token: Optional[Token]) -> str:
    """Human readable description of a token for error messages"""
    if token is None or token.type == "EOF":
        return "end of input"
    if token.type == "NEWLINE":
        return "end of line"
    if token.type == "IDENTIFIER":
        return f"identifier '{token.value}'"
    if token.type in ("INT", "FLOAT"):
        return f"number {token.span.text}"
    if token.type == "STRING":
        return f"string \"{token.value}\""
    return f"'{token.value}'"
