"""
Curly Programming Language Parser
Recursive-descent parser producing an AST with source spans.
Statement terminators and argument commas are optional in places;
the rules resolving them are implemented in CurlyParser.
"""

import sys
from typing import List, Any, Tuple, Optional, Union
from dataclasses import dataclass, field

from tokenizer import Token, SourceSpan, CurlyTokenizer, describe_token
from error_handling import CurlyParseError


# ============================================================================
# AST NODES
# ============================================================================

@dataclass(frozen=True)
class Literal:
    """Int, Float or String literal"""
    value: Union[int, float, str]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Identifier:
    name: str
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Assignment:
    target: str
    expr: Any
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Call:
    callee: Any
    args: Tuple[Any, ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class DotCall:
    """receiver.name args - field access or call with the receiver first"""
    receiver: Any
    name: str
    args: Tuple[Any, ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Block:
    statements: Tuple[Any, ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class LambdaDef:
    params: Tuple[str, ...]
    body: Block
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ListLiteral:
    elems: Tuple[Any, ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class TupleLiteral:
    elems: Tuple[Any, ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class VariantDecl:
    """One constructor of a declared type; no fields means an enum-style tag"""
    name: str
    fields: Tuple[str, ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class TypeDecl:
    name: str
    variants: Tuple[VariantDecl, ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Any
    right: Any
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Any
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Return:
    """return expr - leave the innermost running closure with a value"""
    value: Optional[Any]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


# Binary operator precedence, loosest first. '=' outside an assignment is equality.
BINARY_LEVELS = [
    ('||',),
    ('&&',),
    ('==', '!=', '='),
    ('<', '<=', '>', '>='),
    ('+', '-'),
    ('*', '/', '%'),
]

UNARY_OPERATORS = ('-', '+', '!')

# '-' and '+' written against their operand can start a call argument
SIGN_OPERATORS = ('-', '+')

LITERAL_TOKENS = ("INT", "FLOAT", "STRING")

RETURN_KEYWORD = "return"


# ============================================================================
# PARSER
# ============================================================================

class CurlyParser:
    """Curly parser combining the tokenizer and the recursive-descent grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.tokens: List[Token] = []
        self.pos = 0

    def parse_file(self, filepath: str) -> Block:
        """Parse a Curly source file"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_string(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> Block:
        """Parse Curly source code from string"""
        return self.parse_tokens(self.tokenize(text, filename))

    def parse_expression(self, text: str, filename: str = "<input>") -> Any:
        """Parse a single Curly expression"""
        self._reset(self.tokenize(text, filename))
        self._skip_newlines()
        expr = self._parse_expression(allow_block=True)
        self._skip_newlines()
        self._expect_type("EOF", "end of expression")
        return expr

    def tokenize(self, text: str, filename: str = "<input>") -> List[Token]:
        """Tokenize Curly source code"""
        return CurlyTokenizer(filename).tokenize(text)

    def parse_tokens(self, tokens: List[Token]) -> Block:
        """Parse a whole program from a token stream"""
        self._reset(tokens)
        start = self._current().span
        statements = self._parse_statements(closer=None)
        self._expect_type("EOF", "end of input")
        if self.debug:
            print(f"Parsed {len(statements)} top-level statements", file=sys.stderr)
        return Block(tuple(statements), span=start)

    # ------------------------------------------------------------------
    # Token cursor
    # ------------------------------------------------------------------

    def _reset(self, tokens: List[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.type != "EOF":
            self.pos += 1
        return token

    def _at_symbol(self, symbol: str) -> bool:
        return self._current().is_symbol(symbol)

    def _skip_newlines(self) -> None:
        while self._current().type == "NEWLINE":
            self._advance()

    def _skip_separators(self) -> None:
        while self._current().type == "NEWLINE" or self._at_symbol(';'):
            self._advance()

    def _error(self, message: str, token: Optional[Token] = None) -> CurlyParseError:
        token = token or self._current()
        return CurlyParseError(message, token.span.line, token.span.column)

    def _expect_symbol(self, symbol: str, context: str = "") -> Token:
        if not self._at_symbol(symbol):
            where = f" {context}" if context else ""
            raise self._error(f"expected '{symbol}'{where}, found {describe_token(self._current())}")
        return self._advance()

    def _expect_type(self, token_type: str, description: str) -> Token:
        if self._current().type != token_type:
            raise self._error(f"expected {description}, found {describe_token(self._current())}")
        return self._advance()

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _parse_statements(self, closer: Optional[str]) -> List[Any]:
        """Parse statements up to EOF or the closing symbol (not consumed)"""
        statements = []
        while True:
            self._skip_separators()
            token = self._current()
            if token.type == "EOF" or (closer and token.is_symbol(closer)):
                return statements

            statements.append(self._parse_statement())

            if not self._at_statement_end(closer):
                raise self._error(
                    f"expected end of statement (';' or newline), found {describe_token(self._current())}"
                )

    def _at_statement_end(self, closer: Optional[str]) -> bool:
        token = self._current()
        if token.type in ("NEWLINE", "EOF") or token.is_symbol(';'):
            return True
        return bool(closer) and token.is_symbol(closer)

    def _parse_statement(self) -> Any:
        token = self._current()

        if token.type == "IDENTIFIER":
            if (token.value == "type" and self._peek(1).type == "IDENTIFIER"
                    and self._peek(2).is_symbol('=')):
                return self._parse_type_decl()

            if token.value != RETURN_KEYWORD and self._peek(1).is_symbol('='):
                self._advance()
                self._advance()
                self._skip_newlines()
                expr = self._parse_expression(allow_block=True)
                return Assignment(token.value, expr, span=token.span)

        return self._parse_expression(allow_block=True)

    def _parse_type_decl(self) -> TypeDecl:
        """type Name = Ctor1(f1, f2) | Ctor2 | Ctor3(f1)"""
        keyword = self._advance()
        name = self._expect_type("IDENTIFIER", "type name").value
        self._expect_symbol('=', "after type name")
        self._skip_newlines()

        variants = [self._parse_variant()]
        while True:
            # A variant list may continue on a line that starts with '|'
            offset = 0
            while self._peek(offset).type == "NEWLINE":
                offset += 1
            if not self._peek(offset).is_symbol('|'):
                break
            for _ in range(offset + 1):
                self._advance()
            self._skip_newlines()
            variants.append(self._parse_variant())

        seen = set()
        for variant in variants:
            if variant.name in seen:
                raise CurlyParseError(
                    f"duplicate variant '{variant.name}' in type '{name}'",
                    variant.span.line, variant.span.column
                )
            seen.add(variant.name)

        return TypeDecl(name, tuple(variants), span=keyword.span)

    def _parse_variant(self) -> VariantDecl:
        token = self._expect_type("IDENTIFIER", "constructor name")
        fields: List[str] = []

        if self._at_symbol('('):
            self._advance()
            while not self._at_symbol(')'):
                field_token = self._expect_type("IDENTIFIER", "field name")
                if field_token.value in fields:
                    raise self._error(f"duplicate field '{field_token.value}'", field_token)
                fields.append(field_token.value)
                if not self._at_symbol(','):
                    break
                self._advance()
            self._expect_symbol(')', f"to close the fields of '{token.value}'")

        return VariantDecl(token.value, tuple(fields), span=token.span)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expression(self, allow_block: bool) -> Any:
        """
        Parse an expression.

        allow_block is False inside call arguments: a nested call there may
        not take a comma-less trailing lambda, which belongs to the outer call.
        """
        return self._parse_binary(0, allow_block)

    def _parse_binary(self, level: int, allow_block: bool) -> Any:
        if level == len(BINARY_LEVELS):
            return self._parse_unary(allow_block)

        operators = BINARY_LEVELS[level]
        left = self._parse_binary(level + 1, allow_block)

        while True:
            token = self._current()
            if token.type not in ("OPERATOR", "PUNCT") or token.value not in operators:
                return left
            self._advance()
            self._skip_newlines()
            right = self._parse_binary(level + 1, allow_block)
            op = '==' if token.value == '=' else token.value
            left = BinaryOp(op, left, right, span=token.span)

    def _parse_unary(self, allow_block: bool) -> Any:
        token = self._current()
        if token.type == "OPERATOR" and token.value in UNARY_OPERATORS:
            self._advance()
            operand = self._parse_unary(allow_block)
            return UnaryOp(token.value, operand, span=token.span)
        return self._parse_postfix(allow_block)

    def _parse_postfix(self, allow_block: bool) -> Any:
        expr = self._parse_primary(allow_block)

        while self._at_symbol('.'):
            self._advance()
            name_token = self._expect_type("IDENTIFIER", "name after '.'")
            args: Tuple[Any, ...] = ()
            if self._starts_argument(allow_block):
                args = self._parse_arguments(allow_block)
            expr = DotCall(expr, name_token.value, args, span=name_token.span)

        return expr

    def _parse_primary(self, allow_block: bool) -> Any:
        token = self._current()

        if token.type in LITERAL_TOKENS:
            self._advance()
            return Literal(token.value, span=token.span)

        if token.type == "IDENTIFIER" and token.value == RETURN_KEYWORD:
            self._advance()
            value = self._parse_expression(allow_block) if self._starts_expression() else None
            return Return(value, span=token.span)

        if token.type == "IDENTIFIER":
            self._advance()
            ident = Identifier(token.value, span=token.span)
            if self._starts_argument(allow_block):
                return Call(ident, self._parse_arguments(allow_block), span=token.span)
            return ident

        if token.is_symbol('('):
            return self._parse_parenthesized()

        if token.is_symbol('['):
            return self._parse_list()

        if token.is_symbol('{'):
            return self._parse_lambda()

        raise self._error(f"expected an expression, found {describe_token(token)}")

    def _starts_argument(self, allow_block: bool) -> bool:
        """Whether the current token can begin a call argument"""
        token = self._current()
        if token.type in LITERAL_TOKENS or token.type == "IDENTIFIER":
            return True
        if token.is_symbol('(') or token.is_symbol('[') or token.is_symbol('!'):
            return True
        if self._at_prefix_sign():
            return True
        return allow_block and token.is_symbol('{')

    def _at_prefix_sign(self) -> bool:
        """
        A '-' or '+' with space before it and none after: 'print -1' passes
        a negative argument while 'a - 1' and 'a-1' stay subtractions.
        """
        token = self._current()
        if token.type != "OPERATOR" or token.value not in SIGN_OPERATORS or self.pos == 0:
            return False

        previous = self.tokens[self.pos - 1].span
        following = self._peek(1)
        if following.type in ("NEWLINE", "EOF"):
            return False
        spaced_before = (previous.end_line, previous.end_col) != (token.span.start_line, token.span.start_col)
        touches_next = (token.span.end_line, token.span.end_col) == (following.span.start_line, following.span.start_col)
        return spaced_before and touches_next

    def _starts_expression(self) -> bool:
        token = self._current()
        if token.type == "OPERATOR" and token.value in UNARY_OPERATORS:
            return True
        return self._starts_argument(allow_block=True)

    def _parse_arguments(self, allow_block: bool) -> Tuple[Any, ...]:
        """
        Parse call arguments after the callee.

        Arguments are separated by ','. A lambda literal may follow the
        previous argument (or the callee) without a comma; a comma before it
        is accepted and discarded. 'f ()' is a call with no arguments.
        """
        if self._at_symbol('(') and self._peek(1).is_symbol(')'):
            self._advance()
            self._advance()
            return ()

        args = []
        while True:
            if self._at_symbol('{'):
                args.append(self._parse_lambda())
            else:
                args.append(self._parse_expression(allow_block=False))

            if self._at_symbol(','):
                self._advance()
                self._skip_newlines()
                continue
            if allow_block and self._at_symbol('{'):
                continue
            break

        if self._starts_argument(allow_block=False):
            raise self._error(f"expected ',' between arguments, found {describe_token(self._current())}")

        return tuple(args)

    def _parse_parenthesized(self) -> Any:
        """(expr) groups; (), (a,) and (a, b) are tuples"""
        open_token = self._advance()

        if self._at_symbol(')'):
            self._advance()
            return TupleLiteral((), span=open_token.span)

        first = self._parse_expression(allow_block=True)
        if self._at_symbol(')'):
            self._advance()
            return first

        elems = [first]
        while self._at_symbol(','):
            self._advance()
            if self._at_symbol(')'):
                break
            elems.append(self._parse_expression(allow_block=True))

        self._expect_symbol(')', f"to close '(' opened at line {open_token.span.line}, column {open_token.span.column}")
        return TupleLiteral(tuple(elems), span=open_token.span)

    def _parse_list(self) -> ListLiteral:
        open_token = self._advance()
        elems = []

        while not self._at_symbol(']'):
            elems.append(self._parse_expression(allow_block=True))
            if not self._at_symbol(','):
                break
            self._advance()

        self._expect_symbol(']', f"to close '[' opened at line {open_token.span.line}, column {open_token.span.column}")
        return ListLiteral(tuple(elems), span=open_token.span)

    def _parse_lambda(self) -> LambdaDef:
        """{ a, b | statements } or { statements }"""
        open_token = self._expect_symbol('{')
        params = self._parse_lambda_params()

        statements = self._parse_statements(closer='}')
        self._expect_symbol('}', f"to close '{{' opened at line {open_token.span.line}, column {open_token.span.column}")

        body = Block(tuple(statements), span=open_token.span)
        return LambdaDef(tuple(params), body, span=open_token.span)

    def _parse_lambda_params(self) -> List[str]:
        """Consume a parameter header 'a, b |' if one follows the brace"""
        offset = 0
        while self._peek(offset).type == "NEWLINE":
            offset += 1

        names = []
        while True:
            token = self._peek(offset)
            if token.type != "IDENTIFIER":
                return []
            names.append(token)
            separator = self._peek(offset + 1)
            offset += 2
            if separator.is_symbol('|'):
                break
            if not separator.is_symbol(','):
                return []

        params = []
        for token in names:
            if token.value in params:
                raise self._error(f"duplicate parameter '{token.value}'", token)
            params.append(token.value)

        for _ in range(offset):
            self._advance()
        return params


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> CurlyParser:
    """Create a Curly parser"""
    return CurlyParser(debug=debug)


def create_debug_parser() -> CurlyParser:
    """Create a Curly parser with debug enabled"""
    return CurlyParser(debug=True)


def pretty_print_ast(node: Any, indent: int = 0) -> str:
    """Pretty print an AST node for debugging"""
    pad = "  " * indent

    if isinstance(node, Literal):
        return f"{pad}Literal({node.value!r})\n"
    if isinstance(node, Identifier):
        return f"{pad}Identifier({node.name})\n"
    if isinstance(node, Assignment):
        return f"{pad}Assignment({node.target})\n" + pretty_print_ast(node.expr, indent + 1)
    if isinstance(node, Call):
        result = f"{pad}Call\n" + pretty_print_ast(node.callee, indent + 1)
        for arg in node.args:
            result += pretty_print_ast(arg, indent + 1)
        return result
    if isinstance(node, DotCall):
        result = f"{pad}DotCall(.{node.name})\n" + pretty_print_ast(node.receiver, indent + 1)
        for arg in node.args:
            result += pretty_print_ast(arg, indent + 1)
        return result
    if isinstance(node, LambdaDef):
        return f"{pad}LambdaDef({', '.join(node.params)})\n" + pretty_print_ast(node.body, indent + 1)
    if isinstance(node, Block):
        result = f"{pad}Block\n"
        for statement in node.statements:
            result += pretty_print_ast(statement, indent + 1)
        return result
    if isinstance(node, (ListLiteral, TupleLiteral)):
        result = f"{pad}{type(node).__name__}\n"
        for elem in node.elems:
            result += pretty_print_ast(elem, indent + 1)
        return result
    if isinstance(node, TypeDecl):
        result = f"{pad}TypeDecl({node.name})\n"
        for variant in node.variants:
            result += f"{pad}  Variant({variant.name}: {', '.join(variant.fields)})\n"
        return result
    if isinstance(node, BinaryOp):
        return (f"{pad}BinaryOp({node.op})\n" + pretty_print_ast(node.left, indent + 1)
                + pretty_print_ast(node.right, indent + 1))
    if isinstance(node, UnaryOp):
        return f"{pad}UnaryOp({node.op})\n" + pretty_print_ast(node.operand, indent + 1)
    if isinstance(node, Return):
        if node.value is None:
            return f"{pad}Return\n"
        return f"{pad}Return\n" + pretty_print_ast(node.value, indent + 1)
    return f"{pad}{node!r}\n"
