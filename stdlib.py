"""
Curly Standard Library
Built-in functions and operators installed in the root environment

Every builtin receives (session, args, span): the interpreter session,
the evaluated arguments and the location of the call. Arity is checked
by the caller from the builtin's min_arity/max_arity.
"""

from typing import Dict, Callable, List, Optional
import math
import operator

from tokenizer import SourceSpan
from utilities import (
  make_unit,
  make_bool,
  make_number,
  make_string,
  make_list,
  render_value,
  values_equal,
  condition_value,
  expect_type,
  expect_callable,
  operation_error,
  runtime_type_error,
  binary_comparison_op,
  binary_arithmetic_op,
  make_builtin,
  is_numeric
)


# ============================================================================
# PRINT FUNCTIONS
# ============================================================================

def curly_print(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """Print a value followed by a newline"""
  print(render_value(args[0]), file=session.stdout)
  return make_unit()


def curly_println(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """Print a value without a trailing newline"""
  print(render_value(args[0]), end='', file=session.stdout)
  return make_unit()


def curly_show(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """Convert a value to its source-form string representation"""
  return make_string(render_value(args[0], quote_strings=True))


# ============================================================================
# CONTROL FLOW
# ============================================================================

def curly_if(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """if cond, then_block [, else_block]"""
  branches = args[1:]
  for i, branch in enumerate(branches, start=2):
    expect_callable("if", i, branch, span)

  if condition_value(args[0], "if", span):
    return session.call_value(branches[0], [], span)
  if len(branches) == 2:
    return session.call_value(branches[1], [], span)
  return make_unit()


def curly_while(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """while cond_block, body_block; the condition is re-evaluated before every pass"""
  cond, body = args
  expect_callable("while", 1, cond, span)
  expect_callable("while", 2, body, span)

  while condition_value(session.call_value(cond, [], span), "while", span):
    session.call_value(body, [], span)
  return make_unit()


def curly_repeat(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """repeat n, { i | ... } runs the body with i = 0 .. n-1"""
  count, body = args
  expect_type("repeat", 1, count, ["Int"], span)
  expect_callable("repeat", 2, body, span)
  if count['value'] < 0:
    raise runtime_type_error(f"repeat count must not be negative, got {count['value']}", span)

  for i in range(count['value']):
    session.call_value(body, [make_number(i)], span)
  return make_unit()


def curly_foreach(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """foreach list, { index, value | ... }"""
  lst, body = args
  expect_type("foreach", 1, lst, ["List"], span)
  expect_callable("foreach", 2, body, span)

  # Iterate over a snapshot so the body may push to the list
  for i, item in enumerate(list(lst['value'])):
    session.call_value(body, [make_number(i), item], span)
  return make_unit()


def curly_each(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """each list, { value | ... }"""
  lst, body = args
  expect_type("each", 1, lst, ["List"], span)
  expect_callable("each", 2, body, span)

  for item in list(lst['value']):
    session.call_value(body, [item], span)
  return make_unit()


# ============================================================================
# LIST FUNCTIONS
# ============================================================================

def curly_length(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """Get length of a list, tuple or string"""
  value = expect_type("length", 1, args[0], ["List", "Tuple", "String"], span)
  return make_number(len(value['value']))


def curly_get(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """Get the element at a 0-based index of a list or tuple"""
  coll, index = args
  expect_type("get", 1, coll, ["List", "Tuple"], span)
  expect_type("get", 2, index, ["Int"], span)

  items = coll['value']
  if not 0 <= index['value'] < len(items):
    raise runtime_type_error(f"index {index['value']} out of range for {coll['type']} of length {len(items)}", span)
  return items[index['value']]


def curly_push(session, args: List[Dict], span: Optional[SourceSpan]) -> Dict:
  """Append a value to a list in place and return the list"""
  lst, value = args
  expect_type("push", 1, lst, ["List"], span)
  lst['value'].append(value)
  return lst


# ============================================================================
# OPERATORS
# ============================================================================

def curly_add(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
  """Add numbers, concatenate strings or lists"""
  if is_numeric(x) and is_numeric(y):
    return make_number(x['value'] + y['value'])
  if x['type'] == "String" and y['type'] == "String":
    return make_string(x['value'] + y['value'])
  if x['type'] == "List" and y['type'] == "List":
    return make_list(x['value'] + y['value'])
  raise operation_error("+", x, y, span)


curly_sub = binary_arithmetic_op(operator.sub, "-")
curly_mul = binary_arithmetic_op(operator.mul, "*")


def _check_divisor(op_name: str, x: Dict, y: Dict, span: Optional[SourceSpan]) -> None:
  if not (is_numeric(x) and is_numeric(y)):
    raise operation_error(op_name, x, y, span)
  if y['value'] == 0:
    raise runtime_type_error("division by zero", span)


def curly_div(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
  """Division; Int / Int truncates toward zero"""
  _check_divisor("/", x, y, span)
  a, b = x['value'], y['value']
  if x['type'] == "Int" and y['type'] == "Int":
    quotient = abs(a) // abs(b)
    return make_number(quotient if (a < 0) == (b < 0) else -quotient)
  return make_number(a / b)


def curly_mod(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
  """Remainder with the sign of the dividend, matching truncating division"""
  _check_divisor("%", x, y, span)
  a, b = x['value'], y['value']
  if x['type'] == "Int" and y['type'] == "Int":
    remainder = abs(a) % abs(b)
    return make_number(remainder if a >= 0 else -remainder)
  return make_number(math.fmod(a, b))


def curly_eq(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
  """Structural equality"""
  return make_bool(values_equal(x, y))


def curly_ne(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_bool(not values_equal(x, y))


curly_lt = binary_comparison_op(operator.lt, "<")
curly_le = binary_comparison_op(operator.le, "<=")
curly_gt = binary_comparison_op(operator.gt, ">")
curly_ge = binary_comparison_op(operator.ge, ">=")


def curly_and(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
  """Logical and; both operands are already evaluated"""
  left = condition_value(x, "'&&'", span)
  right = condition_value(y, "'&&'", span)
  return make_bool(left and right)


def curly_or(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
  left = condition_value(x, "'||'", span)
  right = condition_value(y, "'||'", span)
  return make_bool(left or right)


def curly_negate(x: Dict, span: Optional[SourceSpan] = None) -> Dict:
  if not is_numeric(x):
    raise operation_error("-", x, span=span)
  return make_number(-x['value'])


def curly_plus(x: Dict, span: Optional[SourceSpan] = None) -> Dict:
  if not is_numeric(x):
    raise operation_error("+", x, span=span)
  return x


def curly_not(x: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_bool(not condition_value(x, "'!'", span))


BINARY_OPERATORS: Dict[str, Callable] = {
    "+": curly_add,
    "-": curly_sub,
    "*": curly_mul,
    "/": curly_div,
    "%": curly_mod,
    "==": curly_eq,
    "!=": curly_ne,
    "<": curly_lt,
    "<=": curly_le,
    ">": curly_gt,
    ">=": curly_ge,
    "&&": curly_and,
    "||": curly_or,
}

UNARY_OPERATORS: Dict[str, Callable] = {
    "-": curly_negate,
    "+": curly_plus,
    "!": curly_not,
}


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

BUILTIN_FUNCTIONS: Dict[str, Dict] = {
    # I/O functions
    "print": make_builtin("print", curly_print, 1),
    "println": make_builtin("println", curly_println, 1),
    "show": make_builtin("show", curly_show, 1),

    # Control flow
    "if": make_builtin("if", curly_if, 2, 3),
    "while": make_builtin("while", curly_while, 2),
    "repeat": make_builtin("repeat", curly_repeat, 2),
    "foreach": make_builtin("foreach", curly_foreach, 2),
    "each": make_builtin("each", curly_each, 2),

    # List functions
    "length": make_builtin("length", curly_length, 1),
    "get": make_builtin("get", curly_get, 2),
    "push": make_builtin("push", curly_push, 2),
}


def list_builtin_functions() -> List[str]:
  """List all available built-in functions"""
  return list(BUILTIN_FUNCTIONS.keys())
