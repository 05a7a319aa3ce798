"""
Utilities module for the Curly interpreter
Runtime value constructors, equality, rendering and error builders
shared by the evaluator and the standard library
"""

import math
from typing import Any, Dict, List, Optional, Callable, Sequence

from error_handling import CurlyArityError, CurlyTypeError, CurlyUnboundNameError
from tokenizer import SourceSpan


NUMERIC_TYPES = ("Int", "Float")
CALLABLE_TYPES = ("Closure", "Builtin", "Constructor")


# ==================== VALUE CONSTRUCTORS ====================

def make_value(value: Any, type_name: str = "Unit") -> Dict:
  """Create a runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_unit() -> Dict:
  """The value of statements that produce nothing"""
  return make_value(None, "Unit")


def make_bool(value: bool) -> Dict:
  return make_value(bool(value), "Boolean")


def make_number(value: Any) -> Dict:
  """Wrap a Python int or float as Int or Float"""
  if isinstance(value, float):
    return make_value(value, "Float")
  return make_value(value, "Int")


def make_string(value: str) -> Dict:
  return make_value(value, "String")


def make_list(items: List[Dict]) -> Dict:
  return make_value(list(items), "List")


def make_tuple(items: Sequence[Dict]) -> Dict:
  return make_value(tuple(items), "Tuple")


def make_builtin(name: str, func: Callable, min_arity: int, max_arity: Optional[int] = None) -> Dict:
  """Create a native callable; func receives (session, args, span)"""
  return {
      'type': 'Builtin',
      'name': name,
      'func': func,
      'min_arity': min_arity,
      'max_arity': min_arity if max_arity is None else max_arity
  }


def make_constructor(type_name: str, ctor_name: str, fields: Sequence[str]) -> Dict:
  """Create the callable that builds instances of one declared variant"""
  return {
      'type': 'Constructor',
      'type_name': type_name,
      'ctor_name': ctor_name,
      'fields': tuple(fields)
  }


def make_instance(constructor: Dict, values: Sequence[Dict]) -> Dict:
  """Create an instance of a declared variant; fields cannot change afterwards"""
  return {
      'type': 'Instance',
      'type_name': constructor['type_name'],
      'ctor_name': constructor['ctor_name'],
      'fields': constructor['fields'],
      'values': tuple(values)
  }


def make_tag(type_name: str, ctor_name: str) -> Dict:
  """Create the singleton value of an enum-style variant"""
  return {
      'type': 'NullaryTag',
      'type_name': type_name,
      'ctor_name': ctor_name
  }


# ==================== TYPE CHECKING UTILITIES ====================

def is_callable_value(val: Dict) -> bool:
  """Closures, builtins and constructors can be called"""
  return val.get('type') in CALLABLE_TYPES


def is_numeric(val: Dict) -> bool:
  return val.get('type') in NUMERIC_TYPES


def describe_type(val: Dict) -> str:
  """Type name used in error messages; declared values report their type"""
  if val['type'] in ('Instance', 'NullaryTag'):
    return val['type_name']
  return val['type']


def get_field(instance: Dict, name: str) -> Optional[Dict]:
  """Look up a named field of an instance"""
  if name in instance['fields']:
    return instance['values'][instance['fields'].index(name)]
  return None


# ==================== EQUALITY ====================

def boolean_of(value: Dict) -> Optional[bool]:
  """
  Truth value of a Boolean, or of the True/False tag of a declared
  'Boolean' type; None for anything else
  """
  if value['type'] == "Boolean":
    return value['value']
  if (value['type'] == "NullaryTag" and value['type_name'] == "Boolean"
      and value['ctor_name'] in ("True", "False")):
    return value['ctor_name'] == "True"
  return None


def values_equal(left: Dict, right: Dict) -> bool:
  """
  Structural equality of runtime values

  Declared values are equal when type name and variant name match and,
  for instances, every field is equal. Closures and builtins compare by identity.
  """
  left_type, right_type = left['type'], right['type']

  if left_type in NUMERIC_TYPES and right_type in NUMERIC_TYPES:
    return left['value'] == right['value']

  left_bool, right_bool = boolean_of(left), boolean_of(right)
  if left_bool is not None and right_bool is not None:
    return left_bool == right_bool

  if left_type != right_type:
    return False

  if left_type in ("String", "Boolean"):
    return left['value'] == right['value']

  if left_type == "Unit":
    return True

  if left_type in ("List", "Tuple"):
    return (len(left['value']) == len(right['value'])
            and all(values_equal(a, b) for a, b in zip(left['value'], right['value'])))

  if left_type in ("NullaryTag", "Constructor"):
    return (left['type_name'] == right['type_name']
            and left['ctor_name'] == right['ctor_name'])

  if left_type == "Instance":
    return (left['type_name'] == right['type_name']
            and left['ctor_name'] == right['ctor_name']
            and all(values_equal(a, b) for a, b in zip(left['values'], right['values'])))

  return left is right


# ==================== RENDERING ====================

def render_value(value: Dict, quote_strings: bool = False) -> str:
  """
  Render a value as text

  Args:
    value: Runtime value
    quote_strings: Render a top-level String in source form ("...")

  Returns:
    Text form. Values nested in lists, tuples and instances are always
    rendered in source form, so literals and collections read back as code.
  """
  value_type = value['type']

  if value_type == "String":
    return f'"{value["value"]}"' if quote_strings else value['value']
  if value_type == "Int":
    return str(value['value'])
  if value_type == "Float":
    number = value['value']
    # An overflowing literal reads back as infinity
    if math.isinf(number):
      return "1e999" if number > 0 else "-1e999"
    return repr(number)
  if value_type == "Boolean":
    return "True" if value['value'] else "False"
  if value_type == "List":
    return "[" + ", ".join(render_value(v, True) for v in value['value']) + "]"
  if value_type == "Tuple":
    items = [render_value(v, True) for v in value['value']]
    if len(items) == 1:
      return f"({items[0]},)"
    return "(" + ", ".join(items) + ")"
  if value_type == "Instance":
    return f"{value['ctor_name']}(" + ", ".join(render_value(v, True) for v in value['values']) + ")"
  if value_type == "NullaryTag":
    return value['ctor_name']
  if value_type == "Closure":
    name = f" {value['name']}" if value.get('name') else ""
    return f"<closure{name}/{len(value['params'])}>"
  if value_type == "Builtin":
    return f"<builtin {value['name']}>"
  if value_type == "Constructor":
    return f"<constructor {value['ctor_name']}>"
  return "<unit>"


# ==================== ERROR MESSAGE BUILDERS ====================

def _location(span: Optional[SourceSpan]) -> Dict:
  if span is None:
    return {'line': 0, 'column': 0}
  return {'line': span.line, 'column': span.column}


def type_mismatch_error(
  func_name: str,
  param_name: str,
  expected: str,
  actual: Dict,
  span: Optional[SourceSpan] = None
) -> CurlyTypeError:
  """
  Generate type mismatch error

  Args:
    func_name: Function name
    param_name: Parameter description
    expected: Expected type
    actual: Actual value
    span: Location of the offending call

  Returns:
    CurlyTypeError with formatted message
  """
  return CurlyTypeError(
    f"{func_name} requires {expected} for {param_name}, got {describe_type(actual)}",
    **_location(span)
  )


def arity_error(
  func_name: str,
  expected: str,
  got: int,
  span: Optional[SourceSpan] = None
) -> CurlyArityError:
  """Generate arity mismatch error"""
  plural = "" if expected == "1" else "s"
  return CurlyArityError(
    f"{func_name} expects {expected} argument{plural}, got {got}",
    **_location(span)
  )


def operation_error(
  op: str,
  left: Dict,
  right: Optional[Dict] = None,
  span: Optional[SourceSpan] = None
) -> CurlyTypeError:
  """Generate operator operand error"""
  if right is None:
    message = f"cannot apply '{op}' to {describe_type(left)}"
  else:
    message = f"cannot apply '{op}' to {describe_type(left)} and {describe_type(right)}"
  return CurlyTypeError(message, **_location(span))


def unbound_name_error(name: str, span: Optional[SourceSpan] = None) -> CurlyUnboundNameError:
  return CurlyUnboundNameError(f"unbound name '{name}'", **_location(span))


def runtime_type_error(message: str, span: Optional[SourceSpan] = None) -> CurlyTypeError:
  return CurlyTypeError(message, **_location(span))


# ==================== VALIDATION UTILITIES ====================

def expect_type(
  func_name: str,
  position: int,
  value: Dict,
  expected_types: Sequence[str],
  span: Optional[SourceSpan] = None
) -> Dict:
  """
  Validate one argument against the accepted value types

  Raises:
    CurlyTypeError if the argument has another type
  """
  if value['type'] not in expected_types:
    raise type_mismatch_error(func_name, f"argument {position}", " or ".join(expected_types), value, span)
  return value


def expect_callable(func_name: str, position: int, value: Dict, span: Optional[SourceSpan] = None) -> Dict:
  if not is_callable_value(value):
    raise type_mismatch_error(func_name, f"argument {position}", "a closure", value, span)
  return value


def condition_value(value: Dict, context: str, span: Optional[SourceSpan] = None) -> bool:
  """
  Interpret a value used as a condition

  Only Booleans are accepted, plus the True/False tags of a user-declared
  'Boolean' type. Anything else is a type error; there is no truthiness.
  """
  truth = boolean_of(value)
  if truth is not None:
    return truth
  raise runtime_type_error(f"{context} condition must be a Boolean, got {describe_type(value)}", span)


# ==================== OPERATOR FACTORIES ====================

def binary_comparison_op(
  op: Callable[[Any, Any], bool],
  op_name: str
) -> Callable[[Dict, Dict, Optional[SourceSpan]], Dict]:
  """
  Factory for ordering comparisons

  Args:
    op: Python operator function (e.g., operator.lt)
    op_name: Operator symbol for error messages

  Returns:
    Function comparing two numbers or two strings

  Examples:
    curly_lt = binary_comparison_op(operator.lt, "<")
    result = curly_lt(make_number(1), make_number(2))
  """
  def comparison(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
    if is_numeric(x) and is_numeric(y):
      return make_bool(op(x['value'], y['value']))
    if x['type'] == "String" and y['type'] == "String":
      return make_bool(op(x['value'], y['value']))
    raise operation_error(op_name, x, y, span)

  return comparison


def binary_arithmetic_op(
  op: Callable[[Any, Any], Any],
  op_name: str
) -> Callable[[Dict, Dict, Optional[SourceSpan]], Dict]:
  """
  Factory for arithmetic on numbers

  Int with Int stays Int; a Float operand makes the result a Float.
  """
  def arithmetic(x: Dict, y: Dict, span: Optional[SourceSpan] = None) -> Dict:
    if not (is_numeric(x) and is_numeric(y)):
      raise operation_error(op_name, x, y, span)
    return make_number(op(x['value'], y['value']))

  return arithmetic
