"""
Curly Interpreter
Tree-walking evaluator over the AST built by parsing.py
Runtime values and environments are plain dictionaries; an Interpreter
session owns the root environment and the type registry.
"""

import sys
from typing import Dict, List, Optional, Any, Tuple, Sequence

from parsing import (
  Literal, Identifier, Assignment, Call, DotCall, Block, LambdaDef,
  ListLiteral, TupleLiteral, TypeDecl, BinaryOp, UnaryOp, Return, create_parser
)
from tokenizer import SourceSpan
from error_handling import CurlyUnboundNameError
from stdlib import BUILTIN_FUNCTIONS, BINARY_OPERATORS, UNARY_OPERATORS
from utilities import (
  make_unit,
  make_bool,
  make_number,
  make_string,
  make_list,
  make_tuple,
  make_constructor,
  make_instance,
  make_tag,
  describe_type,
  get_field,
  values_equal,
  is_callable_value,
  arity_error,
  unbound_name_error,
  runtime_type_error
)


# A Curly call nests about a dozen Python frames
RECURSION_LIMIT = 10000
sys.setrecursionlimit(max(sys.getrecursionlimit(), RECURSION_LIMIT))


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class ReturnSignal(Exception):
  """Raised by 'return' and caught by the closure call it leaves"""

  def __init__(self, value: Dict):
    super().__init__("return outside of a closure call")
    self.value = value


def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create a runtime environment"""
  return {
      'parent': parent,
      'bindings': bindings or {}
  }


def make_closure(params: Sequence[str], body: Block, closure_env: Dict, name: Optional[str] = None) -> Dict:
  """Create a closure value capturing its defining environment by reference"""
  return {
      'type': 'Closure',
      'params': tuple(params),
      'body': body,
      'closure_env': closure_env,
      'name': name
  }


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def env_bind_value(env: Dict, name: str, value: Dict) -> Dict:
  """Bind or overwrite name in this scope only; parents are never touched"""
  env['bindings'][name] = value
  return env


def env_lookup_value(env: Dict, name: str) -> Optional[Dict]:
  """Look up a value in the environment chain"""
  if name in env['bindings']:
    return env['bindings'][name]
  elif env['parent']:
    return env_lookup_value(env['parent'], name)
  return None


def create_builtin_runtime_env() -> Dict:
  """Create the root environment holding the standard library"""
  return make_runtime_env(None, dict(BUILTIN_FUNCTIONS))


# ============================================================================
# TYPE REGISTRY
# ============================================================================

class TypeRegistry:
  """Declared types and their variants for one interpreter session"""

  def __init__(self):
    self.types: Dict[str, Tuple[str, ...]] = {}
    self.variants: Dict[str, Tuple[str, Tuple[str, ...]]] = {}

  def check_declaration(self, decl: TypeDecl) -> None:
    """Reject a declaration whose type or variant names are already declared"""
    if decl.name in self.types or decl.name in self.variants:
      raise CurlyUnboundNameError(f"type '{decl.name}' is already declared", decl.span.line, decl.span.column)

    for variant in decl.variants:
      if variant.name in self.types or variant.name in self.variants:
        raise CurlyUnboundNameError(
          f"constructor '{variant.name}' is already declared", variant.span.line, variant.span.column
        )

  def register(self, decl: TypeDecl) -> None:
    """Record a type declaration, rejecting names that are already declared"""
    self.check_declaration(decl)
    self.types[decl.name] = tuple(variant.name for variant in decl.variants)
    for variant in decl.variants:
      self.variants[variant.name] = (decl.name, variant.fields)

  def get_variants(self, type_name: str) -> Optional[Tuple[str, ...]]:
    """Variant names of a declared type"""
    return self.types.get(type_name)

  def get_variant(self, ctor_name: str) -> Optional[Tuple[str, Tuple[str, ...]]]:
    """(type name, field names) of a declared variant"""
    return self.variants.get(ctor_name)

  def is_declared(self, name: str) -> bool:
    return name in self.types or name in self.variants


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_ast(ast_node: Any, env: Dict, session: 'Interpreter') -> Dict:
  """Evaluate an AST node in env and return its value"""
  if session.debug:
    print(f"Evaluating: {type(ast_node).__name__}", file=sys.stderr)

  if isinstance(ast_node, Literal):
    return eval_literal(ast_node, env, session)
  elif isinstance(ast_node, Identifier):
    return eval_identifier(ast_node, env, session)
  elif isinstance(ast_node, Assignment):
    return eval_assignment(ast_node, env, session)
  elif isinstance(ast_node, Call):
    return eval_call(ast_node, env, session)
  elif isinstance(ast_node, DotCall):
    return eval_dot_call(ast_node, env, session)
  elif isinstance(ast_node, LambdaDef):
    return eval_lambda(ast_node, env, session)
  elif isinstance(ast_node, ListLiteral):
    return make_list([eval_ast(elem, env, session) for elem in ast_node.elems])
  elif isinstance(ast_node, TupleLiteral):
    return make_tuple([eval_ast(elem, env, session) for elem in ast_node.elems])
  elif isinstance(ast_node, TypeDecl):
    return eval_type_decl(ast_node, env, session)
  elif isinstance(ast_node, BinaryOp):
    return eval_binary_op(ast_node, env, session)
  elif isinstance(ast_node, UnaryOp):
    return eval_unary_op(ast_node, env, session)
  elif isinstance(ast_node, Return):
    value = make_unit() if ast_node.value is None else eval_ast(ast_node.value, env, session)
    raise ReturnSignal(value)
  elif isinstance(ast_node, Block):
    return eval_block(ast_node.statements, env, session)

  raise ValueError(f"Unknown AST node: {ast_node!r}")


def eval_literal(ast_node: Literal, env: Dict, session: 'Interpreter') -> Dict:
  """Evaluate Int, Float or String literal"""
  if isinstance(ast_node.value, str):
    return make_string(ast_node.value)
  return make_number(ast_node.value)


def eval_identifier(ast_node: Identifier, env: Dict, session: 'Interpreter') -> Dict:
  """Evaluate identifier by looking up in environment"""
  value = env_lookup_value(env, ast_node.name)

  if value is None:
    raise unbound_name_error(ast_node.name, ast_node.span)

  return value


def eval_assignment(ast_node: Assignment, env: Dict, session: 'Interpreter') -> Dict:
  """
  Evaluate the right side, then bind it in the current scope

  Declared variant names cannot be rebound: 'True = False' compares the
  two values instead.
  """
  value = eval_ast(ast_node.expr, env, session)

  if session.registry.get_variant(ast_node.target) is not None:
    current = env_lookup_value(env, ast_node.target)
    if current is not None and current['type'] in ('Constructor', 'NullaryTag'):
      return make_bool(values_equal(current, value))

  # Anonymous closures take the name they are first bound to
  if value['type'] == 'Closure' and value['name'] is None:
    value['name'] = ast_node.target

  env_bind_value(env, ast_node.target, value)
  return make_unit()


def eval_call(ast_node: Call, env: Dict, session: 'Interpreter') -> Dict:
  """Evaluate function application: callee first, then arguments left to right"""
  func = eval_ast(ast_node.callee, env, session)

  if not is_callable_value(func):
    name = ast_node.callee.name if isinstance(ast_node.callee, Identifier) else "expression"
    raise runtime_type_error(f"'{name}' is not callable (it is {describe_type(func)})", ast_node.span)

  args = [eval_ast(arg, env, session) for arg in ast_node.args]
  return apply_function(func, args, ast_node.span, session)


def eval_dot_call(ast_node: DotCall, env: Dict, session: 'Interpreter') -> Dict:
  """
  Evaluate receiver.name args

  An instance field is read when no arguments are given; otherwise the
  callable bound to name is applied to the receiver and the arguments.
  """
  receiver = eval_ast(ast_node.receiver, env, session)
  args = [eval_ast(arg, env, session) for arg in ast_node.args]

  if receiver['type'] == 'Instance' and not args:
    field_value = get_field(receiver, ast_node.name)
    if field_value is not None:
      return field_value

  func = env_lookup_value(env, ast_node.name)
  if func is None or not is_callable_value(func):
    raise runtime_type_error(
      f"{describe_type(receiver)} has no field or method '{ast_node.name}'", ast_node.span
    )

  return apply_function(func, [receiver] + args, ast_node.span, session)


def eval_lambda(ast_node: LambdaDef, env: Dict, session: 'Interpreter') -> Dict:
  """Evaluate lambda expression; the body runs only when the closure is called"""
  return make_closure(ast_node.params, ast_node.body, env)


def eval_type_decl(ast_node: TypeDecl, env: Dict, session: 'Interpreter') -> Dict:
  """Register the type and bind one constructor or tag per variant"""
  session.registry.check_declaration(ast_node)

  for variant in ast_node.variants:
    if variant.name in env['bindings']:
      raise CurlyUnboundNameError(
        f"'{variant.name}' is already bound in this scope", variant.span.line, variant.span.column
      )

  session.registry.register(ast_node)

  for variant in ast_node.variants:
    if variant.fields:
      value = make_constructor(ast_node.name, variant.name, variant.fields)
    else:
      value = make_tag(ast_node.name, variant.name)
    env_bind_value(env, variant.name, value)

  if session.debug:
    print(f"Declared type {ast_node.name}: {', '.join(v.name for v in ast_node.variants)}", file=sys.stderr)

  return make_unit()


def eval_binary_op(ast_node: BinaryOp, env: Dict, session: 'Interpreter') -> Dict:
  """Evaluate both operands left to right, then apply the operator"""
  left = eval_ast(ast_node.left, env, session)
  right = eval_ast(ast_node.right, env, session)
  return BINARY_OPERATORS[ast_node.op](left, right, ast_node.span)


def eval_unary_op(ast_node: UnaryOp, env: Dict, session: 'Interpreter') -> Dict:
  operand = eval_ast(ast_node.operand, env, session)
  return UNARY_OPERATORS[ast_node.op](operand, ast_node.span)


def eval_block(statements: Sequence[Any], env: Dict, session: 'Interpreter') -> Dict:
  """Run statements in env; the value is the last statement's, or Unit"""
  result = make_unit()
  for statement in statements:
    result = eval_ast(statement, env, session)
  return result


# ============================================================================
# FUNCTION APPLICATION
# ============================================================================

def _expected_arity(min_arity: int, max_arity: int) -> str:
  if min_arity == max_arity:
    return str(min_arity)
  return f"{min_arity} to {max_arity}"


def apply_function(func: Dict, args: List[Dict], span: Optional[SourceSpan], session: 'Interpreter') -> Dict:
  """Apply a closure, builtin or constructor to evaluated arguments"""
  func_type = func['type']

  if func_type == 'Closure':
    params = func['params']
    label = func['name'] or "closure"
    if len(args) != len(params):
      raise arity_error(label, str(len(params)), len(args), span)

    if session.debug:
      print(f"Calling {label} with {len(args)} argument(s)", file=sys.stderr)

    call_env = make_runtime_env(func['closure_env'], dict(zip(params, args)))
    try:
      return eval_block(func['body'].statements, call_env, session)
    except ReturnSignal as signal:
      return signal.value

  if func_type == 'Builtin':
    if not func['min_arity'] <= len(args) <= func['max_arity']:
      raise arity_error(func['name'], _expected_arity(func['min_arity'], func['max_arity']), len(args), span)
    return func['func'](session, args, span)

  if func_type == 'Constructor':
    if len(args) != len(func['fields']):
      raise arity_error(func['ctor_name'], str(len(func['fields'])), len(args), span)
    return make_instance(func, args)

  raise runtime_type_error(f"{describe_type(func)} is not callable", span)


# ============================================================================
# INTERPRETER SESSION
# ============================================================================

class Interpreter:
  """
  One interpreter session

  Owns the root environment and the type registry. Top-level statements
  run directly in the root environment, so bindings and declared types
  persist across run() calls (the interactive prompt relies on this).
  """

  def __init__(self, debug: bool = False, stdout=None):
    self.debug = debug
    # None means the current sys.stdout at print time
    self.stdout = stdout
    self.registry = TypeRegistry()
    self.global_env = create_builtin_runtime_env()

  def run(self, program: Block) -> Dict:
    """Evaluate a parsed program and return the value of its last statement"""
    try:
      return eval_block(program.statements, self.global_env, self)
    except ReturnSignal as signal:
      # A top-level return ends the program
      return signal.value

  def run_source(self, text: str, filename: str = "<input>") -> Dict:
    """Parse and evaluate source text"""
    program = create_parser(self.debug).parse_string(text, filename)
    return self.run(program)

  def call_value(self, func: Dict, args: List[Dict], span: Optional[SourceSpan] = None) -> Dict:
    """Call a runtime value; used by builtins that take closures"""
    return apply_function(func, args, span, self)

  def lookup(self, name: str) -> Optional[Dict]:
    """Look up a top-level binding"""
    return env_lookup_value(self.global_env, name)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(debug: bool = False, stdout=None) -> Interpreter:
  """Factory function returning an interpreter session"""
  return Interpreter(debug=debug, stdout=stdout)


def create_debug_interpreter() -> Interpreter:
  """Factory function returning a debug interpreter session"""
  return create_interpreter(debug=True)
