"""
Evaluation tests for the Curly interpreter
"""

import pytest
from interpreter import (
  create_interpreter, make_runtime_env, env_bind_value, env_lookup_value, TypeRegistry
)
from parsing import create_parser
from error_handling import CurlyArityError, CurlyTypeError, CurlyUnboundNameError
from utilities import make_number, make_bool


class TestSmallPrograms:
  """Short end-to-end programs"""

  def test_hello_world(self, run):
    assert run('print "Hello world"') == "Hello world\n"

  def test_binding(self, run):
    assert run("my_var = 42\nprint my_var") == "42\n"

  def test_two_argument_function(self, run):
    assert run("my_function = { a, b | print a; print b }\nmy_function 1, 2") == "1\n2\n"

  def test_function_arity_error(self, run):
    with pytest.raises(CurlyArityError) as exc_info:
      run("my_function = { a, b | print a; print b }\nmy_function 1")
    assert exc_info.value.message == "my_function expects 2 arguments, got 1"
    assert exc_info.value.line == 2

  def test_repeat(self, run):
    assert run("repeat 3, { i | print i }") == "0\n1\n2\n"

  def test_declared_boolean(self, run):
    source = "type Boolean = True | False\nprint True\nprint True = False"
    assert run(source) == "True\nFalse\n"

  def test_declared_boolean_comparison_statement(self, interpreter, capsys):
    result = interpreter.run_source("type Boolean = True | False\nTrue = False")
    assert result == make_bool(False)
    interpreter.run_source("print True\nprint True = True")
    assert capsys.readouterr().out == "True\nTrue\n"

  def test_each_with_and_without_comma(self, run):
    source = (
      "list = [1, 2]\n"
      "each list, { value | print value }\n"
      "each list { value | print value }\n"
    )
    assert run(source) == "1\n2\n1\n2\n"


class TestScoping:
  """Environments, closures and call frames"""

  def test_block_locals_vanish(self, run):
    with pytest.raises(CurlyUnboundNameError):
      run("f = { x = 1; x }\nf ()\nprint x")

  def test_assignment_shadows_in_current_scope(self, run):
    assert run("x = 1\nf = { x = 2; print x }\nf ()\nprint x") == "2\n1\n"

  def test_closure_captures_environment_by_reference(self, run):
    assert run("f = { print y }\ny = 7\nf ()") == "7\n"

  def test_closure_captures_parameters(self, run):
    source = "make_adder = { n | { x | x + n } }\nadd5 = make_adder 5\nprint add5 10"
    assert run(source) == "15\n"

  def test_recursion(self, run):
    source = "fact = { n | if n <= 1, { 1 }, { n * fact (n - 1) } }\nprint fact 5"
    assert run(source) == "120\n"

  def test_call_returns_last_statement(self, run):
    assert run("f = { a | a * 2 }\nprint f 21") == "42\n"

  def test_call_ending_in_assignment_returns_unit(self, run):
    assert run("f = { y = 1 }\nprint f ()") == "<unit>\n"

  def test_empty_lambda_returns_unit(self, run):
    assert run("f = { }\nprint f ()") == "<unit>\n"

  def test_lambda_body_not_run_at_definition(self, run):
    assert run('f = { print "called" }') == ""

  def test_arguments_evaluated_before_arity_check(self, run):
    with pytest.raises(CurlyUnboundNameError):
      run("f = { a | a }\nf 1, missing")

  def test_too_many_arguments(self, run):
    with pytest.raises(CurlyArityError, match="expects 1 argument, got 2"):
      run("f = { a | a }\nf 1, 2")

  def test_zero_arity_called_with_argument(self, run):
    with pytest.raises(CurlyArityError):
      run("f = { 1 }\nf 5")

  def test_bindings_persist_across_runs(self, interpreter, capsys):
    interpreter.run_source("x = 10")
    interpreter.run_source("print x + 1")
    assert capsys.readouterr().out == "11\n"

  def test_unbound_name(self, run):
    with pytest.raises(CurlyUnboundNameError) as exc_info:
      run("print nope")
    assert str(exc_info.value) == "UnboundError: unbound name 'nope' (line 1, column 7)"

  def test_not_callable(self, run):
    with pytest.raises(CurlyTypeError, match="'x' is not callable"):
      run("x = 5\nx 1")

  def test_callee_checked_before_arguments(self, run):
    with pytest.raises(CurlyTypeError, match="'x' is not callable"):
      run("x = 5\nx missing")

  def test_deep_recursion(self, run):
    source = "count = { n | if n > 0, { count (n - 1) }, { n } }\nprint count 300"
    assert run(source) == "0\n"

  def test_return_leaves_closure_early(self, run):
    assert run('f = { x | return x * 2; print "unreachable" }\nprint f 4') == "8\n"

  def test_bare_return_gives_unit(self, run):
    assert run("f = { return }\nprint f ()") == "<unit>\n"

  def test_return_leaves_only_the_innermost_closure(self, run):
    source = 'f = { repeat 3, { i | return i; print "never" }; "done" }\nprint f ()'
    assert run(source) == "done\n"

  def test_top_level_return_ends_program(self, run):
    assert run("print 1\nreturn\nprint 2") == "1\n"


class TestClosureValues:
  """Rendering of callable values"""

  def test_named_closure(self, run):
    assert run("add = { a, b | a + b }\nprint add") == "<closure add/2>\n"

  def test_anonymous_closure(self, run):
    assert run("print { x | x }") == "<closure/1>\n"

  def test_first_name_sticks(self, run):
    assert run("f = { 1 }\ng = f\nprint g") == "<closure f/0>\n"

  def test_builtin(self, run):
    assert run("print print") == "<builtin print>\n"


class TestTypes:
  """Declared types, constructors and tags"""

  def test_constructor_and_fields(self, run):
    source = (
      "type Shape = Circle(r) | Rect(w, h) | Empty\n"
      "c = Circle 2\n"
      "print c\n"
      "print c.r\n"
      "print Empty\n"
      "print Circle\n"
    )
    assert run(source) == "Circle(2)\n2\nEmpty\n<constructor Circle>\n"

  def test_instance_equality(self, run):
    source = (
      "type P = P(x, y)\n"
      "a = P 1, 2\n"
      "b = P 1, 2\n"
      "c = P 1, 3\n"
      "print a = b\n"
      "print a = c\n"
      "print a != c\n"
    )
    assert run(source) == "True\nFalse\nTrue\n"

  def test_tag_equality(self, run):
    source = "type Color = Red | Green\nprint Red = Red\nprint Red = Green"
    assert run(source) == "True\nFalse\n"

  def test_instance_never_equals_tag(self, run):
    assert run("type T = A(x) | B\nprint (A 1) = B") == "False\n"

  def test_nested_instances(self, run):
    source = 'type User = User(name, age)\nu = User "bob", [1, 2]\nprint u'
    assert run(source) == 'User("bob", [1, 2])\n'

  def test_type_name_may_match_constructor(self, run):
    assert run('type User = User(name)\nprint (User "x").name') == "x\n"

  def test_constructor_arity(self, run):
    with pytest.raises(CurlyArityError, match="P expects 2 arguments, got 1"):
      run("type P = P(x, y)\nP 1")

  def test_redeclared_type(self, run):
    with pytest.raises(CurlyUnboundNameError, match="already declared"):
      run("type Color = Red | Green\ntype Color = Blue")

  def test_redeclared_variant(self, run):
    with pytest.raises(CurlyUnboundNameError, match="constructor 'X' is already declared"):
      run("type A = X\ntype B = X")

  def test_variant_name_already_bound(self, run):
    with pytest.raises(CurlyUnboundNameError, match="already bound"):
      run("Red = 1\ntype Color = Red")

  def test_comparisons_equal_declared_booleans(self, run):
    source = (
      "type Boolean = True | False\n"
      "print (1 < 2) = True\n"
      "print (1 > 2) = True\n"
      "print True != (2 < 1)\n"
    )
    assert run(source) == "True\nFalse\nTrue\n"

  def test_missing_field(self, run):
    with pytest.raises(CurlyTypeError, match="has no field or method 'y'"):
      run("type P = P(x)\np = P 1\nprint p.y")

  def test_dot_call_applies_function(self, run):
    assert run("xs = [1, 2]\nxs.push 3\nprint xs.length\nprint xs") == "3\n[1, 2, 3]\n"

  def test_dot_call_on_closure(self, run):
    assert run("double = { x | x * 2 }\nprint 21.double") == "42\n"


class TestConditions:
  """Strict Boolean conditions"""

  def test_if_else(self, run):
    assert run('if 1 < 2 { print "yes" } { print "no" }') == "yes\n"
    assert run('if 1 > 2 { print "yes" } { print "no" }') == "no\n"

  def test_if_returns_branch_value(self, run):
    assert run('x = if 1 > 2, { "a" }, { "b" }\nprint x') == "b\n"

  def test_if_without_else_returns_unit(self, run):
    assert run("x = if 1 > 2 { 1 }\nprint x") == "<unit>\n"

  def test_non_boolean_condition(self, run):
    with pytest.raises(CurlyTypeError) as exc_info:
      run('if 1 { print "x" }')
    assert exc_info.value.message == "if condition must be a Boolean, got Int"

  def test_declared_boolean_tags_are_conditions(self, run):
    source = "type Boolean = True | False\nif True { print 1 } { print 2 }\nif False { print 1 } { print 2 }"
    assert run(source) == "1\n2\n"

  def test_other_tags_are_not_conditions(self, run):
    with pytest.raises(CurlyTypeError):
      run("type Answer = Yes | No\nif Yes { print 1 }")

  def test_if_branch_must_be_callable(self, run):
    with pytest.raises(CurlyTypeError, match="requires a closure"):
      run("if 1 < 2, 3")


class TestOperators:
  """Arithmetic, comparison and logic"""

  def test_integer_arithmetic(self, run):
    assert run("print 1 + 2 * 3\nprint (1 + 2) * 3\nprint 7 / 2\nprint 7 % 3") == "7\n9\n3\n1\n"

  def test_division_truncates_toward_zero(self, run):
    assert run("print (-7) / 2\nprint (-7) % 3\nprint 7 / (-2)") == "-3\n-1\n-3\n"

  def test_float_promotion(self, run):
    assert run("print 7.0 / 2\nprint 1 + 2.5\nprint 2 * 1.5") == "3.5\n3.5\n3.0\n"

  def test_concatenation(self, run):
    assert run('print "a" + "b"\nprint [1] + [2]') == "ab\n[1, 2]\n"

  def test_division_by_zero(self, run):
    with pytest.raises(CurlyTypeError, match="division by zero"):
      run("print 1 / 0")

  def test_comparisons(self, run):
    assert run('print 1 < 2\nprint "b" <= "a"\nprint 2 >= 2.0\nprint 1 == 1.0') == "True\nFalse\nTrue\nTrue\n"

  def test_mismatched_comparison(self, run):
    with pytest.raises(CurlyTypeError, match="cannot apply '<' to Int and String"):
      run('print 1 < "a"')

  def test_logic(self, run):
    assert run("print 1 < 2 && 2 < 3\nprint 1 > 2 || 2 > 3\nprint !(1 < 2)") == "True\nFalse\nFalse\n"

  def test_logic_requires_booleans(self, run):
    with pytest.raises(CurlyTypeError):
      run("print 1 && 1 < 2")

  def test_logic_evaluates_both_operands(self, run):
    assert run('f = { print "right"; 1 < 2 }\nx = 1 > 2 && f ()') == "right\n"

  def test_unary(self, run):
    assert run("x = 5\nprint (-x)\nprint (+x)") == "-5\n5\n"
    assert run("print -x\nadd = { a, b | a + b }\nprint add -3, 5") == "-5\n2\n"
    with pytest.raises(CurlyTypeError):
      run('print !1')

  def test_structural_list_equality(self, run):
    assert run('print [1, (2, "a")] = [1, (2, "a")]\nprint [1] = [1, 2]') == "True\nFalse\n"


class TestEnvironment:
  """Environment and registry helpers"""

  def test_lookup_walks_parents(self):
    root = make_runtime_env()
    env_bind_value(root, "x", make_number(1))
    child = make_runtime_env(root)
    assert env_lookup_value(child, "x") == make_number(1)
    assert env_lookup_value(child, "y") is None

  def test_bind_only_touches_current_scope(self):
    root = make_runtime_env()
    env_bind_value(root, "x", make_number(1))
    child = make_runtime_env(root)
    env_bind_value(child, "x", make_number(2))
    assert env_lookup_value(root, "x")['value'] == 1
    assert env_lookup_value(child, "x")['value'] == 2

  def test_registry(self):
    registry = TypeRegistry()
    program = create_parser().parse_string("type Shape = Circle(r) | Dot")
    registry.register(program.statements[0])
    assert registry.get_variants("Shape") == ("Circle", "Dot")
    assert registry.get_variant("Circle") == ("Shape", ("r",))
    assert registry.is_declared("Dot")
    with pytest.raises(CurlyUnboundNameError):
      registry.register(program.statements[0])

  def test_sessions_are_independent(self, capsys):
    first = create_interpreter()
    first.run_source("type Color = Red")
    second = create_interpreter()
    second.run_source("type Color = Red\nprint Red")
    assert capsys.readouterr().out == "Red\n"
    assert first.lookup("Red") is not None

  def test_debug_trace_goes_to_stderr(self, capsys):
    create_interpreter(debug=True).run_source("print 1")
    captured = capsys.readouterr()
    assert captured.out == "1\n"
    assert "Evaluating: Call" in captured.err
