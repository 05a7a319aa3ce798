"""
Command line and interactive mode tests for Curly
"""

import pytest
import main
from main import needs_more_input


def write_script(tmp_path, source, name="script.curly"):
  path = tmp_path / name
  path.write_text(source, encoding="utf-8")
  return str(path)


class TestRunScript:
  """curly script.curly"""

  def test_runs_program(self, tmp_path, capsys):
    main.main([write_script(tmp_path, 'print "Hello world"\nprint 1 + 1\n')])
    captured = capsys.readouterr()
    assert captured.out == "Hello world\n2\n"
    assert captured.err == ""

  def test_runtime_error_exits_with_status_1(self, tmp_path, capsys):
    script = write_script(tmp_path, "f = { a, b | a }\nprint 1\nf 1\nprint 2\n")
    with pytest.raises(SystemExit) as exc_info:
      main.main([script])
    assert exc_info.value.code == 1
    captured = capsys.readouterr()
    assert captured.out == "1\n"
    assert captured.err.strip() == "ArityError: f expects 2 arguments, got 1 (line 3, column 1)"

  def test_parse_error_runs_nothing(self, tmp_path, capsys):
    script = write_script(tmp_path, 'print "never"\nf 1 2\n')
    with pytest.raises(SystemExit) as exc_info:
      main.main([script])
    assert exc_info.value.code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("ParseError: expected ',' between arguments")

  def test_lex_error(self, tmp_path, capsys):
    with pytest.raises(SystemExit):
      main.main([write_script(tmp_path, "x = 1 $ 2\n")])
    assert capsys.readouterr().err.startswith("LexError: unexpected character '$'")

  def test_debug_shows_context(self, tmp_path, capsys):
    script = write_script(tmp_path, "print missing\n")
    with pytest.raises(SystemExit):
      main.main(["--debug", script])
    err = capsys.readouterr().err
    assert "UnboundError: unbound name 'missing' (line 1, column 7)" in err
    assert "^ Error here" in err
    assert "Suggestions:" in err

  def test_deep_recursion_is_reported(self, tmp_path, capsys):
    script = write_script(tmp_path, "f = { n | f (n + 1) }\nf 0\n")
    with pytest.raises(SystemExit) as exc_info:
      main.main([script])
    assert exc_info.value.code == 1
    assert "maximum recursion depth" in capsys.readouterr().err

  def test_missing_file(self, tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
      main.main([str(tmp_path / "nope.curly")])
    assert exc_info.value.code == 1
    assert "not found" in capsys.readouterr().err

  def test_undecodable_file(self, tmp_path, capsys):
    path = tmp_path / "bad.curly"
    path.write_bytes(b"print \xff\xfe\n")
    with pytest.raises(SystemExit) as exc_info:
      main.main([str(path)])
    assert exc_info.value.code == 1
    assert "Cannot decode" in capsys.readouterr().err


class TestDumps:
  """--tokens and --parse"""

  def test_tokens(self, tmp_path, capsys):
    main.main(["--tokens", write_script(tmp_path, "x = 42\n")])
    out = capsys.readouterr().out
    assert "IDENTIFIER" in out
    assert "42" in out
    assert "EOF" in out

  def test_parse(self, tmp_path, capsys):
    main.main(["--parse", write_script(tmp_path, "each xs { v | print v }\n")])
    out = capsys.readouterr().out
    assert out.startswith("Parsed 1 top-level statements:")
    assert "LambdaDef(v)" in out

  def test_version(self, capsys):
    with pytest.raises(SystemExit) as exc_info:
      main.main(["--version"])
    assert exc_info.value.code == 0
    assert "Curly v0.1.0" in capsys.readouterr().out


class TestInteractive:
  """The interactive prompt"""

  @pytest.fixture
  def repl(self, monkeypatch, capsys):
    monkeypatch.setattr(main, "READLINE_AVAILABLE", False)

    def _repl(*lines):
      feed = iter(lines)

      def fake_input(prompt=""):
        try:
          return next(feed)
        except StopIteration:
          raise EOFError from None

      monkeypatch.setattr("builtins.input", fake_input)
      main.run_interactive_mode()
      return capsys.readouterr()
    return _repl

  def test_bindings_persist(self, repl):
    captured = repl("x = 1 + 2", "x", ":quit")
    assert "=> 3" in captured.out

  def test_print_shows_no_result(self, repl):
    captured = repl('print "hi"', ":quit")
    assert "hi\n" in captured.out
    assert "=>" not in captured.out

  def test_multiline_input(self, repl):
    captured = repl("double = { a |", "a * 2", "}", "double 4", ":quit")
    assert "=> 8" in captured.out

  def test_errors_do_not_end_session(self, repl):
    captured = repl("nope", '"still here"', ":quit")
    assert "UnboundError: unbound name 'nope'" in captured.err
    assert '=> "still here"' in captured.out

  def test_types_persist(self, repl):
    captured = repl("type Color = Red | Green", "Red == Green", ":quit")
    assert "=> False" in captured.out

  def test_env_command(self, repl):
    captured = repl("answer = 42", ":env", ":quit")
    assert "answer = 42" in captured.out

  def test_end_of_input(self, repl):
    captured = repl("x = 1")
    assert "Goodbye!" in captured.out


class TestContinuation:

  def test_needs_more_input(self):
    assert needs_more_input("f = { a |")
    assert needs_more_input("print (1,")
    assert needs_more_input('print "abc')
    assert needs_more_input("/* open comment")
    assert not needs_more_input("print 1")
    assert not needs_more_input("x = @")
