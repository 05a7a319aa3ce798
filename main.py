"""
Curly Programming Language - Main Entry Point
A small scripting language built from curly-brace lambdas
"""

import sys
import argparse
from typing import Optional, List
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import CurlyError, CurlyLexError, make_error_report, format_error_report
from tokenizer import tokenize, OPENING_BRACKETS, CLOSING_BRACKETS
from parsing import create_parser, create_debug_parser, pretty_print_ast
from interpreter import create_interpreter, create_debug_interpreter
from stdlib import list_builtin_functions
from utilities import render_value


VERSION = "Curly v0.1.0"
PROMPT = "curly> "
CONTINUATION_PROMPT = "  ...> "


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='curly',
      description='Curly Programming Language - scripting with curly-brace lambdas',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.curly            # Run a Curly script
  %(prog)s -i                      # Interactive mode
  %(prog)s --tokens script.curly   # Show the token stream
  %(prog)s --parse script.curly    # Parse and show the AST
  %(prog)s --debug script.curly    # Run with debug output
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Curly script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Tokenize file and show the tokens (for debugging)'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show the AST (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


# ============================================================================
# SCRIPT COMMANDS
# ============================================================================

def read_script(script_path: str) -> str:
  """Read a script as UTF-8, exiting with status 1 if it cannot be read"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      return f.read()
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found", file=sys.stderr)
    print("  Hint: Check the file path and make sure the file exists", file=sys.stderr)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'", file=sys.stderr)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}", file=sys.stderr)
    print("  Hint: Make sure the file is a text file with UTF-8 encoding", file=sys.stderr)
  except IsADirectoryError:
    print(f"Error: '{script_path}' is a directory", file=sys.stderr)
  sys.exit(1)


def report_error(error: CurlyError, source: str, debug: bool = False) -> None:
  """Write the diagnostic to stderr; debug mode adds source context and suggestions"""
  if debug:
    print(format_error_report(make_error_report(error, source)), file=sys.stderr)
  else:
    print(error, file=sys.stderr)


def tokenize_file(script_path: str, debug: bool = False) -> None:
  """Tokenize a Curly script file and show the tokens"""
  source = read_script(script_path)
  try:
    tokens = tokenize(source, script_path)
  except CurlyError as e:
    report_error(e, source, debug)
    sys.exit(1)

  for token in tokens:
    print(f"{token.span.line:4d}:{token.span.column:<4d} {token.type:<10} {token.value!r}")


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse a Curly script file and show the AST"""
  source = read_script(script_path)
  parser = create_debug_parser() if debug else create_parser()
  try:
    program = parser.parse_string(source, script_path)
  except CurlyError as e:
    report_error(e, source, debug)
    sys.exit(1)

  print(f"Parsed {len(program.statements)} top-level statements:")
  print("=" * 50)
  print(pretty_print_ast(program), end='')


def run_script_file(script_path: str, debug: bool = False) -> None:
  """Run a Curly script file"""
  source = read_script(script_path)
  parser = create_debug_parser() if debug else create_parser()
  interpreter = create_debug_interpreter() if debug else create_interpreter()

  try:
    if debug:
      print(f"Parsing {script_path}...", file=sys.stderr)
    program = parser.parse_string(source, script_path)
    interpreter.run(program)
  except CurlyError as e:
    sys.stdout.flush()
    report_error(e, source, debug)
    sys.exit(1)
  except RecursionError:
    sys.stdout.flush()
    print("InternalError: maximum recursion depth exceeded", file=sys.stderr)
    sys.exit(1)


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  # Setup history file
  history_file = os.path.expanduser("~/.curly_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet, or permission denied

  readline.set_history_length(1000)

  completions = ["type", "return"] + list_builtin_functions() + [":tokens", ":parse", ":env", ":help", ":quit"]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  # Save history on exit
  import atexit
  atexit.register(readline.write_history_file, history_file)


def needs_more_input(source: str) -> bool:
  """Whether the prompt should keep reading: open brackets or unterminated literals"""
  try:
    tokens = tokenize(source)
  except CurlyLexError as e:
    return "unterminated" in e.message

  depth = 0
  for token in tokens:
    if token.type != "PUNCT":
      continue
    if token.value in OPENING_BRACKETS:
      depth += 1
    elif token.value in CLOSING_BRACKETS:
      depth -= 1
  return depth > 0


def print_repl_help() -> None:
  print("REPL Commands:")
  print("  :tokens <code>    - Show the token stream")
  print("  :parse <code>     - Show the parsed AST")
  print("  :env              - Show current top-level bindings")
  print("  :help             - Show this help")
  print("  :quit             - Exit REPL (also 'exit' or Ctrl-D)")
  print()
  print("Language features:")
  print("  x = 42                         - Binding")
  print("  add = { a, b | a + b }         - Lambda with parameters")
  print("  print add 1, 2                 - Call (arguments separated by ',')")
  print("  each [1, 2] { v | print v }    - Trailing lambda without comma")
  print("  type Shape = Circle(r) | Dot   - Type declaration")


def run_interactive_mode(debug: bool = False) -> None:
  """Run Curly in interactive mode; bindings and types persist between inputs"""
  print(f"{VERSION} - Interactive Mode")
  print("Type ':quit' to exit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  parser = create_debug_parser() if debug else create_parser()
  interpreter = create_debug_interpreter() if debug else create_interpreter()
  builtin_names = set(list_builtin_functions())

  while True:
    try:
      code = input(PROMPT)

      if code.strip() in (":quit", "exit"):
        break

      if not code.strip():
        continue

      if code.startswith(":tokens "):
        try:
          for token in tokenize(code[8:]):
            print(f"  {token}")
        except CurlyError as e:
          print(e, file=sys.stderr)
        continue

      if code.startswith(":parse "):
        try:
          print(pretty_print_ast(parser.parse_string(code[7:])), end='')
        except CurlyError as e:
          print(e, file=sys.stderr)
        continue

      if code.strip() == ":env":
        print("Current environment:")
        user_bindings = {k: v for k, v in interpreter.global_env['bindings'].items()
                         if k not in builtin_names}
        if user_bindings:
          for name, value in user_bindings.items():
            val_str = render_value(value, quote_strings=True)
            if len(val_str) > 60:
              val_str = val_str[:57] + "..."
            print(f"  {name} = {val_str}")
        else:
          print("  (no user-defined bindings)")
        continue

      if code.strip() == ":help":
        print_repl_help()
        continue

      # Keep reading while brackets or literals are still open
      while needs_more_input(code):
        code += "\n" + input(CONTINUATION_PROMPT)

      try:
        result = interpreter.run(parser.parse_string(code, "<stdin>"))
        if result['type'] != "Unit":
          print(f"=> {render_value(result, quote_strings=True)}")
      except CurlyError as e:
        report_error(e, code, debug)
      except RecursionError:
        print("InternalError: maximum recursion depth exceeded", file=sys.stderr)

    except KeyboardInterrupt:
      print("\nGoodbye!")
      break
    except EOFError:
      print("\nGoodbye!")
      break


def show_language_info() -> None:
  """Show Curly language information"""
  print("Curly Programming Language")
  print("=" * 50)
  print("A small dynamically-typed scripting language with:")
  print("• Curly-brace lambdas: { a, b | ... }")
  print("• Closures with fixed arity")
  print("• Record, enum and algebraic types")
  print("• Optional commas and semicolons")
  print()
  print(f"Builtins: {', '.join(list_builtin_functions())}")
  print()


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for Curly"""
  arg_parser = create_arg_parser()
  if argv is None:
    argv = sys.argv[1:]
  args = arg_parser.parse_args(argv)

  if not argv:
    # No arguments - show info and start interactive mode
    show_language_info()
    print("Starting interactive mode...")
    print("Use 'curly --help' for command line options")
    print()
    run_interactive_mode(debug=False)
    return

  if args.script:
    if args.tokens:
      tokenize_file(args.script, debug=args.debug)
    elif args.parse:
      parse_file(args.script, debug=args.debug)
    else:
      run_script_file(args.script, debug=args.debug)

  elif args.interactive:
    run_interactive_mode(debug=args.debug)

  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
