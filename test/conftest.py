"""
Test configuration for the Curly interpreter tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser
from interpreter import create_interpreter


@pytest.fixture
def parser():
  """Provide a fresh parser for each test"""
  return create_parser()


@pytest.fixture
def interpreter():
  """Provide a fresh interpreter session for each test"""
  return create_interpreter()


@pytest.fixture
def run(interpreter, capsys):
  """Run Curly source in one session and return what it printed"""
  def _run(source: str) -> str:
    interpreter.run_source(source)
    return capsys.readouterr().out
  return _run
