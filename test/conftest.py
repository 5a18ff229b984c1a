"""
Test configuration for alc-lisp tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from interpreter import create_interpreter, parse_program


@pytest.fixture
def program():
  """A fresh Program over the generic builtins"""
  return create_interpreter()


@pytest.fixture
def run(program):
  """Evaluate source text in the ``program`` fixture"""
  def evaluate(source):
    return program.eval(parse_program(source))
  return evaluate
