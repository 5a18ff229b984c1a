"""
alc-lisp embedding bridge
Runs programs for a host application and converts values to plain Python data
"""

import json
from typing import Any, Callable, Dict, Optional

from objects import Object, Null, Integer, String, Bool, List, Builtin, Function, Error, NULL
from environment import Env
from lexer import Lexer
from parsing import Node, Parser, node_to_dict
from interpreter import Program
from error_handling import AlcParseError
from stdlib import add_generic_builtins
from utilities import register_builtins


Sink = Callable[[str], None]

BUILTIN_MESSAGE = "Builtin Function"


def to_host_value(value: Object) -> Any:
  """Convert a runtime value into plain Python data"""
  if isinstance(value, Null):
    return None
  if isinstance(value, (Integer, String, Bool)):
    return value.value
  if isinstance(value, List):
    return [to_host_value(item) for item in value.items]
  if isinstance(value, Builtin):
    return BUILTIN_MESSAGE
  if isinstance(value, Function):
    return f"FUNCTION [{id(value.env):#x}]"
  if isinstance(value, Error):
    return {"error": value.message}
  raise TypeError(f"cannot convert {type(value).__name__} to a host value")


def add_embedded_builtins(env: Env, sink: Sink) -> Env:
  """Bind print and debug so that their output goes to ``sink``"""

  def host_print(program, args):
    sink("".join(str(arg) for arg in args))
    return NULL

  def host_debug(program, args):
    sink(json.dumps("".join(str(arg) for arg in args)))
    return NULL

  return register_builtins(env, {"print": host_print, "debug": host_debug})


def embedded_env(sink: Sink) -> Env:
  return add_embedded_builtins(add_generic_builtins(Env()), sink)


def _parse_strict(code: str) -> Node:
  parser = Parser.with_tokens(Lexer(code).parse())
  root = parser.parse()
  if parser.has_errors():
    parser.print_errors(root)
    raise AlcParseError(f"source contains {len(parser.errors())} invalid token(s)")
  return root


def get_ast(code: str, callback: Callable[[Dict[str, Any]], Any]) -> Any:
  """Parse ``code`` and hand the tree to ``callback`` as a dictionary"""
  return callback(node_to_dict(_parse_strict(code)))


def run(code: str, sink: Optional[Sink] = None) -> Any:
  """Evaluate ``code`` with host-routed output and return the result as host data"""
  if sink is None:
    sink = print
  program = Program(embedded_env(sink))
  return to_host_value(program.eval(_parse_strict(code)))
