"""
alc-lisp Interpreter
Tree-walking evaluator over a depth-checked call stack
"""

import threading
from typing import Dict, List, Optional, Sequence

from lexer import Lexer
from parsing import Node, NodeType, Parser
from objects import (
  Object, Integer, String, Builtin, Function, Error, Null,
  NULL, TRUE, FALSE, is_error, is_truthy, make_list
)
from environment import Env, CallStack, MAX_CALL_DEPTH, run_with_headroom
from error_handling import AlcError, AlcRuntimeError, StackDepthError
from stdlib import generic_env
from utilities import INTEGER_PATTERN


SPECIAL_FORMS = ("define", "def", "if", "do")


# ============================================================================
# NUMBER LITERALS
# ============================================================================

class NumberCache:
  """Lexeme -> Integer memo shared by every Program of one run"""

  def __init__(self):
    self._values: Dict[str, Integer] = {}
    self._lock = threading.Lock()

  def get(self, lexeme: str) -> Integer:
    with self._lock:
      value = self._values.get(lexeme)
      if value is None:
        if not INTEGER_PATTERN.fullmatch(lexeme):
          raise AlcRuntimeError(f"error parsing numberliteral: invalid digit found in '{lexeme}'")
        value = Integer(int(lexeme))
        self._values[lexeme] = value
      return value

  def __len__(self) -> int:
    with self._lock:
      return len(self._values)


def _position_of(node: Node) -> Optional[tuple]:
  pos = node.last_char()
  if pos.line == 0:
    return None
  return (pos.line, pos.col)


# ============================================================================
# PROGRAM
# ============================================================================

class Program:
  """Evaluator state: one call stack plus the shared number cache.

  ``eval`` treats a node as a statement sequence, ``eval_expression``
  as a single expression. Both raise AlcError for host-fatal failures
  and return Error values for in-language ones.
  """

  def __init__(
    self,
    global_env: Optional[Env] = None,
    number_cache: Optional[NumberCache] = None,
    max_depth: int = MAX_CALL_DEPTH,
    debug: bool = False
  ):
    if global_env is None:
      global_env = Env()
    elif isinstance(global_env, dict):
      global_env = Env(global_env)
    self.env = CallStack(global_env, max_depth)
    self.numbers = number_cache if number_cache is not None else NumberCache()
    self.debug = debug

  # ------------------------------------------------------------------
  # Scope access
  # ------------------------------------------------------------------

  def get_value(self, name: str) -> Object:
    value = self.env.lookup(name)
    return NULL if value is None else value

  def set_value(self, name: str, value: Object) -> None:
    self.env.current().set(name, value)

  def get_env(self) -> CallStack:
    return self.env.clone()

  def globals(self) -> Env:
    return self.env.global_env()

  def clone(self) -> 'Program':
    """A Program over the same frames and number cache"""
    program = Program(self.globals(), self.numbers, self.env.max_depth, self.debug)
    program.env = self.env.clone()
    return program

  # ------------------------------------------------------------------
  # Evaluation
  # ------------------------------------------------------------------

  def eval(self, root: Node) -> Object:
    """Evaluate a node with statement-sequence semantics.

    Runs on a host thread with room for the full call stack.
    """
    try:
      return run_with_headroom(self._eval_sequence, root, max_depth=self.env.max_depth)
    except RecursionError:
      raise AlcRuntimeError("expression nested too deeply", _position_of(root)) from None

  def _eval_sequence(self, root: Node) -> Object:
    if root.type != NodeType.EXPRESSION:
      return self.eval_expression(root)

    children = root.children
    lone_word = root.implicit and len(children) == 1
    if children and children[0].type == NodeType.WORD and not lone_word:
      return self.call_expression(children)

    if len(children) == 1:
      return self.eval_expression(children[0])

    result: Object = NULL
    for child in children:
      where = child.last_char()
      try:
        result = self.eval_expression(child)
      except StackDepthError:
        raise
      except AlcError as e:
        raise e.with_context(f"error in expression at {where}") from e

      if is_error(result):
        raise AlcRuntimeError(f"error in expression at {where}: {result.message}", _position_of(child))

    return result

  def eval_expression(self, node: Node) -> Object:
    """Evaluate a single node"""
    node_type = node.type

    if node_type == NodeType.WORD:
      return self.get_value(node.value)
    elif node_type == NodeType.BOOLEAN:
      return TRUE if node.value == "true" else FALSE
    elif node_type == NodeType.STRING:
      return String(node.value[1:-1])
    elif node_type == NodeType.NUMBER:
      try:
        return self.numbers.get(node.value)
      except AlcRuntimeError as e:
        raise AlcRuntimeError(e.message, _position_of(node)) from e
    elif node_type == NodeType.INVALID:
      return Error("Evaluating Invalid Node")
    elif node_type == NodeType.EXPRESSION:
      return self.call_expression(node.children)
    elif node_type == NodeType.LIST:
      return make_list([self._checked(item, "list element") for item in node.children])
    elif node_type == NodeType.FUNCTION:
      return self._make_function(node)

    raise AlcRuntimeError(f"cannot evaluate node of type {node_type}")

  def _make_function(self, node: Node) -> Function:
    parameters = []
    for arg in node.arguments:
      if arg.type != NodeType.WORD:
        raise AlcRuntimeError("argument is not a word", _position_of(arg))
      parameters.append(arg.value)
    return Function(self.env.current(), tuple(parameters), node.body)

  def _checked(self, node: Node, context: str) -> Object:
    """Evaluate ``node`` and escalate an Error value to a host failure"""
    value = self.eval_expression(node)
    if is_error(value):
      raise AlcRuntimeError(f"{context}: {value.message}", _position_of(node))
    return value

  # ------------------------------------------------------------------
  # Calls
  # ------------------------------------------------------------------

  def call_expression(self, nodes: Sequence[Node]) -> Object:
    if not nodes:
      return NULL

    head = nodes[0]
    if head.type == NodeType.WORD and head.value in SPECIAL_FORMS:
      if head.value == "if":
        return self._eval_if(nodes)
      elif head.value == "do":
        return self._eval_do(nodes)
      return self._eval_define(nodes)

    callee = self._checked(head, "in call to")
    args = [self._checked(node, "function argument") for node in nodes[1:]]

    if self.debug:
      print(f"call {callee} with {len(args)} args")

    if not isinstance(callee, (Builtin, Function, Null)):
      raise AlcRuntimeError(f"Cannot call value of type {callee.type_of()}", _position_of(head))
    return self.call_function(callee, args)

  def call_function(self, callee: Object, args: List[Object]) -> Object:
    """Apply a callable value; also the re-entry point for builtins"""
    if isinstance(callee, Builtin):
      return callee.function(self, args)

    if isinstance(callee, Function):
      if len(args) != len(callee.parameters):
        return Error(
          f"Invalid number of arguments passed into function got {len(args)} expected {len(callee.parameters)}"
        )
      return self.run_function(callee.env, callee.body, callee.parameters, args)

    if isinstance(callee, Null):
      return NULL

    raise AlcRuntimeError(f"Cannot call value of type {callee.type_of()}")

  def run_function(self, env: Env, body: Node, parameters: Sequence[str], args: Sequence[Object]) -> Object:
    """Run ``body`` in a fresh copy of ``env`` extended with the arguments"""
    frame = env.extend(zip(parameters, args))
    self.env.push(frame)
    try:
      return self._eval_sequence(body)
    except RecursionError:
      raise StackDepthError(self.env.max_depth, reached=self.env.depth()) from None
    finally:
      self.env.pop()

  def _eval_define(self, nodes: Sequence[Node]) -> Object:
    if len(nodes) != 3:
      return Error(f"Invalid amount of arguments to define got:{len(nodes)} expected: 3")

    name = nodes[1]
    if name.type != NodeType.WORD:
      return Error(f"Invalid token for define: {name} should be a word")

    value = self._checked(nodes[2], "define value error")
    self.set_value(name.value, value)
    return NULL

  def _eval_if(self, nodes: Sequence[Node]) -> Object:
    if len(nodes) not in (3, 4):
      return Error(f"Invalid amount of arguments to 'if' got: {len(nodes)}")

    condition = self._checked(nodes[1], "if condition error")
    if is_truthy(condition):
      return self._checked(nodes[2], "if result error")
    if len(nodes) == 4:
      return self._checked(nodes[3], "if result error")
    return NULL

  def _eval_do(self, nodes: Sequence[Node]) -> Object:
    if len(nodes) != 2:
      return Error(f"Invalid amount of arguments to 'do' got: {len(nodes)}")
    return self._eval_sequence(nodes[1])


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(
  debug: bool = False,
  globals: Optional[Env] = None,
  max_depth: int = MAX_CALL_DEPTH,
  number_cache: Optional[NumberCache] = None
) -> Program:
  """Create a Program over ``globals`` (the generic builtins by default)"""
  if globals is None:
    globals = generic_env()
  return Program(globals, number_cache, max_depth, debug)


def create_debug_interpreter() -> Program:
  return create_interpreter(debug=True)


def parse_program(source: str, debug: bool = False) -> Node:
  """Lex and parse, printing recovered parse errors to stderr"""
  tokens = Lexer(source).parse()
  parser = Parser.with_tokens(tokens, debug)
  root = parser.parse()
  if parser.has_errors():
    parser.print_errors(root)
  return root


def evaluate_source(source: str, program: Optional[Program] = None) -> Object:
  """Run source text through the whole pipeline"""
  if program is None:
    program = create_interpreter()
  return program.eval(parse_program(source, program.debug))
