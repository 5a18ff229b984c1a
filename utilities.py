"""
Utilities module for alc-lisp builtins
Argument checking, error values and registration helpers shared by every builtin set
"""

import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type, Union

from objects import Builtin, Error, Object
from environment import Env


STD_PREFIX = "std/"

# Lexemes accepted as integers by number literals and parse_int
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")

BuiltinFunction = Callable[..., Object]


# ==================== ERROR MESSAGE BUILDERS ====================

def arity_error(func_name: str, expected: Union[int, str], got: int) -> Error:
  """
  Generate arity mismatch error value

  Args:
    func_name: Builtin name
    expected: Expected number of arguments (or a description like "at least 1")
    got: Actual number of arguments

  Returns:
    Error value with formatted message
  """
  return Error(
    f"Invalid argument type for function '{func_name}': got: {got} expected: {expected}"
  )


def at_least_error(func_name: str, minimum: int, got: int) -> Error:
  return arity_error(func_name, f"at least {minimum}", got)


def type_error(func_name: str, expected: str, position: Optional[int] = None) -> Error:
  """
  Generate a type error value

  Args:
    func_name: Builtin name
    expected: Expected type name(s)
    position: Zero-based argument position, when known

  Returns:
    Error value with formatted message
  """
  if position is None:
    return Error(f"Invalid argument type for function '{func_name}': expected {expected}")
  return Error(
    f"Invalid argument type for function '{func_name}': expected {expected} at position {position}"
  )


def type_mismatch_error(func_name: str, expected: str, actual: Object, position: Optional[int] = None) -> Error:
  """
  Generate type mismatch error naming the type that was actually passed

  Args:
    func_name: Builtin name
    expected: Expected type name
    actual: The offending argument
    position: Zero-based argument position, when known

  Returns:
    Error value with formatted message
  """
  where = f" at position {position}" if position is not None else ""
  return Error(
    f"Invalid argument type for function '{func_name}': expected {expected}{where} got {actual.type_of()}"
  )


# ==================== VALIDATION UTILITIES ====================

def type_label(kinds: Union[Type[Object], Tuple[Type[Object], ...]]) -> str:
  """Readable name for an accepted type or tuple of types"""
  if isinstance(kinds, tuple):
    return " or ".join(type_label(kind) for kind in kinds)
  if kinds is Object:
    return "any"
  return kinds.type_name


def check_arity(func_name: str, args: Sequence[Object], expected: int) -> Optional[Error]:
  """Error value when ``len(args) != expected``, else None"""
  if len(args) != expected:
    return arity_error(func_name, expected, len(args))
  return None


def typecheck_args(
  func_name: str,
  expected: str,
  kinds: Union[Type[Object], Tuple[Type[Object], ...]],
  args: Sequence[Object]
) -> Optional[Error]:
  """
  Check every argument of a variadic builtin against one type

  Args:
    func_name: Builtin name
    expected: Type name used in the error message
    kinds: Accepted Object class(es)
    args: Arguments to check

  Returns:
    Error value for the first offending argument, or None
  """
  for position, arg in enumerate(args):
    if not isinstance(arg, kinds):
      return type_mismatch_error(func_name, expected, arg, position)
  return None


def validate_function_args(
  func_name: str,
  args: Sequence[Object],
  expected_types: List[Union[Type[Object], Tuple[Type[Object], ...]]]
) -> Optional[Error]:
  """
  Validate a fixed-arity builtin call

  Args:
    func_name: Builtin name for error messages
    args: Argument values
    expected_types: Object class (or tuple of classes) expected at each position

  Returns:
    Error value describing the first problem, or None when the call is well formed
  """
  if len(args) != len(expected_types):
    return arity_error(func_name, len(expected_types), len(args))

  for position, (arg, expected) in enumerate(zip(args, expected_types)):
    if not isinstance(arg, expected):
      return type_mismatch_error(func_name, type_label(expected), arg, position)
  return None


# ==================== REGISTRATION ====================

def make_builtin(name: str, function: BuiltinFunction) -> Builtin:
  return Builtin(name, function)


def register_builtins(env: Env, functions: Dict[str, BuiltinFunction], alias: bool = True) -> Env:
  """
  Register builtins in a frame under their name and the ``std/`` alias

  Args:
    env: Frame to fill
    functions: Map of name -> ``function(program, args)``
    alias: Also bind ``std/<name>``

  Returns:
    The same frame, for chaining
  """
  bindings = {}
  for name, function in functions.items():
    builtin = make_builtin(name, function)
    bindings[name] = builtin
    if alias:
      bindings[STD_PREFIX + name] = builtin
  env.update(bindings)
  return env
