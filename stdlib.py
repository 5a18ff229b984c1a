"""
alc-lisp Standard Library
Generic builtins: numbers, comparison, strings, lists and higher-order helpers
Every function takes ``(program, args)`` and reports misuse as an Error value
"""

import functools
import operator
from typing import Callable, List as PyList

from objects import (
  Object, Integer, String, List, Builtin, Function, Error,
  NULL, TRUE, bool_from_native, is_error, is_truthy, make_list
)
from environment import Env
from utilities import (
  INTEGER_PATTERN,
  arity_error,
  at_least_error,
  check_arity,
  register_builtins,
  type_mismatch_error,
  typecheck_args,
  validate_function_args
)


# ============================================================================
# ARITHMETIC FUNCTIONS
# ============================================================================

def _trunc_div(left: int, right: int) -> int:
  """Integer division rounding toward zero"""
  quotient = abs(left) // abs(right)
  return -quotient if (left < 0) != (right < 0) else quotient


def _trunc_mod(left: int, right: int) -> int:
  """Remainder with the sign of the dividend"""
  return left - right * _trunc_div(left, right)


def alc_add(program, args: PyList[Object]) -> Object:
  """Sum of all arguments, 0 when called without any"""
  error = typecheck_args("+", "integer", Integer, args)
  if error:
    return error
  return Integer(sum(arg.value for arg in args))


def alc_sub(program, args: PyList[Object]) -> Object:
  """First argument minus the rest"""
  if not args:
    return at_least_error("-", 1, 0)
  error = typecheck_args("-", "integer", Integer, args)
  if error:
    return error
  return Integer(functools.reduce(operator.sub, (arg.value for arg in args)))


def alc_mul(program, args: PyList[Object]) -> Object:
  error = typecheck_args("*", "integer", Integer, args)
  if error:
    return error
  return Integer(functools.reduce(operator.mul, (arg.value for arg in args), 1))


def alc_div(program, args: PyList[Object]) -> Object:
  """First argument divided by each of the rest, truncating"""
  if not args:
    return at_least_error("/", 1, 0)
  error = typecheck_args("/", "integer", Integer, args)
  if error:
    return error

  total = args[0].value
  for arg in args[1:]:
    if arg.value == 0:
      return Error("division by zero")
    total = _trunc_div(total, arg.value)
  return Integer(total)


def alc_mod(program, args: PyList[Object]) -> Object:
  error = validate_function_args("mod", args, [Integer, Integer])
  if error:
    return error
  if args[1].value == 0:
    return Error("division by zero")
  return Integer(_trunc_mod(args[0].value, args[1].value))


def alc_abs(program, args: PyList[Object]) -> Object:
  error = validate_function_args("abs", args, [Integer])
  return error or Integer(abs(args[0].value))


def alc_parse_int(program, args: PyList[Object]) -> Object:
  error = validate_function_args("parse_int", args, [String])
  if error:
    return error
  if not INTEGER_PATTERN.fullmatch(args[0].value):
    return Error("Could not parse int")
  return Integer(int(args[0].value))


# ============================================================================
# COMPARISON FUNCTIONS
# ============================================================================

def _chain(name: str, test: Callable[[Object, Object], bool], stop_on: bool):
  """Build a builtin that applies ``test`` to each adjacent pair.

  The result is ``stop_on`` as soon as one pair yields it, otherwise the
  opposite. A single argument is always true.
  """
  def compare_chain(program, args: PyList[Object]) -> Object:
    if not args:
      return arity_error(name, 2, 0)
    if len(args) == 1:
      return TRUE
    for left, right in zip(args, args[1:]):
      if test(left, right) == stop_on:
        return bool_from_native(stop_on)
    return bool_from_native(not stop_on)
  return compare_chain


def _integers(op: Callable[[int, int], bool]) -> Callable[[Object, Object], bool]:
  def test(left: Object, right: Object) -> bool:
    if isinstance(left, Integer) and isinstance(right, Integer):
      return op(left.value, right.value)
    return False
  return test


alc_eq = _chain("==", operator.eq, False)
alc_ne = _chain("!=", operator.ne, True)
alc_lt = _chain("<", _integers(operator.lt), False)
alc_gt = _chain(">", _integers(operator.gt), False)


# ============================================================================
# STRING FUNCTIONS
# ============================================================================

def alc_str(program, args: PyList[Object]) -> Object:
  """Concatenate string arguments"""
  error = typecheck_args("str", "string", String, args)
  return error or String("".join(arg.value for arg in args))


def alc_lines(program, args: PyList[Object]) -> Object:
  error = validate_function_args("lines", args, [String])
  if error:
    return error
  return make_list(String(line) for line in args[0].value.split("\n"))


def alc_len(program, args: PyList[Object]) -> Object:
  """Length of a string or list"""
  error = check_arity("len", args, 1)
  if error:
    return error
  value = args[0]
  if isinstance(value, String):
    return Integer(len(value.value))
  if isinstance(value, List):
    return Integer(len(value.items))
  return type_mismatch_error("len", "string or list", value, 0)


# ============================================================================
# LIST FUNCTIONS
# ============================================================================

def alc_nth(program, args: PyList[Object]) -> Object:
  """``(nth n list)``, null when out of range"""
  error = validate_function_args("nth", args, [Integer, List])
  if error:
    return error
  index, items = args[0].value, args[1].items
  if 0 <= index < len(items):
    return items[index]
  return NULL


def alc_head(program, args: PyList[Object]) -> Object:
  error = validate_function_args("head", args, [List])
  if error:
    return error
  items = args[0].items
  return items[0] if items else NULL


def alc_tail(program, args: PyList[Object]) -> Object:
  error = validate_function_args("tail", args, [List])
  return error or List(args[0].items[1:])


def alc_slice(program, args: PyList[Object]) -> Object:
  """``(slice list start [end])``, bounds clamped to the list"""
  if len(args) not in (2, 3):
    return arity_error("slice", "2 or 3", len(args))
  error = validate_function_args("slice", args, [List, Integer, Integer][:len(args)])
  if error:
    return error

  items = args[0].items
  start = min(max(args[1].value, 0), len(items))
  end = len(items) if len(args) == 2 else min(max(args[2].value, start), len(items))
  return List(items[start:end])


# ============================================================================
# HIGHER-ORDER FUNCTIONS
# ============================================================================

CALLABLE_TYPES = (Builtin, Function)


def _call(program, name: str, function: Object, args: PyList[Object]) -> Object:
  result = program.call_function(function, args)
  if is_error(result):
    return Error(f"error in '{name}' callback: {result.message}")
  return result


def alc_map(program, args: PyList[Object]) -> Object:
  """``(map f list)``"""
  error = validate_function_args("map", args, [CALLABLE_TYPES, List])
  if error:
    return error
  function, items = args[0], args[1].items

  results = []
  for item in items:
    value = _call(program, "map", function, [item])
    if is_error(value):
      return value
    results.append(value)
  return make_list(results)


def alc_filter(program, args: PyList[Object]) -> Object:
  """``(filter f list)`` keeps items for which f is truthy"""
  error = validate_function_args("filter", args, [CALLABLE_TYPES, List])
  if error:
    return error
  function, items = args[0], args[1].items

  kept = []
  for item in items:
    value = _call(program, "filter", function, [item])
    if is_error(value):
      return value
    if is_truthy(value):
      kept.append(item)
  return make_list(kept)


def alc_reduce(program, args: PyList[Object]) -> Object:
  """``(reduce f initial list)`` folds from the left"""
  error = validate_function_args("reduce", args, [CALLABLE_TYPES, Object, List])
  if error:
    return error
  function, accumulator, items = args

  for item in items.items:
    accumulator = _call(program, "reduce", function, [accumulator, item])
    if is_error(accumulator):
      return accumulator
  return accumulator


def alc_sort(program, args: PyList[Object]) -> Object:
  """Stable sort under the value total order"""
  error = validate_function_args("sort", args, [List])
  if error:
    return error
  return List(tuple(sorted(args[0].items, key=lambda item: item.sort_key())))


# ============================================================================
# REGISTRY
# ============================================================================

BUILTIN_FUNCTIONS = {
  # numbers
  "+": alc_add,
  "-": alc_sub,
  "*": alc_mul,
  "/": alc_div,
  "mod": alc_mod,
  "abs": alc_abs,
  "parse_int": alc_parse_int,
  # comparison
  "==": alc_eq,
  "!=": alc_ne,
  "<": alc_lt,
  ">": alc_gt,
  # strings
  "str": alc_str,
  "lines": alc_lines,
  "len": alc_len,
  # lists
  "nth": alc_nth,
  "head": alc_head,
  "tail": alc_tail,
  "slice": alc_slice,
  # higher-order
  "map": alc_map,
  "filter": alc_filter,
  "reduce": alc_reduce,
  "sort": alc_sort,
}


def add_generic_builtins(env: Env) -> Env:
  """Register the generic builtins (and their std/ aliases) into ``env``"""
  return register_builtins(env, BUILTIN_FUNCTIONS)


def generic_env() -> Env:
  return add_generic_builtins(Env())
