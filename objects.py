"""
alc-lisp runtime values
Immutable tagged union shared by the evaluator and the builtins
"""

from typing import Any, Callable, Tuple
from dataclasses import dataclass, field


class Object:
  """Base class of every runtime value.

  Equality comes from the dataclass variants: structural for data,
  identity for ``Builtin`` and ``Function``. Ordering follows
  ``sort_key``.
  """

  type_name = "object"
  rank = 99

  def type_of(self) -> str:
    return self.type_name

  def sort_key(self) -> Tuple[int, Any]:
    return (self.rank, 0)

  def __lt__(self, other):
    if not isinstance(other, Object):
      return NotImplemented
    return self.sort_key() < other.sort_key()

  def __gt__(self, other):
    if not isinstance(other, Object):
      return NotImplemented
    return self.sort_key() > other.sort_key()


@dataclass(frozen=True)
class Null(Object):
  type_name = "null"
  rank = 0

  def __str__(self) -> str:
    return "null"


@dataclass(frozen=True)
class Bool(Object):
  value: bool
  type_name = "boolean"
  rank = 1

  def sort_key(self):
    return (self.rank, self.value)

  def __str__(self) -> str:
    return "true" if self.value else "false"


@dataclass(frozen=True)
class Integer(Object):
  value: int
  type_name = "integer"
  rank = 2

  def sort_key(self):
    return (self.rank, self.value)

  def __str__(self) -> str:
    return str(self.value)


@dataclass(frozen=True)
class String(Object):
  value: str
  type_name = "string"
  rank = 3

  def sort_key(self):
    return (self.rank, self.value)

  def __str__(self) -> str:
    return self.value


@dataclass(frozen=True)
class List(Object):
  items: Tuple[Object, ...] = ()
  type_name = "list"
  rank = 4

  def sort_key(self):
    # lists are ordered by length only
    return (self.rank, len(self.items))

  def __len__(self) -> int:
    return len(self.items)

  def __iter__(self):
    return iter(self.items)

  def __str__(self) -> str:
    return "[" + " ".join(_element_display(item) for item in self.items) + "]"


@dataclass(frozen=True, eq=False)
class Builtin(Object):
  """A host function ``function(program, args) -> Object``"""
  name: str
  function: Callable = field(repr=False)
  type_name = "builtin"
  rank = 5

  def sort_key(self):
    return (self.rank, self.name)

  def __str__(self) -> str:
    return f"<builtin {self.name}>"


@dataclass(frozen=True, eq=False)
class Function(Object):
  """A closure: parameters, body node and the frame it was created in"""
  env: Any = field(repr=False)
  parameters: Tuple[str, ...]
  body: Any = field(repr=False)
  type_name = "function"
  rank = 6

  def __str__(self) -> str:
    return f"<function ({' '.join(self.parameters)})>"


@dataclass(frozen=True)
class Error(Object):
  message: str
  type_name = "error"
  rank = 7

  def sort_key(self):
    return (self.rank, self.message)

  def __str__(self) -> str:
    return self.message


NULL = Null()
TRUE = Bool(True)
FALSE = Bool(False)


def _element_display(value: Object) -> str:
  if isinstance(value, String):
    return f'"{value.value}"'
  return str(value)


def bool_from_native(value: bool) -> Bool:
  return TRUE if value else FALSE


def make_list(items) -> List:
  return List(tuple(items))


def is_error(value: Object) -> bool:
  return isinstance(value, Error)


def is_truthy(value: Object) -> bool:
  """0, "", false and [] are false; everything else is true"""
  if isinstance(value, Bool):
    return value.value
  if isinstance(value, Integer):
    return value.value != 0
  if isinstance(value, String):
    return value.value != ""
  if isinstance(value, List):
    return len(value.items) > 0
  return True


def compare(left: Object, right: Object) -> int:
  """Three-way comparison under the total order used by sort"""
  a, b = left.sort_key(), right.sort_key()
  if a < b:
    return -1
  if a > b:
    return 1
  return 0


def debug_repr(value: Object) -> str:
  """Constructor-style rendering used by the debug builtins"""
  if isinstance(value, List):
    return f"List([{', '.join(debug_repr(item) for item in value.items)}])"
  if isinstance(value, Null):
    return "Null"
  if isinstance(value, Function):
    return f"Function(parameters={list(value.parameters)})"
  return repr(value)
