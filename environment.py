"""
alc-lisp environments
Lock-guarded scope frames, the depth-checked call stack and its host stack
"""

import sys
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from objects import Object
from error_handling import StackDepthError


MAX_CALL_DEPTH = 1024

# Host stack budget per language call. A call costs about a dozen Python
# frames, more when its body nests deeply.
FRAMES_PER_CALL = 32
BYTES_PER_FRAME = 4096
THREAD_STACK_SIZE = 64 * 1024 * 1024
MAX_THREAD_STACK_SIZE = 1024 * 1024 * 1024

_deep_stack = threading.local()


def recursion_limit_for(max_depth: int) -> int:
  """Python recursion limit needed to nest ``max_depth`` language calls"""
  wanted = max_depth * FRAMES_PER_CALL + 1000
  return min(wanted, MAX_THREAD_STACK_SIZE // BYTES_PER_FRAME)


def stack_size_for(max_depth: int) -> int:
  return max(THREAD_STACK_SIZE, recursion_limit_for(max_depth) * BYTES_PER_FRAME)


def reserve_recursion(max_depth: int) -> None:
  limit = recursion_limit_for(max_depth)
  if sys.getrecursionlimit() < limit:
    sys.setrecursionlimit(limit)


def mark_deep_stack(max_depth: int) -> None:
  """Record that the current thread was started with ``stack_size_for(max_depth)``"""
  _deep_stack.max_depth = max_depth


def has_headroom(max_depth: int) -> bool:
  return getattr(_deep_stack, "max_depth", 0) >= max_depth


def run_with_headroom(function: Callable[..., Any], *args, max_depth: int = MAX_CALL_DEPTH) -> Any:
  """
  Call ``function(*args)`` somewhere ``max_depth`` nested calls fit

  On a thread already sized for it this is a plain call. Otherwise the
  call runs on a worker thread with a larger stack, and its result or
  exception is handed back to the caller.
  """
  reserve_recursion(max_depth)
  if has_headroom(max_depth):
    return function(*args)

  outcome: Dict[str, Any] = {}

  def target():
    mark_deep_stack(max_depth)
    try:
      outcome["value"] = function(*args)
    except BaseException as e:
      outcome["error"] = e

  previous = threading.stack_size(stack_size_for(max_depth))
  try:
    worker = threading.Thread(target=target, name="alc-eval", daemon=True)
    worker.start()
  finally:
    threading.stack_size(previous)
  worker.join()

  if "error" in outcome:
    raise outcome["error"]
  return outcome["value"]


class Env:
  """A mutable name -> Object frame that can be shared between closures.

  Each operation takes the lock for exactly one read, insert or copy.
  Nothing is ever evaluated while the lock is held.
  """

  def __init__(self, bindings: Optional[Dict[str, Object]] = None):
    self._bindings: Dict[str, Object] = dict(bindings or {})
    self._lock = threading.Lock()

  def get(self, name: str) -> Optional[Object]:
    with self._lock:
      return self._bindings.get(name)

  def set(self, name: str, value: Object) -> None:
    with self._lock:
      self._bindings[name] = value

  def contains(self, name: str) -> bool:
    with self._lock:
      return name in self._bindings

  def snapshot(self) -> Dict[str, Object]:
    with self._lock:
      return dict(self._bindings)

  def copy(self) -> 'Env':
    """A new, independent frame with the same bindings"""
    return Env(self.snapshot())

  def extend(self, pairs: Iterable[Tuple[str, Object]]) -> 'Env':
    """Copy this frame and add ``pairs`` to the copy"""
    bindings = self.snapshot()
    bindings.update(pairs)
    return Env(bindings)

  def update(self, bindings: Dict[str, Object]) -> None:
    with self._lock:
      self._bindings.update(bindings)

  def names(self) -> List[str]:
    with self._lock:
      return list(self._bindings)

  def __contains__(self, name: str) -> bool:
    return self.contains(name)

  def __len__(self) -> int:
    with self._lock:
      return len(self._bindings)

  def __repr__(self) -> str:
    return f"Env({len(self)} bindings)"


class CallStack:
  """Frames from the global scope (index 0) to the active call"""

  def __init__(self, initial: Env, max_depth: int = MAX_CALL_DEPTH):
    self.max_depth = max_depth
    self._frames: List[Env] = [initial]

  def push(self, env: Env) -> None:
    if len(self._frames) >= self.max_depth:
      raise StackDepthError(self.max_depth, reached=len(self._frames))
    self._frames.append(env)

  def pop(self) -> Env:
    if len(self._frames) == 1:
      raise IndexError("cannot pop the global frame")
    return self._frames.pop()

  def current(self) -> Env:
    return self._frames[-1]

  def global_env(self) -> Env:
    return self._frames[0]

  def active(self) -> List[Env]:
    return list(self._frames)

  def lookup(self, name: str) -> Optional[Object]:
    for env in reversed(self._frames):
      value = env.get(name)
      if value is not None:
        return value
    return None

  def depth(self) -> int:
    return len(self._frames)

  def clone(self) -> 'CallStack':
    """Copy the stack; the frames themselves are shared"""
    stack = CallStack(self._frames[0], self.max_depth)
    stack._frames = list(self._frames)
    return stack

  def __repr__(self) -> str:
    return f"CallStack(depth={self.depth()}, max={self.max_depth})"
