"""
alc-lisp sessions
Programs hosted in pykka actors, one thread per Program
"""

import threading
from typing import Dict, List, Optional, Sequence

import pykka

from objects import Object
from environment import Env, MAX_CALL_DEPTH, mark_deep_stack, reserve_recursion, stack_size_for
from parsing import Node
from interpreter import Program, NumberCache, parse_program
from native import native_env
from error_handling import AlcRuntimeError


class ProgramActor(pykka.ThreadingActor):
  """Actor that owns one Program and evaluates source on its own thread"""

  use_daemon_thread = True

  def __init__(self, global_env: Env, number_cache: Optional[NumberCache] = None,
               max_depth: int = MAX_CALL_DEPTH, debug: bool = False):
    super().__init__()
    self.program = Program(global_env, number_cache, max_depth, debug)

  def on_start(self):
    # the actor thread was started with stack_size_for(max_depth)
    max_depth = self.program.env.max_depth
    reserve_recursion(max_depth)
    mark_deep_stack(max_depth)

  def run(self, source: str) -> Object:
    return self.program.eval(parse_program(source, self.program.debug))

  def evaluate(self, root: Node) -> Object:
    return self.program.eval(root)

  def bindings(self) -> Dict[str, Object]:
    return self.program.globals().snapshot()


class Session:
  """Handle to a running ProgramActor; globals persist between runs"""

  def __init__(self, actor_ref: pykka.ActorRef):
    self._ref = actor_ref
    self._proxy = actor_ref.proxy()
    self._abandoned = False

  def run(self, source: str, timeout: Optional[float] = None) -> Object:
    return self._wait(self._proxy.run(source), timeout)

  def evaluate(self, root: Node, timeout: Optional[float] = None) -> Object:
    return self._wait(self._proxy.evaluate(root), timeout)

  def bindings(self) -> Dict[str, Object]:
    return self._proxy.bindings().get()

  @property
  def abandoned(self) -> bool:
    """True once an evaluation timed out and was left running"""
    return self._abandoned

  def stop(self) -> None:
    if not self._ref.is_alive():
      return
    # an abandoned evaluation may never finish, so don't wait for it
    self._ref.stop(block=not self._abandoned)

  def _wait(self, future, timeout: Optional[float]) -> Object:
    try:
      return future.get(timeout=timeout)
    except pykka.Timeout as e:
      self._abandoned = True
      raise AlcRuntimeError(f"evaluation timed out after {timeout} seconds") from e

  def __enter__(self) -> 'Session':
    return self

  def __exit__(self, exc_type, exc, tb):
    self.stop()


def _start_actor(global_env: Env, number_cache: Optional[NumberCache], max_depth: int,
                 debug: bool) -> pykka.ActorRef:
  previous = threading.stack_size(stack_size_for(max_depth))
  try:
    return ProgramActor.start(global_env, number_cache, max_depth, debug)
  finally:
    threading.stack_size(previous)


def start_session(
  builtins: Optional[Env] = None,
  max_depth: int = MAX_CALL_DEPTH,
  debug: bool = False,
  number_cache: Optional[NumberCache] = None
) -> Session:
  """Start an actor-hosted Program over ``builtins`` (native globals by default)"""
  global_env = builtins if builtins is not None else native_env()
  return Session(_start_actor(global_env, number_cache, max_depth, debug))


def run_concurrently(
  sources: Sequence[str],
  builtins: Optional[Env] = None,
  timeout: Optional[float] = None
) -> List[Object]:
  """Evaluate several programs in parallel, one actor each.

  Every program gets its own global frame filled from the same builtin
  table, so builtins (and any state they close over) are shared while
  top-level definitions stay private. The number cache is shared too.
  """
  shared = builtins if builtins is not None else native_env()
  numbers = NumberCache()
  sessions = [start_session(shared.copy(), number_cache=numbers) for _ in sources]
  try:
    futures = [session._proxy.run(source) for session, source in zip(sessions, sources)]
    try:
      return pykka.get_all(futures, timeout=timeout)
    except pykka.Timeout as e:
      for session in sessions:
        session._abandoned = True
      raise AlcRuntimeError(f"evaluation timed out after {timeout} seconds") from e
  finally:
    for session in sessions:
      session.stop()
