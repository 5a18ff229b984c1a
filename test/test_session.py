"""
Actor-hosted session tests for alc-lisp
"""

import io

import pytest
from objects import Integer, String, Error, NULL
from environment import Env
from native import native_env
from parsing import parse_source
from session import start_session, run_concurrently
from stdlib import generic_env
from error_handling import AlcRuntimeError, StackDepthError


@pytest.fixture
def session():
  handle = start_session(generic_env())
  yield handle
  handle.stop()


class TestSession:

  def test_run(self, session):
    assert session.run("(+ 1 2)") == Integer(3)

  def test_definitions_persist(self, session):
    session.run("(def x 41)")
    assert session.run("(+ x 1)") == Integer(42)
    assert session.bindings()["x"] == Integer(41)

  def test_evaluate_parsed_tree(self, session):
    assert session.evaluate(parse_source('(str "a" "b")')) == String("ab")

  def test_error_values_come_back(self, session):
    assert session.run("(/ 1 0)") == Error("division by zero")

  def test_host_failures_are_raised(self, session):
    with pytest.raises(AlcRuntimeError, match="Cannot call value of type integer"):
      session.run("(1 2)")
    # the actor survives a failed run
    assert session.run("1") == Integer(1)

  def test_full_depth_is_reachable(self, session):
    source = """
    (def count (fn [n] (if (== n 0) 0 (+ 1 (count (- n 1))))))
    (count 1000)
    """
    assert session.run(source) == Integer(1000)

  def test_runaway_recursion_hits_the_guard(self, session):
    with pytest.raises(StackDepthError):
      session.run("(def loop (fn [n] (loop n))) (loop 0)")

  def test_timeout(self):
    slow = start_session(native_env())
    try:
      with pytest.raises(AlcRuntimeError, match="timed out"):
        slow.run("(sleep 2000)", timeout=0.05)
      assert slow.abandoned
    finally:
      slow.stop()

  def test_context_manager(self):
    with start_session(generic_env()) as handle:
      assert handle.run("(* 6 7)") == Integer(42)


class TestRunConcurrently:

  def test_independent_programs(self):
    results = run_concurrently(["(+ 1 2)", "(* 2 5)", '(str "a" "b")'], builtins=generic_env())
    assert results == [Integer(3), Integer(10), String("ab")]

  def test_definitions_stay_private(self):
    results = run_concurrently(["(def x 1) x", "x"], builtins=generic_env())
    assert results == [Integer(1), NULL]

  def test_shared_builtins(self):
    out = io.StringIO()
    builtins = native_env(out=out)
    run_concurrently(['(print "one")', '(print "two")'], builtins=builtins)
    assert sorted(out.getvalue().splitlines()) == ["one", "two"]

  def test_builtin_table_is_not_modified(self):
    builtins = Env(generic_env().snapshot())
    run_concurrently(["(def extra 1)"], builtins=builtins)
    assert "extra" not in builtins

  def test_failure_is_raised(self):
    with pytest.raises(AlcRuntimeError):
      run_concurrently(["1", "(1 2)"], builtins=generic_env())
