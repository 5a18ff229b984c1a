"""
Command-line front end tests for alc-lisp
"""

import builtins

import pytest
import main


@pytest.fixture
def source_file(tmp_path):
  def write(text, name="program.alc"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)
  return write


@pytest.fixture
def repl_input(monkeypatch):
  """Feed lines to the REPL; input() raises EOFError when they run out"""
  monkeypatch.setattr(main, "READLINE_AVAILABLE", False)

  def feed(*lines):
    pending = list(lines)

    def fake_input(prompt=""):
      if not pending:
        raise EOFError
      return pending.pop(0)

    monkeypatch.setattr(builtins, "input", fake_input)
  return feed


class TestRunFile:

  def test_prints_result(self, source_file, capsys):
    main.main([source_file("(def x 20) (+ x 22)")])
    assert capsys.readouterr().out == "42\n"

  def test_print_output_then_result(self, source_file, capsys):
    main.main([source_file('(print "hi") [1 "a"]')])
    assert capsys.readouterr().out == 'hi\n[1 "a"]\n'

  def test_error_value(self, source_file, capsys):
    main.main([source_file("(/ 1 0)")])
    assert capsys.readouterr().out == "error: division by zero\n"

  def test_host_failure_exits(self, source_file, capsys):
    path = source_file("(def a 1)\n(1 2)")
    with pytest.raises(SystemExit) as exc_info:
      main.main([path])
    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert f"Runtime error in {path} at line 2" in out
    assert "Cannot call value of type integer" in out
    assert "^ Error here" in out

  def test_lex_failure_exits(self, source_file, capsys):
    with pytest.raises(SystemExit):
      main.main([source_file('(print "open')])
    assert "unterminated string literal" in capsys.readouterr().out

  def test_missing_file(self, tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
      main.main([str(tmp_path / "nope.alc")])
    assert exc_info.value.code == 1
    assert "not found" in capsys.readouterr().out

  def test_timings(self, source_file, capsys):
    main.main(["-t", source_file("(+ 1 2)")])
    out = capsys.readouterr().out
    for stage in ("Lexer:", "AST:", "Interpreter:", "Total:"):
      assert stage in out

  def test_debug_lexer_and_ast(self, source_file, capsys):
    main.main(["--debug-lexer", "--debug-ast", source_file("(+ 1 2)")])
    out = capsys.readouterr().out
    assert "LEXER" in out
    assert "Word('+')" in out

  def test_max_depth(self, source_file, capsys):
    path = source_file("(def f (fn [n] (if (== n 0) 0 (f (- n 1))))) (f 20)")
    with pytest.raises(SystemExit):
      main.main(["--max-depth", "10", path])
    assert "stack depth exceeded (max 10 frames)" in capsys.readouterr().out

  def test_timeout(self, source_file, capsys):
    with pytest.raises(SystemExit):
      main.main(["--timeout", "0.05", source_file("(sleep 2000)")])
    assert "timed out" in capsys.readouterr().out

  def test_version(self, capsys):
    with pytest.raises(SystemExit) as exc_info:
      main.main(["--version"])
    assert exc_info.value.code == 0
    assert main.VERSION in capsys.readouterr().out


class TestRepl:

  def test_definitions_persist_between_lines(self, repl_input, capsys):
    repl_input("(def x 2)", "(* x 21)", ".q")
    main.main([])
    out = capsys.readouterr().out
    assert "ALC_LISP [" in out
    assert "null\n" in out
    assert "42\n" in out
    assert "ENDING REPL" in out

  def test_errors_do_not_end_the_session(self, repl_input, capsys):
    repl_input("(1 2)", "(/ 1 0)", "(+ 1 1)")
    main.main(["-i"])
    out = capsys.readouterr().out
    assert "error: Cannot call value of type integer" in out
    assert "error: division by zero" in out
    assert "2\n" in out

  def test_env_command(self, repl_input, capsys):
    repl_input("(def answer 42)", ".env")
    main.main([])
    out = capsys.readouterr().out
    assert "answer = 42" in out
    assert "map =" not in out

  def test_tokens_and_ast_commands(self, repl_input, capsys):
    repl_input(".tokens (a 1)", ".ast (a 1)")
    main.main([])
    out = capsys.readouterr().out
    assert "Word(a)" in out
    assert "NumberLiteral('1')" in out

  def test_help_and_unknown_command(self, repl_input, capsys):
    repl_input(".help", ".nope")
    main.main([])
    out = capsys.readouterr().out
    assert ".tokens <src>" in out
    assert "Unknown command .nope" in out
