"""
alc-lisp - Main Entry Point
Runs a source file or starts the interactive REPL
"""

import os
import sys
import time
import argparse
from pathlib import Path
from typing import Optional

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from lexer import Lexer
from parsing import Node, Parser, pretty_print_node
from objects import Object, is_error
from environment import Env, MAX_CALL_DEPTH
from native import native_env
from session import Session, start_session
from error_handling import AlcError, format_error


VERSION = "0.1.0"
HISTORY_FILE = "~/.alc_history"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='alc',
      description='alc-lisp - a small Lisp dialect interpreter',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s program.alc                # Run a program
  %(prog)s                            # Interactive mode
  %(prog)s -t program.alc             # Print stage timings
  %(prog)s --debug-ast program.alc    # Dump the syntax tree before running
  %(prog)s --timeout 5 program.alc    # Give up after 5 seconds
        """
  )

  parser.add_argument(
      'file',
      nargs='?',
      help='alc-lisp source file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '-t', '--time',
      action='store_true',
      help='Time each stage of the execution'
  )

  parser.add_argument(
      '-d', '--debug',
      action='store_true',
      help='Show lexer, AST and call trace output'
  )

  parser.add_argument(
      '--debug-lexer',
      action='store_true',
      help='Show the token stream'
  )

  parser.add_argument(
      '--debug-ast',
      action='store_true',
      help='Show the syntax tree'
  )

  parser.add_argument(
      '--max-depth',
      type=int,
      default=MAX_CALL_DEPTH,
      metavar='N',
      help=f'Maximum call stack depth (default: {MAX_CALL_DEPTH})'
  )

  parser.add_argument(
      '--timeout',
      type=float,
      default=None,
      metavar='SECONDS',
      help='Abort evaluation after this many seconds'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=f'alc-lisp {VERSION}'
  )

  return parser


class Timer:
  """Context manager printing how long a stage took, when enabled"""

  def __init__(self, label: str, enabled: bool = True):
    self.label = label
    self.enabled = enabled
    self.start = 0.0

  def __enter__(self) -> 'Timer':
    self.start = time.perf_counter()
    return self

  def __exit__(self, exc_type, exc, tb):
    if self.enabled:
      elapsed = (time.perf_counter() - self.start) * 1000
      print(f"{self.label}: {elapsed:.3f}ms")


def show_result(result: Object) -> None:
  if is_error(result):
    print(f"error: {result.message}")
  else:
    print(result)


def parse_root(source: str, filename: str, show_tokens: bool = False, show_ast: bool = False,
               timed: bool = False) -> Node:
  """Lex and parse ``source``, dumping intermediate stages on request"""
  with Timer("Lexer", timed):
    lexer = Lexer(source, filename)
    tokens = lexer.parse()

  if show_tokens:
    print(f"LEXER\n----\n{lexer}\n----")

  with Timer("AST", timed):
    parser = Parser.with_tokens(tokens)
    root = parser.parse()

  if show_ast:
    print(pretty_print_node(root), end="")

  if parser.has_errors():
    parser.print_errors(root)
  return root


def run_file(file_path: str, args: argparse.Namespace) -> None:
  """Run an alc-lisp source file and print its result"""
  try:
    source = Path(file_path).read_text(encoding='utf-8')
  except FileNotFoundError:
    print(f"Error: Source file '{file_path}' not found")
    sys.exit(1)
  except PermissionError:
    print(f"Error: Permission denied reading '{file_path}'")
    sys.exit(1)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{file_path}': {e}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")
    sys.exit(1)

  session: Optional[Session] = None
  try:
    with Timer("Total", args.time):
      root = parse_root(source, file_path,
                        show_tokens=args.debug or args.debug_lexer,
                        show_ast=args.debug or args.debug_ast,
                        timed=args.time)

      session = start_session(native_env(), max_depth=args.max_depth, debug=args.debug)
      with Timer("Interpreter", args.time):
        result = session.evaluate(root, timeout=args.timeout)

    show_result(result)
  except AlcError as e:
    print(format_error(e, source, file_path), end="")
    sys.exit(1)
  finally:
    if session is not None:
      session.stop()


# ============================================================================
# REPL
# ============================================================================

def setup_readline(globals_env: Env) -> None:
  """Setup readline with history and completion over global names"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First run, no history yet

  readline.set_history_length(1000)

  def completer(text, state):
    names = sorted(globals_env.names()) + [".q", ".clear", ".env", ".tokens", ".ast", ".help"]
    options = [name for name in names if name.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.set_completer_delims(" ()[]\"'")
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(readline.write_history_file, history_file)


def show_repl_help() -> None:
  print("REPL Commands:")
  print("  .tokens <src>   - Show the tokens of <src>")
  print("  .ast <src>      - Show the syntax tree of <src>")
  print("  .env            - Show user definitions")
  print("  .clear          - Clear the screen")
  print("  .help           - Show this help")
  print("  .q              - Exit REPL")


def show_env(session: Session, builtin_names) -> None:
  user_bindings = {name: value for name, value in session.bindings().items()
                   if name not in builtin_names}
  if not user_bindings:
    print("  (no user-defined bindings)")
    return
  for name, value in sorted(user_bindings.items()):
    val_str = str(value)
    if len(val_str) > 60:
      val_str = val_str[:57] + "..."
    print(f"  {name} = {val_str}")


def repl_command(line: str, session: Session, builtin_names) -> bool:
  """Handle a ``.command`` line; False means the REPL should stop"""
  command, _, rest = line.partition(" ")

  if command == ".q":
    print("ENDING REPL")
    return False
  elif command == ".clear":
    print("\x1b[2J\x1b[H", end="", flush=True)
  elif command == ".env":
    show_env(session, builtin_names)
  elif command == ".tokens":
    lexer = Lexer(rest)
    lexer.parse()
    print(lexer)
  elif command == ".ast":
    print(pretty_print_node(parse_root(rest, "<repl>")), end="")
  elif command == ".help":
    show_repl_help()
  else:
    print(f"Unknown command {command}, try .help")
  return True


def run_interactive_mode(args: argparse.Namespace) -> None:
  """Read-eval-print loop; definitions persist between lines"""
  print(f"ALC_LISP [{VERSION}] REPL - INTERPRETER")
  print("Type '.q' to quit, '.help' for commands")
  if args.debug:
    print("Debug mode enabled")

  globals_env = native_env()
  builtin_names = set(globals_env.names())
  session = start_session(globals_env, max_depth=args.max_depth, debug=args.debug)
  setup_readline(globals_env)

  try:
    while True:
      try:
        line = input(">> ").strip()
        if not line:
          continue

        if line.startswith("."):
          if not repl_command(line, session, builtin_names):
            break
          continue

        root = parse_root(line, "<repl>",
                          show_tokens=args.debug or args.debug_lexer,
                          show_ast=args.debug or args.debug_ast)
        with Timer("EVAL", args.time):
          result = session.evaluate(root, timeout=args.timeout)
        show_result(result)

      except AlcError as e:
        print(f"error: {e}")
        if session.abandoned:
          # the timed out evaluation still owns the old actor
          session.stop()
          session = start_session(globals_env, max_depth=args.max_depth, debug=args.debug)
      except (KeyboardInterrupt, EOFError):
        print("\nENDING REPL")
        break
  finally:
    session.stop()


def main(argv=None) -> None:
  """Main entry point for alc-lisp"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.max_depth < 1:
    arg_parser.error("--max-depth must be at least 1")

  if args.file and not args.interactive:
    run_file(args.file, args)
  else:
    run_interactive_mode(args)


if __name__ == "__main__":
  main()
