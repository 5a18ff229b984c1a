"""
alc-lisp native builtins
Process and file-system functions for the command-line host
"""

import os
import sys
import time
import threading
from typing import Callable, Dict, Optional, TextIO

from objects import Error, Integer, String, NULL, debug_repr
from environment import Env
from utilities import BuiltinFunction, register_builtins, validate_function_args
from stdlib import add_generic_builtins


class NativeFiles:
  """The one open file shared by open, read_file, file and close"""

  def __init__(self):
    self._handle: Optional[TextIO] = None
    self._lock = threading.Lock()

  def open(self, path: str) -> None:
    handle = open(path, 'r', encoding='utf-8')
    with self._lock:
      previous, self._handle = self._handle, handle
    if previous is not None:
      previous.close()

  def read(self) -> Optional[str]:
    with self._lock:
      if self._handle is None:
        return None
      content = self._handle.read()
      self._handle.seek(0)
      return content

  def describe(self) -> Optional[str]:
    with self._lock:
      if self._handle is None:
        return None
      return f"FILE[{self._handle.name}]"

  def close(self) -> None:
    with self._lock:
      handle, self._handle = self._handle, None
    if handle is not None:
      handle.close()

  @property
  def is_open(self) -> bool:
    return self._handle is not None


def make_native_builtins(files: Optional[NativeFiles] = None,
                         out: Optional[TextIO] = None,
                         sleeper: Callable[[float], None] = time.sleep) -> Dict[str, BuiltinFunction]:
  """Native builtins bound to one NativeFiles and one output stream.

  ``out`` defaults to whatever ``sys.stdout`` is at call time.
  """
  files = files if files is not None else NativeFiles()

  def write(text: str) -> None:
    # one write per line so concurrent programs never split a line
    stream = out if out is not None else sys.stdout
    stream.write(text + "\n")

  def alc_print(program, args):
    write("".join(str(arg) for arg in args))
    return NULL

  def alc_debug(program, args):
    write("[" + ", ".join(debug_repr(arg) for arg in args) + "]")
    return NULL

  def alc_pdebug(program, args):
    if not args:
      write("[]")
    else:
      write("[\n" + "".join(f"    {debug_repr(arg)},\n" for arg in args) + "]")
    return NULL

  def alc_pwd(program, args):
    return String(os.getcwd())

  def alc_open(program, args):
    error = validate_function_args("open", args, [String])
    if error:
      return error
    try:
      files.open(args[0].value)
    except OSError as e:
      return Error(f"error trying to open file: {e}")
    return NULL

  def alc_read_file(program, args):
    try:
      content = files.read()
    except (OSError, UnicodeDecodeError) as e:
      return Error(f"error reading file: {e}")
    if content is None:
      return Error("file not opened")
    return String(content)

  def alc_file(program, args):
    description = files.describe()
    return NULL if description is None else String(description)

  def alc_close(program, args):
    files.close()
    return NULL

  def alc_sleep(program, args):
    """Pause for the given number of milliseconds"""
    error = validate_function_args("sleep", args, [Integer])
    if error:
      return error
    if args[0].value < 0:
      return Error("Invalid argument type for function 'sleep': expected a non-negative integer")
    sleeper(args[0].value / 1000)
    return NULL

  return {
    "print": alc_print,
    "debug": alc_debug,
    "pdebug": alc_pdebug,
    "pwd": alc_pwd,
    "open": alc_open,
    "read_file": alc_read_file,
    "file": alc_file,
    "close": alc_close,
    "sleep": alc_sleep,
  }


def add_native_builtins(env: Env, files: Optional[NativeFiles] = None, out: Optional[TextIO] = None) -> Env:
  return register_builtins(env, make_native_builtins(files, out))


def native_env(files: Optional[NativeFiles] = None, out: Optional[TextIO] = None) -> Env:
  """Global frame for command-line runs: generic plus native builtins"""
  env = add_generic_builtins(Env())
  return add_native_builtins(env, files, out)
