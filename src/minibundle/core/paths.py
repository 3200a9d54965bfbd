"""
Module Key Normalization.

Every module in the bundle is addressed by a key of the form ``./a/b.py``:
forward slashes only, relative to the project root, prefixed with ``./``.
Keys must be identical whichever OS the build ran on.
"""

import os
import posixpath
import re
from pathlib import Path
from typing import Union

KEY_PREFIX = "./"


def to_posix(path: Union[str, Path]) -> str:
  """Replaces every run of backslashes with a single forward slash."""
  return re.sub(r"\\+", "/", str(path))


def module_key(module_path: Union[str, Path], root: Union[str, Path]) -> str:
  """
  Computes the Module Table key of a file.

  Args:
      module_path: Absolute path of the module.
      root: The project root the build was started from.

  Returns:
      str: e.g. ``"./src/index.py"``.

  Example:
      >>> module_key("/proj/src/index.py", "/proj")
      './src/index.py'
  """
  relative = os.path.relpath(str(module_path), str(root))
  return KEY_PREFIX + to_posix(relative)


def import_key(value: str, source_root: str = "src") -> str:
  """
  Computes the key a ``require(value)`` call points at.

  The argument is joined under `source_root` and normalized, so
  ``require("./util.py")`` and ``require("util.py")`` both give
  ``"./src/util.py"`` and ``require("../lib/x.py")`` gives ``"./lib/x.py"``.
  A leading ``/`` stays under `source_root`: ``require("/util.py")`` gives
  ``"./src/util.py"``.
  """
  relative = to_posix(value).lstrip("/")
  joined = posixpath.normpath(posixpath.join(to_posix(source_root), relative))
  return KEY_PREFIX + joined


def resolve_key(key: str, root: Union[str, Path]) -> Path:
  """Turns a module key back into an absolute path under `root`."""
  return Path(os.path.normpath(os.path.join(str(root), key)))
