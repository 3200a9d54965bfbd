"""
Command Handlers.

Each handler loads the configuration from the project root, runs the
compiler, and converts fatal `BundlerError`s into a logged message plus a
non-zero exit code. The error's class and message are reported as raised.
"""

from pathlib import Path
from typing import Optional

from rich.markup import escape
from rich.table import Table

from minibundle.config import load_config
from minibundle.core.compiler import Compiler
from minibundle.errors import BundlerError
from minibundle.utils.console import console, log_error, log_warning


def _report(error: BundlerError) -> None:
  message = f"{type(error).__name__}: {error}"
  if error.__cause__ is not None:
    message += f" (caused by {type(error.__cause__).__name__}: {error.__cause__})"
  log_error(escape(message))


def _create_compiler(root: Optional[Path], config_file: Optional[Path]) -> Compiler:
  project_root = (root or Path.cwd()).resolve()
  config = load_config(search_path=project_root, config_file=config_file)
  return Compiler(config, root=project_root)


def handle_build(root: Optional[Path], config_file: Optional[Path] = None) -> int:
  """
  Handles ``minibundle build``.

  Args:
      root: Project root; defaults to the working directory.
      config_file: Explicit configuration file.

  Returns:
      int: 0 if the graph was built (even if the write was only reported), 1 otherwise.
  """
  try:
    compiler = _create_compiler(root, config_file)
    compilation = compiler.start()
  except BundlerError as e:
    _report(e)
    return 1

  if not compilation.emitted:
    log_warning("Build finished but the bundle was not written.")
  return 0


def handle_graph(root: Optional[Path], config_file: Optional[Path] = None) -> int:
  """
  Handles ``minibundle graph``: prints the Module Table keys in traversal order.

  Returns:
      int: Exit code.
  """
  try:
    compiler = _create_compiler(root, config_file)
    modules = compiler.build_graph()
  except BundlerError as e:
    _report(e)
    return 1

  table = Table(title=f"Modules reachable from {escape(compiler.entry)}")
  table.add_column("#", justify="right")
  table.add_column("Key", style="key")
  table.add_column("Lines", justify="right")
  for index, (key, source) in enumerate(modules.items(), start=1):
    table.add_row(str(index), escape(key), str(len(source.splitlines())))
  console.print(table)
  return 0
