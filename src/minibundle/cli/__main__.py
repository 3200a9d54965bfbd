"""
Main Entry Point for the minibundle CLI.

Parses arguments and dispatches to the handlers in `minibundle.cli.commands`.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from minibundle import __version__
from minibundle.cli import commands
from minibundle.utils.console import set_verbose


def _add_common_arguments(cmd: argparse.ArgumentParser) -> None:
  cmd.add_argument(
    "--config",
    type=Path,
    default=None,
    help="Configuration file (default: minibundle.config.py or [tool.minibundle] in pyproject.toml)",
  )
  cmd.add_argument("--root", type=Path, default=None, help="Project root (default: current directory)")
  cmd.add_argument("-v", "--verbose", action="store_true", help="Log every module, loader and hook")


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, 1 for a failed build).
  """
  parser = argparse.ArgumentParser(prog="minibundle", description="minibundle: Minimal Python module bundler")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: BUILD ---
  cmd_build = subparsers.add_parser("build", help="Bundle the entry module and its dependencies")
  _add_common_arguments(cmd_build)

  # --- Command: GRAPH ---
  cmd_graph = subparsers.add_parser("graph", help="List the modules a build would include, without writing")
  _add_common_arguments(cmd_graph)

  args = parser.parse_args(argv)
  set_verbose(args.verbose)

  if args.command == "build":
    return commands.handle_build(args.root, args.config)

  elif args.command == "graph":
    return commands.handle_graph(args.root, args.config)

  return 1


if __name__ == "__main__":
  raise SystemExit(main())
