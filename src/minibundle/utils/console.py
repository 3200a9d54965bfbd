"""
Console and Logging Utilities.

Build output goes through the standard `logging` library, rendered by `rich`.
The module keeps one `rich.console.Console` behind a small proxy so that the
destination can be swapped (e.g. to an in-memory buffer in tests) without
modules having to re-import `console`.

Attributes:
    console (_ConsoleProxy): Stable reference to the active Rich Console.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Between INFO (20) and WARNING (30)
SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "key": "bold magenta",
  }
)


class _ConsoleProxy:
  """
  Forwards printing to a swappable `rich.console.Console` backend.

  Swapping the backend also re-points the root logger's `RichHandler`,
  so `logging.info(...)` follows the console.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=_THEME)
    self._level = logging.INFO
    self._configure_logging()

  @property
  def backend(self) -> Console:
    return self._backend

  def set_backend(self, new_console: Console) -> None:
    """
    Injects a new Console backend and updates logging handlers.

    Args:
        new_console (Console): The Rich Console to write to from now on.
    """
    new_console.push_theme(_THEME)
    self._backend = new_console
    self._configure_logging()

  def reset(self) -> None:
    """Restores a fresh stdout console at INFO level."""
    self._backend = Console(theme=_THEME)
    self._level = logging.INFO
    self._configure_logging()

  def set_level(self, level: int) -> None:
    """Changes the root logging level (e.g. DEBUG for ``-v``)."""
    self._level = level
    logging.getLogger().setLevel(level)

  def _configure_logging(self) -> None:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
      if isinstance(handler, RichHandler):
        root_logger.removeHandler(handler)

    rich_handler = RichHandler(
      console=self._backend,
      show_time=False,
      show_path=False,
      markup=True,
      rich_tracebacks=True,
    )
    root_logger.setLevel(self._level)
    root_logger.addHandler(rich_handler)

  def print(self, *args: Any, **kwargs: Any) -> None:
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Redirects console output and logging to `new_console`.

  Args:
      new_console (Console): The configured Rich console to use globally.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  """Resets logging and console to standard output."""
  console.reset()


def set_verbose(verbose: bool) -> None:
  """Switches between INFO and DEBUG output."""
  console.set_level(logging.DEBUG if verbose else logging.INFO)


def log_info(msg: str) -> None:
  """
  Logs an informational message.

  Args:
      msg (str): The message content. Can include rich markup like [bold].
  """
  logging.info(f"ℹ️  {msg}", extra={"markup": True})


def log_success(msg: str) -> None:
  """Logs a message at the SUCCESS level."""
  logging.log(SUCCESS_LEVEL_NUM, f"✅ {msg}", extra={"markup": True})


def log_warning(msg: str) -> None:
  logging.warning(f"⚠️  {msg}", extra={"markup": True})


def log_error(msg: str) -> None:
  """
  Logs an error message.

  Args:
      msg (str): The message content.
  """
  logging.error(f"❌ {msg}", extra={"markup": True})
