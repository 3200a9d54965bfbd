"""
Exception Hierarchy.

Every failure raised by the bundler derives from `BundlerError`, so callers
(the CLI in particular) can catch one type while still surfacing the concrete
class and message.

All errors except `EmitWriteError` are fatal: they abort the run before
anything is written. Errors that wrap a lower-level failure (an `OSError`,
a loader exception, a LibCST syntax error) are raised with ``from`` so the
root cause stays attached as ``__cause__``.
"""

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class BundlerError(Exception):
  """Base class for all bundler failures."""


class ConfigurationError(BundlerError):
  """Raised when the configuration is missing or does not validate."""


class UnknownHookError(BundlerError):
  """Raised when registering against a hook name outside the fixed set."""

  def __init__(self, name: str):
    self.name = name
    super().__init__(f"Unknown hook '{name}'")


class ModuleReadError(BundlerError):
  """Raised when the entry or a dependency cannot be read from disk."""

  def __init__(self, path: PathLike, reason: str = ""):
    self.path = Path(path)
    message = f"Cannot read module {self.path}"
    if reason:
      message += f": {reason}"
    super().__init__(message)


class LoaderResolutionError(BundlerError):
  """Raised when a loader reference does not resolve to a callable."""

  def __init__(self, reference: str, reason: str = ""):
    self.reference = reference
    message = f"Cannot resolve loader '{reference}'"
    if reason:
      message += f": {reason}"
    super().__init__(message)


class LoaderExecutionError(BundlerError):
  """Raised when a loader fails while transforming a module."""

  def __init__(self, reference: str, module_path: PathLike, reason: str = ""):
    self.reference = reference
    self.module_path = Path(module_path)
    message = f"Loader '{reference}' failed on {self.module_path}"
    if reason:
      message += f": {reason}"
    super().__init__(message)


class ParseError(BundlerError):
  """Raised when the (loader-transformed) source of a module is not valid Python."""

  def __init__(self, path: PathLike, reason: str = ""):
    self.path = Path(path)
    message = f"Cannot parse {self.path}"
    if reason:
      message += f": {reason}"
    super().__init__(message)


class DynamicImportError(ParseError):
  """Raised when ``require`` is called with a non-literal argument."""


class HookInvocationError(BundlerError):
  """Raised when a tapped callback throws during a hook invocation."""

  def __init__(self, hook: str, tap: Optional[str] = None):
    self.hook = hook
    self.tap = tap
    who = f" (tap '{tap}')" if tap else ""
    super().__init__(f"Hook '{hook}'{who} failed")


class EmitWriteError(BundlerError):
  """Raised (and reported, not propagated) when the bundle cannot be written."""

  def __init__(self, path: PathLike, reason: str = ""):
    self.path = Path(path)
    message = f"Cannot write bundle to {self.path}"
    if reason:
      message += f": {reason}"
    super().__init__(message)
