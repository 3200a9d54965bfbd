"""
Bundle Emitter.

Renders the Module Table into a single Python file using a Jinja2 template.
The template owns the runtime shell (the ``__minibundle_require__``
function); this module only supplies the data:

- ``entry``: key of the entry module,
- ``modules``: the Module Table,
- ``runtime_require``: name of the runtime lookup function.

A failed write is reported and swallowed into the returned value; the build
itself has already succeeded by then.
"""

import logging
from importlib import resources
from pathlib import Path
from typing import Mapping, Optional

from jinja2 import Environment, StrictUndefined, TemplateError
from rich.markup import escape

from minibundle.config import OutputSpec
from minibundle.core.graph import RUNTIME_REQUIRE_NAME
from minibundle.errors import ConfigurationError, EmitWriteError
from minibundle.utils.console import log_error, log_success

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "bundle.py.j2"


def _pyrepr(value: object) -> str:
  """Jinja filter: a Python literal for `value`."""
  return repr(value)


class BundleEmitter:
  """
  Renders and writes the bundle file.

  Attributes:
      template_path (Optional[Path]): Override template; the packaged one is used when None.
      last_error (Optional[EmitWriteError]): Failure of the most recent `emit`, if any.
  """

  def __init__(self, template_path: Optional[Path] = None, runtime_require: str = RUNTIME_REQUIRE_NAME):
    self.template_path = template_path
    self.runtime_require = runtime_require
    self.last_error: Optional[EmitWriteError] = None

    self.environment = Environment(keep_trailing_newline=True, undefined=StrictUndefined, autoescape=False)
    self.environment.filters["pyrepr"] = _pyrepr

  def load_template(self) -> str:
    """
    Reads the template text.

    Raises:
        ConfigurationError: If an override template cannot be read.
    """
    if self.template_path is None:
      packaged = resources.files("minibundle").joinpath("templates").joinpath(DEFAULT_TEMPLATE)
      return packaged.read_text(encoding="utf-8")
    try:
      return Path(self.template_path).read_text(encoding="utf-8")
    except OSError as e:
      raise ConfigurationError(f"Cannot read bundle template {self.template_path}: {e}") from e

  def render(self, entry: str, modules: Mapping[str, str]) -> str:
    """
    Renders the bundle source.

    Args:
        entry: Key of the entry module.
        modules: The Module Table.

    Returns:
        str: The complete bundle text.
    """
    try:
      template = self.environment.from_string(self.load_template())
      return template.render(entry=entry, modules=dict(modules), runtime_require=self.runtime_require)
    except TemplateError as e:
      raise ConfigurationError(f"Invalid bundle template: {e}") from e

  def emit(
    self,
    entry: str,
    modules: Mapping[str, str],
    output: OutputSpec,
    root: Optional[Path] = None,
  ) -> Optional[Path]:
    """
    Renders the bundle and writes it to ``output.path / output.filename``.

    Args:
        entry: Key of the entry module.
        modules: The Module Table.
        output: Destination; a relative ``output.path`` is joined to `root`.
        root: Project root. Defaults to the working directory.

    Returns:
        Optional[Path]: The written file, or None if the write failed.
    """
    self.last_error = None
    text = self.render(entry, modules)

    directory = Path(output.path)
    if not directory.is_absolute():
      directory = (root or Path.cwd()) / directory
    target = directory / output.filename

    try:
      directory.mkdir(parents=True, exist_ok=True)
      target.write_text(text, encoding="utf-8")
    except OSError as e:
      error = EmitWriteError(target, str(e))
      error.__cause__ = e
      self.last_error = error
      log_error(escape(str(error)))
      return None

    logger.debug("Wrote %d bytes to %s", len(text), target)
    log_success(f"Bundle written to [path]{escape(str(target))}[/path] ({len(modules)} modules)")
    return target
