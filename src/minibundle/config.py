"""
Build Configuration.

Defines the validated shape of a bundler configuration and the functions that
locate and load it from a project directory.

A configuration can come from two places:

1.  ``minibundle.config.py``: a Python module exposing a ``config`` mapping.
    This is the only form that can carry plugin objects and loader callables.
2.  ``[tool.minibundle]`` in ``pyproject.toml``: plain data only
    (entry, output, rules with string loader references).

Example:

.. code-block:: python

    # minibundle.config.py
    config = {
      "entry": "./src/index.py",
      "output": {"path": "dist", "filename": "bundle.py"},
      "rules": [
        {"test": r"\\.py$", "use": ["./loaders/strip.py", "./loaders/banner.py"]},
      ],
      "plugins": [MyPlugin()],
    }
"""

import importlib.util
import re
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from minibundle.errors import ConfigurationError

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

CONFIG_FILENAME = "minibundle.config.py"
TOML_SECTION = "minibundle"

LoaderRef = Union[str, Callable[..., str]]


class OutputSpec(BaseModel):
  """Where the bundle is written."""

  path: Path = Field(Path("dist"), description="Output directory.")
  filename: str = Field("bundle.py", description="Bundle file name inside `path`.")
  template: Optional[Path] = Field(None, description="Override for the packaged bundle template.")

  @field_validator("filename")
  @classmethod
  def validate_filename(cls, v: str) -> str:
    if not v.strip():
      raise ValueError("Output filename must not be empty")
    return v


class LoaderOptions(BaseModel):
  """
  The ``{ path, options }`` form of a rule's ``use``.

  The loader is invoked with a second ``LoaderContext`` argument exposing
  ``options``.
  """

  model_config = ConfigDict(extra="forbid")

  path: str
  options: Dict[str, Any] = Field(default_factory=dict)


class Rule(BaseModel):
  """
  Binds loaders to modules whose absolute path matches `test`.

  Attributes:
      test: Regular expression searched against the module path.
      use: A single loader reference, a list of references, or a `LoaderOptions`.
  """

  model_config = ConfigDict(arbitrary_types_allowed=True)

  test: re.Pattern
  use: Union[LoaderOptions, List[Any], Any]

  @field_validator("test", mode="before")
  @classmethod
  def compile_test(cls, v: Any) -> re.Pattern:
    if isinstance(v, re.Pattern):
      return v
    if isinstance(v, str):
      try:
        return re.compile(v)
      except re.error as e:
        raise ValueError(f"Invalid rule pattern {v!r}: {e}")
    raise ValueError(f"Rule test must be a regex string or pattern, got {type(v).__name__}")

  @field_validator("use", mode="before")
  @classmethod
  def validate_use(cls, v: Any) -> Any:
    if isinstance(v, dict):
      return LoaderOptions.model_validate(v)
    if isinstance(v, (list, tuple)):
      if not v:
        raise ValueError("Rule 'use' list must not be empty")
      for item in v:
        _check_loader_ref(item)
      return list(v)
    if isinstance(v, LoaderOptions):
      return v
    _check_loader_ref(v)
    return v


def _check_loader_ref(ref: Any) -> None:
  if isinstance(ref, str):
    if not ref.strip():
      raise ValueError("Loader reference must not be empty")
    return
  if not callable(ref):
    raise ValueError(f"Loader reference must be a path string or a callable, got {type(ref).__name__}")


class BundleConfig(BaseModel):
  """
  Validated configuration for one build.

  Immutable for the duration of a run.
  """

  model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

  entry: str = Field(..., description="Entry module, relative to the root.")
  output: OutputSpec = Field(default_factory=OutputSpec)
  rules: List[Rule] = Field(default_factory=list)
  plugins: List[Any] = Field(default_factory=list)
  source_root: str = Field("src", description="Logical prefix joined to every require() argument.")
  allow_dynamic_imports: bool = Field(False, description="Tolerate non-literal require() arguments.")
  skip_visited: bool = Field(False, description="Do not re-analyze modules already in the table.")

  @model_validator(mode="before")
  @classmethod
  def lift_module_rules(cls, data: Any) -> Any:
    """Accepts the webpack-style ``module: {rules: [...]}`` nesting."""
    if isinstance(data, dict) and "module" in data:
      data = dict(data)
      module = data.pop("module") or {}
      if "rules" not in data and isinstance(module, dict):
        data["rules"] = module.get("rules", [])
    return data

  @field_validator("plugins")
  @classmethod
  def validate_plugins(cls, v: List[Any]) -> List[Any]:
    for plugin in v:
      if not callable(getattr(plugin, "apply", None)):
        raise ValueError(f"Plugin {plugin!r} does not expose a callable 'apply'")
    return v

  @field_validator("entry")
  @classmethod
  def validate_entry(cls, v: str) -> str:
    if not v.strip():
      raise ValueError("Entry must not be empty")
    return v


def validate_config(data: Union[BundleConfig, Dict[str, Any]]) -> BundleConfig:
  """
  Coerces raw configuration data into a `BundleConfig`.

  Args:
      data: A mapping in the documented shape, or an existing `BundleConfig`.

  Returns:
      BundleConfig: The validated configuration.

  Raises:
      ConfigurationError: If required fields are missing or malformed.
  """
  if isinstance(data, BundleConfig):
    return data
  if not isinstance(data, dict):
    raise ConfigurationError(f"Configuration must be a mapping, got {type(data).__name__}")
  try:
    return BundleConfig.model_validate(data)
  except ValidationError as e:
    raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(search_path: Optional[Path] = None, config_file: Optional[Path] = None) -> BundleConfig:
  """
  Locates and loads the build configuration.

  Resolution order:
      1. `config_file`, if given (``.py`` or ``.toml``).
      2. ``minibundle.config.py`` in `search_path`.
      3. ``[tool.minibundle]`` of the nearest ``pyproject.toml`` in `search_path` or a parent.

  Args:
      search_path (Optional[Path]): Directory to search. Defaults to the working directory.
      config_file (Optional[Path]): Explicit configuration file.

  Returns:
      BundleConfig: The validated configuration.

  Raises:
      ConfigurationError: If no configuration is found or it fails validation.
  """
  start_dir = search_path or Path.cwd()

  if config_file is not None:
    path = config_file if config_file.is_absolute() else start_dir / config_file
    if not path.is_file():
      raise ConfigurationError(f"Configuration file not found: {path}")
    if path.suffix == ".toml":
      data, _ = _read_toml_section(path)
      if data is None:
        raise ConfigurationError(f"No [tool.{TOML_SECTION}] table in {path}")
      return validate_config(data)
    return validate_config(_load_python_config(path))

  py_config = start_dir / CONFIG_FILENAME
  if py_config.is_file():
    return validate_config(_load_python_config(py_config))

  toml_data, _ = _load_toml_settings(start_dir)
  if toml_data is not None:
    return validate_config(toml_data)

  raise ConfigurationError(f"No {CONFIG_FILENAME} or [tool.{TOML_SECTION}] found in {start_dir}")


def _load_python_config(path: Path) -> Any:
  """Executes a Python config file and returns its ``config`` attribute."""
  module_name = f"minibundle_config_{path.stem.replace('.', '_')}"
  spec = importlib.util.spec_from_file_location(module_name, path)
  if spec is None or spec.loader is None:
    raise ConfigurationError(f"Cannot import configuration file {path}")

  module = importlib.util.module_from_spec(spec)
  try:
    spec.loader.exec_module(module)
  except Exception as e:
    raise ConfigurationError(f"Error while executing {path}: {e}") from e

  if not hasattr(module, "config"):
    raise ConfigurationError(f"{path} does not define a 'config' variable")
  return module.config


def _read_toml_section(toml_path: Path) -> Tuple[Optional[Dict[str, Any]], Path]:
  try:
    with open(toml_path, "rb") as f:
      data = tomllib.load(f)
  except (OSError, tomllib.TOMLDecodeError) as e:
    raise ConfigurationError(f"Cannot read {toml_path}: {e}") from e
  return data.get("tool", {}).get(TOML_SECTION), toml_path.parent


def _load_toml_settings(start_path: Path) -> Tuple[Optional[Dict[str, Any]], Optional[Path]]:
  """
  Searches `start_path` and its parents for a ``pyproject.toml`` with our table.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Optional[Dict], Optional[Path]]: The table and the directory it was found in,
      or ``(None, None)``.
  """
  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.is_file():
      section, found_dir = _read_toml_section(toml_path)
      if section is not None:
        return section, found_dir

  return None, None
