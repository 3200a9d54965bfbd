"""
minibundle Package.

A minimal module bundler for Python sources. Starting from an entry file it
follows ``require("./x.py")`` calls, pipes every module through configurable
loaders, rewrites the calls into lookups against a runtime module table, and
writes one self-contained bundle file.

Usage
-----

.. code-block:: python

    import minibundle

    compilation = minibundle.bundle(
      {
        "entry": "./src/index.py",
        "output": {"path": "dist", "filename": "bundle.py"},
      }
    )
    print(list(compilation.modules))
    # ['./src/index.py', './src/util.py']

Plugins tap into the lifecycle through ``compiler.hooks``:

.. code-block:: python

    class ReportPlugin:
      def apply(self, compiler):
        compiler.hooks.done.tap("ReportPlugin", lambda: print("built"))
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from minibundle.config import BundleConfig, load_config
from minibundle.core.compiler import Compilation, Compiler
from minibundle.core.hooks import HookName

__version__ = "0.1.0"


def bundle(
  config: Optional[Union[BundleConfig, Dict[str, Any]]] = None,
  root: Optional[Path] = None,
) -> Compilation:
  """
  Runs one build.

  Args:
      config: Configuration mapping or model. If None, it is loaded from `root`
          (``minibundle.config.py`` or ``[tool.minibundle]`` in ``pyproject.toml``).
      root: Project root. Defaults to the working directory.

  Returns:
      Compilation: The Module Table and the bundle location.

  Raises:
      BundlerError: Any fatal build error, unchanged.
  """
  root = root or Path.cwd()
  if config is None:
    config = load_config(search_path=root)
  return Compiler(config, root=root).start()


__all__ = [
  "BundleConfig",
  "Compilation",
  "Compiler",
  "HookName",
  "bundle",
  "load_config",
  "__version__",
]
