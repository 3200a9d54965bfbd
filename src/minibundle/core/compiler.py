"""
Compiler (Build Driver).

Wires a validated configuration into the graph builder and the emitter, and
fires lifecycle hooks around each phase::

    compiler -> build graph -> afterCompiler -> emit -> write bundle
             -> afterEmit(compilation) -> done

Everything runs synchronously on the calling thread. Any error other than a
failed bundle write aborts `start` and propagates unchanged.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field
from rich.markup import escape

from minibundle.config import BundleConfig, validate_config
from minibundle.core.emitter import BundleEmitter
from minibundle.core.graph import GraphBuilder, ModuleTable
from minibundle.core.hooks import HookRegistry
from minibundle.core.loaders import LoaderChain
from minibundle.core.paths import module_key, resolve_key
from minibundle.utils.console import log_info


class Compilation(BaseModel):
  """
  Outcome of one `Compiler.start` run, passed to ``afterEmit`` taps.
  """

  entry: str = Field(..., description="Module Table key of the entry module.")
  modules: Dict[str, str] = Field(default_factory=dict, description="The final Module Table.")
  output_path: Optional[Path] = Field(None, description="Written bundle file, if the write succeeded.")
  emitted: bool = Field(False, description="True if the bundle file was written.")
  errors: List[str] = Field(default_factory=list, description="Reported (non-fatal) errors.")


class Compiler:
  """
  Drives one build.

  Attributes:
      config (BundleConfig): The validated configuration.
      root (Path): Directory the build is relative to (working directory at construction).
      hooks (HookRegistry): Lifecycle hooks; plugins tap into these from ``apply``.
      modules (ModuleTable): Filled once the dependency graph is complete.
  """

  def __init__(self, config: Union[BundleConfig, Dict[str, Any]], root: Optional[Path] = None):
    """
    Validates the configuration and applies every plugin.

    Args:
        config: A `BundleConfig` or a raw mapping in the same shape.
        root: Project root. Defaults to the current working directory.

    Raises:
        ConfigurationError: If `config` does not validate.
    """
    self.config = validate_config(config)
    self.root = Path(root) if root is not None else Path.cwd()

    self.entry = self.config.entry
    self.output = self.config.output
    self.rules = self.config.rules
    self.modules: ModuleTable = {}

    self.hooks = HookRegistry()

    template = self.output.template
    if template is not None and not template.is_absolute():
      template = self.root / template
    self.emitter = BundleEmitter(template_path=template)

    for plugin in self.config.plugins:
      plugin.apply(self)

  @property
  def entry_key(self) -> str:
    return module_key(resolve_key(self.entry, self.root), self.root)

  def create_graph_builder(self) -> GraphBuilder:
    chain = LoaderChain(self.rules, self.root)
    return GraphBuilder(
      chain,
      self.root,
      source_root=self.config.source_root,
      allow_dynamic_imports=self.config.allow_dynamic_imports,
      skip_visited=self.config.skip_visited,
    )

  def build_graph(self) -> ModuleTable:
    """
    Builds the Module Table from the entry without firing hooks or emitting.

    Returns:
        ModuleTable: A new table for this call.
    """
    return self.create_graph_builder().build(self.entry)

  def start(self) -> Compilation:
    """
    Runs the full build.

    Returns:
        Compilation: The Module Table and where (or whether) the bundle was written.
    """
    self.hooks.compiler.call()

    log_info(f"Building from [path]{escape(self.entry)}[/path]")
    self.modules = self.build_graph()

    self.hooks.after_compiler.call()
    self.hooks.emit.call()

    output_path = self.emitter.emit(self.entry_key, self.modules, self.output, self.root)
    errors = [str(self.emitter.last_error)] if self.emitter.last_error else []

    compilation = Compilation(
      entry=self.entry_key,
      modules=dict(self.modules),
      output_path=output_path,
      emitted=output_path is not None,
      errors=errors,
    )
    self.hooks.after_emit.call(compilation)
    self.hooks.done.call()
    return compilation
