"""
Dependency Graph Builder.

Starting at the entry module, each module is:

1.  read from disk,
2.  piped through the loader chain,
3.  parsed with LibCST,
4.  rewritten so every ``require("./x.py")`` call becomes
    ``__minibundle_require__("./src/x.py")``,
5.  regenerated to text and stored in the Module Table under its key,

after which every dependency found in step 4 is analyzed the same way,
depth-first and pre-order.

There is no memoization by default: a module reachable along two paths is
processed twice (the second visit overwrites the first entry), and an import
cycle recurses until Python's recursion limit is hit. ``skip_visited=True``
stops recursion into modules already present in the table.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import libcst as cst

from minibundle.core.loaders import LoaderChain
from minibundle.core.paths import import_key, module_key, resolve_key
from minibundle.errors import DynamicImportError, ModuleReadError, ParseError

logger = logging.getLogger(__name__)

REQUIRE_NAME = "require"
RUNTIME_REQUIRE_NAME = "__minibundle_require__"

ModuleTable = Dict[str, str]


def literal_string_value(node: cst.BaseExpression) -> Optional[str]:
  """
  Returns the value of a plain string literal, or None for anything computed.

  Implicitly concatenated literals count as plain; f-strings and bytes do not.
  """
  if isinstance(node, (cst.SimpleString, cst.ConcatenatedString)):
    value = node.evaluated_value
    if isinstance(value, str):
      return value
  return None


def _string_node(key: str, like: cst.BaseExpression) -> cst.SimpleString:
  """Builds a literal for `key`, keeping the quote style of `like` where possible."""
  quote = like.quote if isinstance(like, cst.SimpleString) else '"'
  if quote in ('"', "'") and quote not in key and "\\" not in key:
    return cst.SimpleString(f"{quote}{key}{quote}")
  return cst.SimpleString(repr(key))


class RequireRewriter(cst.CSTTransformer):
  """
  Rewrites ``require(...)`` calls into runtime lookups.

  Dependencies are recorded on entry to each call (pre-order), so
  `dependencies` lists keys in source order.

  Attributes:
      dependencies (List[str]): Keys of required modules, in source order.
  """

  def __init__(
    self,
    module_path: Path,
    source_root: str = "src",
    allow_dynamic_imports: bool = False,
  ) -> None:
    super().__init__()
    self.module_path = module_path
    self.source_root = source_root
    self.allow_dynamic_imports = allow_dynamic_imports
    self.dependencies: List[str] = []
    self._keys: Dict[int, str] = {}

  @staticmethod
  def is_require(node: cst.Call) -> bool:
    return isinstance(node.func, cst.Name) and node.func.value == REQUIRE_NAME

  def visit_Call(self, node: cst.Call) -> Optional[bool]:
    if not self.is_require(node) or not node.args:
      return True

    value = literal_string_value(node.args[0].value)
    if value is None:
      if not self.allow_dynamic_imports:
        code = cst.Module(body=[]).code_for_node(node)
        raise DynamicImportError(self.module_path, f"non-literal require() argument in `{code}`")
      logger.debug("Keeping dynamic require() argument in %s", self.module_path)
      return True

    key = import_key(value, self.source_root)
    self._keys[id(node)] = key
    self.dependencies.append(key)
    return True

  def leave_Call(self, original_node: cst.Call, updated_node: cst.Call) -> cst.BaseExpression:
    if not self.is_require(original_node) or not original_node.args:
      return updated_node

    changes = {"func": updated_node.func.with_changes(value=RUNTIME_REQUIRE_NAME)}
    key = self._keys.get(id(original_node))
    if key is not None:
      first = updated_node.args[0]
      new_first = first.with_changes(value=_string_node(key, first.value))
      changes["args"] = [new_first, *updated_node.args[1:]]
    return updated_node.with_changes(**changes)


@dataclass
class ModuleRecord:
  """A fully transformed module, before it is stored in the table."""

  path: Path
  key: str
  source: str
  dependencies: List[str] = field(default_factory=list)


class GraphBuilder:
  """
  Builds the Module Table by walking ``require`` edges from an entry module.

  The table being filled is passed explicitly through `analyze`; the builder
  holds no per-run state of its own.
  """

  def __init__(
    self,
    chain: LoaderChain,
    root: Path,
    source_root: str = "src",
    allow_dynamic_imports: bool = False,
    skip_visited: bool = False,
  ):
    """
    Args:
        chain: Loader chain applied to each module before parsing.
        root: Project root; keys are relative to it and dependencies resolve against it.
        source_root: Logical prefix joined to every ``require`` argument.
        allow_dynamic_imports: Keep non-literal ``require`` calls instead of failing.
        skip_visited: Do not re-analyze a module whose key is already in the table.
    """
    self.chain = chain
    self.root = Path(root)
    self.source_root = source_root
    self.allow_dynamic_imports = allow_dynamic_imports
    self.skip_visited = skip_visited

  def read_source(self, module_path: Path) -> str:
    try:
      return Path(module_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
      raise ModuleReadError(module_path, str(e)) from e

  def parse(self, module_path: Path, source: str) -> cst.Module:
    """
    Parses transformed source.

    Raises:
        ParseError: On invalid syntax. Not retried.
    """
    try:
      return cst.parse_module(source)
    except cst.ParserSyntaxError as e:
      raise ParseError(module_path, f"{e.message} (line {e.raw_line}, column {e.raw_column})") from e

  def transform(self, module_path: Path) -> ModuleRecord:
    """
    Reads, loads, parses, rewrites and regenerates a single module.

    Args:
        module_path: Absolute path of the module.

    Returns:
        ModuleRecord: The module's key, final source and dependency keys.
    """
    raw = self.read_source(module_path)
    source = self.chain.apply(module_path, raw)
    tree = self.parse(module_path, source)

    rewriter = RequireRewriter(module_path, self.source_root, self.allow_dynamic_imports)
    new_tree = tree.visit(rewriter)

    return ModuleRecord(
      path=Path(module_path),
      key=module_key(module_path, self.root),
      source=new_tree.code,
      dependencies=list(rewriter.dependencies),
    )

  def analyze(self, module_path: Union[str, Path], modules: ModuleTable) -> ModuleTable:
    """
    Adds `module_path` and everything it requires to `modules`.

    Args:
        module_path: Absolute path of the module to analyze.
        modules: The run's Module Table, mutated in place.

    Returns:
        ModuleTable: `modules`, for chaining.
    """
    record = self.transform(Path(module_path))
    if record.key in modules:
      logger.debug("Re-analyzed %s, overwriting previous entry", record.key)
    modules[record.key] = record.source
    logger.debug("Analyzed %s (%d dependencies)", record.key, len(record.dependencies))

    for dependency in record.dependencies:
      dependency_path = resolve_key(dependency, self.root)
      if self.skip_visited and module_key(dependency_path, self.root) in modules:
        continue
      self.analyze(dependency_path, modules)

    return modules

  def build(self, entry: Union[str, Path]) -> ModuleTable:
    """
    Builds a fresh Module Table from an entry path relative to the root.

    Args:
        entry: Entry module, relative to the root (or absolute).

    Returns:
        ModuleTable: Keys in traversal order.
    """
    entry_path = resolve_key(str(entry), self.root)
    return self.analyze(entry_path, {})
