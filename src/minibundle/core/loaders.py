"""
Loader Chain Executor.

A loader is a pure ``str -> str`` transform applied to a module's raw text
before it is parsed. Rules bind loaders to modules by matching a regular
expression against the module's absolute path.

Ordering follows the "closest loader runs first" convention:

- matching rules are applied last-declared first;
- within one rule, ``use: [a, b]`` runs ``b`` then ``a``.

Loader references are file paths relative to the project root (never to this
package), optionally suffixed with ``:attribute``; the default attribute is
``loader``::

    # loaders/upper.py
    def loader(source):
      return source.upper()

A loader declared in the ``{"path": ..., "options": {...}}`` form receives a
`LoaderContext` as its second argument.
"""

import importlib.util
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from minibundle.config import LoaderOptions, LoaderRef, Rule
from minibundle.errors import LoaderExecutionError, LoaderResolutionError

logger = logging.getLogger(__name__)

DEFAULT_LOADER_ATTR = "loader"

LoaderFunction = Callable[..., str]


@dataclass
class LoaderContext:
  """
  Second argument passed to loaders declared with options.

  Attributes:
      options: The ``options`` mapping from the rule.
      resource_path: Absolute path of the module being transformed.
      root: Project root the build was started from.
  """

  options: Dict[str, Any] = field(default_factory=dict)
  resource_path: Optional[Path] = None
  root: Optional[Path] = None


@dataclass(frozen=True)
class LoaderInvocation:
  """One normalized loader call: a reference plus optional options."""

  reference: LoaderRef
  options: Optional[Dict[str, Any]] = None

  @property
  def label(self) -> str:
    return describe_reference(self.reference)


def describe_reference(reference: LoaderRef) -> str:
  if isinstance(reference, str):
    return reference
  return getattr(reference, "__qualname__", repr(reference))


def normalize_use(use: Union[LoaderRef, Sequence[LoaderRef], LoaderOptions]) -> List[LoaderInvocation]:
  """
  Resolves a rule's ``use`` to invocations in execution order.

  Args:
      use: A single reference, a sequence of references, or a `LoaderOptions`.

  Returns:
      List[LoaderInvocation]: For sequences, the last declared loader comes first.
  """
  if isinstance(use, LoaderOptions):
    return [LoaderInvocation(use.path, dict(use.options))]
  if isinstance(use, (list, tuple)):
    return [LoaderInvocation(ref) for ref in reversed(use)]
  return [LoaderInvocation(use)]


class LoaderChain:
  """
  Applies the configured rules to module sources.

  Resolved loader callables are memoized per chain; module sources are not.
  """

  def __init__(self, rules: Sequence[Rule], root: Path):
    """
    Args:
        rules: Rules in declared order.
        root: Directory loader paths are resolved against.
    """
    self.rules = list(rules)
    self.root = Path(root)
    self._resolved: Dict[str, LoaderFunction] = {}

  def resolve(self, reference: LoaderRef) -> LoaderFunction:
    """
    Finds the callable behind a loader reference.

    Args:
        reference: A callable (returned as is) or ``"path/to/file.py[:attr]"``.

    Returns:
        LoaderFunction: The transform.

    Raises:
        LoaderResolutionError: If the file is missing, fails to import, or has
            no callable attribute of the expected name.
    """
    if callable(reference):
      return reference
    if not isinstance(reference, str):
      raise LoaderResolutionError(repr(reference), "not a path or callable")

    if reference in self._resolved:
      return self._resolved[reference]

    file_part, attr = _split_reference(reference)
    path = self._locate(file_part)
    if path is None:
      raise LoaderResolutionError(reference, f"no such file under {self.root}")

    module_name = f"minibundle_loader_{path.stem}_{abs(hash(str(path)))}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
      raise LoaderResolutionError(reference, f"{path} is not an importable Python file")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
      spec.loader.exec_module(module)
    except Exception as e:
      sys.modules.pop(module_name, None)
      raise LoaderResolutionError(reference, f"import failed: {e}") from e

    func = getattr(module, attr, None)
    if not callable(func):
      raise LoaderResolutionError(reference, f"{path.name} has no callable '{attr}'")

    logger.debug("Resolved loader %s -> %s", reference, path)
    self._resolved[reference] = func
    return func

  def _locate(self, file_part: str) -> Optional[Path]:
    candidate = self.root / file_part
    if candidate.is_file():
      return candidate
    with_suffix = candidate.with_name(candidate.name + ".py")
    if not candidate.suffix and with_suffix.is_file():
      return with_suffix
    return None

  def invocations_for(self, module_path: Path) -> List[LoaderInvocation]:
    """
    Lists the loader calls for a module, in execution order.

    Rules are scanned last-to-first; each matching rule contributes its
    normalized invocations.
    """
    target = str(module_path)
    invocations: List[LoaderInvocation] = []
    for rule in reversed(self.rules):
      if rule.test.search(target):
        invocations.extend(normalize_use(rule.use))
    return invocations

  def apply(self, module_path: Path, source: str) -> str:
    """
    Pipes `source` through every loader matching `module_path`.

    Raises:
        LoaderResolutionError: If a matching loader cannot be found.
        LoaderExecutionError: If a loader raises or returns a non-string.
    """
    for invocation in self.invocations_for(module_path):
      func = self.resolve(invocation.reference)
      logger.debug("Applying loader %s to %s", invocation.label, module_path)
      try:
        if invocation.options is None:
          result = func(source)
        else:
          context = LoaderContext(options=invocation.options, resource_path=Path(module_path), root=self.root)
          result = func(source, context)
      except Exception as e:
        raise LoaderExecutionError(invocation.label, module_path, str(e)) from e

      if not isinstance(result, str):
        raise LoaderExecutionError(
          invocation.label, module_path, f"expected str result, got {type(result).__name__}"
        )
      source = result
    return source


def _split_reference(reference: str) -> Tuple[str, str]:
  """Splits ``"file.py:attr"``; a trailing part that is not an identifier stays in the path."""
  head, sep, tail = reference.rpartition(":")
  if sep and head and tail.isidentifier():
    return head, tail
  return reference, DEFAULT_LOADER_ATTR


def apply_loaders(module_path: Path, source: str, rules: Sequence[Rule], root: Path) -> str:
  """
  One-shot form of `LoaderChain.apply`.

  Args:
      module_path: Absolute path of the module, tested against each rule.
      source: Raw module text.
      rules: Rules in declared order.
      root: Directory loader references are resolved against.

  Returns:
      str: The transformed source.
  """
  return LoaderChain(rules, root).apply(module_path, source)
