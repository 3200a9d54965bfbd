"""
Tests for the Loader Chain Executor.

Verifies:
1.  ``use`` normalization for the single, sequence and options forms.
2.  Application order: last-declared rule first, last-declared loader first.
3.  Loader paths resolve against the project root.
4.  Resolution and execution failures raise the dedicated errors.
"""

from pathlib import Path

import pytest

from minibundle.config import LoaderOptions, Rule
from minibundle.core.loaders import LoaderChain, LoaderContext, LoaderInvocation, apply_loaders, normalize_use
from minibundle.errors import LoaderExecutionError, LoaderResolutionError


def tagger(tag):
  def loader(source):
    return source + tag

  loader.__qualname__ = f"tagger_{tag}"
  return loader


def test_normalize_single_reference():
  assert normalize_use("./loaders/a.py") == [LoaderInvocation("./loaders/a.py")]


def test_normalize_sequence_is_reversed():
  assert normalize_use(["a.py", "b.py", "c.py"]) == [
    LoaderInvocation("c.py"),
    LoaderInvocation("b.py"),
    LoaderInvocation("a.py"),
  ]


def test_normalize_with_options():
  result = normalize_use(LoaderOptions(path="a.py", options={"x": 1}))
  assert result == [LoaderInvocation("a.py", {"x": 1})]


def test_two_rules_two_loaders_order(tmp_path):
  """
  rule[1].loader[1] -> rule[1].loader[0] -> rule[0].loader[1] -> rule[0].loader[0].
  """
  rules = [
    Rule(test=r"\.py$", use=[tagger("A0"), tagger("A1")]),
    Rule(test=r"\.py$", use=[tagger("B0"), tagger("B1")]),
  ]
  result = apply_loaders(tmp_path / "m.py", "", rules, tmp_path)
  assert result == "B1B0A1A0"


def test_non_matching_rule_is_skipped(tmp_path):
  rules = [
    Rule(test=r"\.txt$", use=tagger("T")),
    Rule(test=r"\.py$", use=tagger("P")),
  ]
  assert apply_loaders(tmp_path / "m.py", "x", rules, tmp_path) == "xP"


def test_rule_test_is_searched_against_full_path(tmp_path):
  rules = [Rule(test=r"/vendor/", use=tagger("V"))]
  chain = LoaderChain(rules, tmp_path)
  assert chain.apply(tmp_path / "vendor" / "lib.py", "") == "V"
  assert chain.apply(tmp_path / "src" / "lib.py", "") == ""


def test_string_loader_resolves_against_root(project):
  project.write(
    "loaders/upper.py",
    """
    def loader(source):
      return source.upper()
    """,
  )
  rules = [Rule(test=r"\.py$", use="./loaders/upper.py")]
  assert apply_loaders(project.path("src/m.py"), "x = 'a'", rules, project.root) == "X = 'A'"


def test_string_loader_without_suffix_and_custom_attribute(project):
  project.write(
    "loaders/text.py",
    """
    def shout(source):
      return source + "!"
    """,
  )
  chain = LoaderChain([Rule(test=".", use="loaders/text:shout")], project.root)
  assert chain.apply(project.path("m.py"), "hi") == "hi!"


def test_loader_with_options_receives_context(project):
  project.write(
    "loaders/banner.py",
    """
    def loader(source, context):
      return context.options["text"] + "\\n" + source
    """,
  )
  rules = [Rule(test=r"\.py$", use={"path": "./loaders/banner.py", "options": {"text": "# banner"}})]
  result = apply_loaders(project.path("src/m.py"), "x = 1\n", rules, project.root)
  assert result == "# banner\nx = 1\n"


def test_context_exposes_resource_and_root(tmp_path):
  seen = {}

  def loader(source, context):
    seen["context"] = context
    return source

  rules = [Rule(test=".", use=LoaderOptions(path="unused.py", options={"k": "v"}))]
  chain = LoaderChain(rules, tmp_path)
  chain._resolved["unused.py"] = loader

  chain.apply(tmp_path / "m.py", "")

  context = seen["context"]
  assert isinstance(context, LoaderContext)
  assert context.options == {"k": "v"}
  assert context.resource_path == tmp_path / "m.py"
  assert context.root == tmp_path


def test_loader_modules_are_resolved_once(project):
  project.write(
    "loaders/count.py",
    """
    CALLS = []

    def loader(source):
      CALLS.append(source)
      return source
    """,
  )
  chain = LoaderChain([Rule(test=".", use="loaders/count.py")], project.root)
  first = chain.resolve("loaders/count.py")
  second = chain.resolve("loaders/count.py")
  assert first is second


def test_missing_loader_file(tmp_path):
  chain = LoaderChain([Rule(test=".", use="./loaders/missing.py")], tmp_path)
  with pytest.raises(LoaderResolutionError) as exc:
    chain.apply(tmp_path / "m.py", "")
  assert exc.value.reference == "./loaders/missing.py"


def test_loader_file_without_loader_function(project):
  project.write("loaders/empty.py", "VALUE = 1\n")
  chain = LoaderChain([Rule(test=".", use="loaders/empty.py")], project.root)
  with pytest.raises(LoaderResolutionError, match="no callable 'loader'"):
    chain.apply(project.path("m.py"), "")


def test_loader_file_that_fails_to_import(project):
  project.write("loaders/broken.py", "raise ImportError('nope')\n")
  chain = LoaderChain([Rule(test=".", use="loaders/broken.py")], project.root)
  with pytest.raises(LoaderResolutionError) as exc:
    chain.apply(project.path("m.py"), "")
  assert isinstance(exc.value.__cause__, ImportError)


def test_loader_exception_is_wrapped(tmp_path):
  def failing(source):
    raise ValueError("bad input")

  chain = LoaderChain([Rule(test=".", use=failing)], tmp_path)
  with pytest.raises(LoaderExecutionError) as exc:
    chain.apply(tmp_path / "m.py", "")

  assert exc.value.module_path == Path(tmp_path / "m.py")
  assert isinstance(exc.value.__cause__, ValueError)


def test_loader_must_return_text(tmp_path):
  chain = LoaderChain([Rule(test=".", use=lambda source: None)], tmp_path)
  with pytest.raises(LoaderExecutionError, match="expected str"):
    chain.apply(tmp_path / "m.py", "")
