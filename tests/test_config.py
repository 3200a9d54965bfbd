"""
Tests for configuration validation and discovery.
"""

import re

import pytest

from minibundle.config import BundleConfig, LoaderOptions, OutputSpec, load_config, validate_config
from minibundle.errors import ConfigurationError


def test_minimal_config_defaults():
  config = validate_config({"entry": "./src/index.py"})
  assert config.output == OutputSpec()
  assert config.rules == []
  assert config.plugins == []
  assert config.source_root == "src"
  assert config.allow_dynamic_imports is False
  assert config.skip_visited is False


def test_rule_use_forms():
  config = validate_config(
    {
      "entry": "i.py",
      "rules": [
        {"test": r"\.py$", "use": "a.py"},
        {"test": re.compile(r"\.py$"), "use": ["a.py", "b.py"]},
        {"test": r"\.py$", "use": {"path": "c.py", "options": {"flag": True}}},
      ],
    }
  )
  single, sequence, with_options = config.rules
  assert single.use == "a.py"
  assert sequence.use == ["a.py", "b.py"]
  assert with_options.use == LoaderOptions(path="c.py", options={"flag": True})
  assert single.test.search("/x/m.py")


def test_webpack_style_module_rules_are_lifted():
  config = validate_config({"entry": "i.py", "module": {"rules": [{"test": "x", "use": "a.py"}]}})
  assert len(config.rules) == 1


@pytest.mark.parametrize(
  "data",
  [
    {},
    {"entry": ""},
    {"entry": "i.py", "rules": [{"test": "(", "use": "a.py"}]},
    {"entry": "i.py", "rules": [{"test": "x", "use": []}]},
    {"entry": "i.py", "rules": [{"test": "x", "use": 42}]},
    {"entry": "i.py", "rules": [{"test": "x", "use": {"path": "a.py", "bogus": 1}}]},
    {"entry": "i.py", "output": {"filename": " "}},
    {"entry": "i.py", "plugins": ["not a plugin"]},
  ],
)
def test_invalid_configs(data):
  with pytest.raises(ConfigurationError):
    validate_config(data)


def test_non_mapping_config():
  with pytest.raises(ConfigurationError):
    validate_config(["entry"])


def test_config_passthrough():
  config = BundleConfig(entry="i.py")
  assert validate_config(config) is config


def test_load_python_config(project):
  project.write(
    "minibundle.config.py",
    """
    class Plugin:
      def apply(self, compiler):
        pass

    config = {
      "entry": "./src/main.py",
      "output": {"path": "build", "filename": "app.py"},
      "plugins": [Plugin()],
    }
    """,
  )
  config = load_config(search_path=project.root)
  assert config.entry == "./src/main.py"
  assert config.output.filename == "app.py"
  assert len(config.plugins) == 1


def test_python_config_without_config_variable(project):
  project.write("minibundle.config.py", "settings = {}\n")
  with pytest.raises(ConfigurationError, match="'config'"):
    load_config(search_path=project.root)


def test_python_config_that_raises(project):
  project.write("minibundle.config.py", "raise RuntimeError('boom')\n")
  with pytest.raises(ConfigurationError) as exc:
    load_config(search_path=project.root)
  assert isinstance(exc.value.__cause__, RuntimeError)


def test_load_from_pyproject_in_parent(project):
  project.write(
    "pyproject.toml",
    """
    [tool.minibundle]
    entry = "./src/index.py"
    source_root = "lib"

    [tool.minibundle.output]
    path = "out"

    [[tool.minibundle.rules]]
    test = "\\\\.py$"
    use = ["./loaders/a.py", "./loaders/b.py"]
    """,
  )
  nested = project.root / "sub" / "dir"
  nested.mkdir(parents=True)

  config = load_config(search_path=nested)

  assert config.entry == "./src/index.py"
  assert config.source_root == "lib"
  assert str(config.output.path) == "out"
  assert config.rules[0].use == ["./loaders/a.py", "./loaders/b.py"]
  assert config.rules[0].test.search("/p/m.py")


def test_python_config_wins_over_pyproject(project):
  project.write("pyproject.toml", '[tool.minibundle]\nentry = "from_toml.py"\n')
  project.write("minibundle.config.py", 'config = {"entry": "from_py.py"}\n')
  assert load_config(search_path=project.root).entry == "from_py.py"


def test_explicit_config_file(project):
  project.write("configs/alt.toml", '[tool.minibundle]\nentry = "alt.py"\n')
  assert load_config(search_path=project.root, config_file=project.path("configs/alt.toml")).entry == "alt.py"


def test_explicit_config_file_missing(project):
  with pytest.raises(ConfigurationError, match="not found"):
    load_config(search_path=project.root, config_file=project.path("nope.py"))


def test_no_configuration_found(project):
  with pytest.raises(ConfigurationError, match="minibundle.config.py"):
    load_config(search_path=project.root)
