"""
Tests for the top-level convenience API.
"""

import minibundle
from minibundle import HookName, bundle


def test_bundle_with_explicit_config(project):
  project.write("src/index.py", 'require("./a.py")\n')
  project.write("src/a.py", "A = 1\n")

  compilation = bundle({"entry": "./src/index.py", "output": {"path": "out"}}, root=project.root)

  assert list(compilation.modules) == ["./src/index.py", "./src/a.py"]
  assert compilation.output_path == project.path("out/bundle.py")


def test_bundle_loads_config_from_root(project):
  project.write("pyproject.toml", '[tool.minibundle]\nentry = "./src/index.py"\n')
  project.write("src/index.py", "X = 1\n")

  compilation = bundle(root=project.root)

  assert compilation.modules == {"./src/index.py": "X = 1\n"}
  assert project.path("dist/bundle.py").is_file()


def test_public_exports():
  assert minibundle.__version__
  assert HookName.DONE.value == "done"
