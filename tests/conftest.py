"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- An on-disk project factory for end-to-end builds.
- Console capture so CLI output can be asserted on.
"""

import io
import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest

# Add src to path so we can import 'minibundle' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from rich.console import Console  # noqa: E402

from minibundle.utils.console import reset_console, set_console  # noqa: E402


class Project:
  """
  A throwaway project directory.

  Files are written relative to `root` with their text dedented.
  """

  def __init__(self, root: Path):
    self.root = root

  def write(self, relative: str, text: str = "") -> Path:
    path = self.root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path

  def path(self, relative: str) -> Path:
    return self.root / relative


@pytest.fixture
def project(tmp_path: Path) -> Project:
  """An empty project rooted at a temporary directory."""
  return Project(tmp_path)


@pytest.fixture
def captured_console() -> Callable[[], str]:
  """
  Redirects console and logging output to a buffer.

  Returns:
      Callable returning everything written so far.
  """
  buffer = io.StringIO()
  set_console(Console(file=buffer, width=200, force_terminal=False, color_system=None))
  yield buffer.getvalue
  reset_console()
