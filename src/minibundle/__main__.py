"""
Entry point for module execution (``python -m minibundle``).
"""

import sys
from minibundle.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
