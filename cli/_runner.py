"""
Shared CLI runner helper.

Dev wrappers (test, lint, format) run their tool from the repository root so
relative paths such as ``rulebuilder`` and ``tests`` resolve the same way
wherever the command is invoked from.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent


def run(cmd: Sequence[str]) -> None:
    """
    Run a command from the repository root and exit with its return code.

    Args:
        cmd: Command and arguments to execute

    Example:
        >>> run([sys.executable, "-m", "pytest", "-q"])
    """
    result = subprocess.run(list(cmd), cwd=REPO_ROOT)
    raise SystemExit(result.returncode)
