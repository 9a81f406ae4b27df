"""Version information for the signer."""

from __future__ import annotations

import json
import platform
import sys
from dataclasses import dataclass

# Set at release time.
VERSION = ""
COMMIT = ""


@dataclass(frozen=True)
class Info:
    """Application version information."""

    version: str
    git_commit: str
    python_version: str

    def to_json(self) -> str:
        """Render the information as indented JSON."""
        return json.dumps(
            {
                "version": self.version,
                "commit": self.git_commit,
                "python_version": self.python_version,
            },
            indent=2,
        )


def new_info() -> Info:
    """Collect version information about the running program."""
    runtime = f"python{platform.python_version()} {sys.platform}/{platform.machine()}"
    return Info(version=VERSION, git_commit=COMMIT, python_version=runtime)