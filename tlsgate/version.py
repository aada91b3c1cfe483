import subprocess
import sys
from pathlib import Path

VERSION = "1.2.0"


def _git_describe() -> tuple[int, str] | None:
    """Number of commits since the last tag and the abbreviated commit, in a git checkout."""
    try:
        out = subprocess.check_output(
            ["git", "describe", "--tags", "--long"],
            stderr=subprocess.STDOUT,
            cwd=Path(__file__).absolute().parent.parent,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    try:
        _, distance, commit = out.decode().strip().rsplit("-", 2)
        return int(distance), commit.removeprefix("g")[:7]
    except ValueError:
        return None


def get_dev_version() -> str:
    """
    VERSION, plus commit info for untagged git checkouts and a marker for frozen binaries.
    """
    version = VERSION
    described = _git_describe()
    if described and described[0] > 0:
        distance, commit = described
        version += f" (+{distance}, commit {commit})"
    if getattr(sys, "frozen", False):
        version += " binary"
    return version


if __name__ == "__main__":  # pragma: no cover
    print(VERSION)
