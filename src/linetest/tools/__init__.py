"""External collaborators driven as subprocesses."""

from .cargo import CargoBackend
from .vcs import GitError, is_ignored

__all__ = ["CargoBackend", "GitError", "is_ignored"]
