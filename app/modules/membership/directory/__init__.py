"""Directory backends for member identity records."""

from modules.membership.directory.base import Directory
from modules.membership.directory.google import GoogleWorkspaceDirectory
from modules.membership.directory.memory import InMemoryDirectory

__all__ = [
    "Directory",
    "GoogleWorkspaceDirectory",
    "InMemoryDirectory",
]
