"""Exceptions raised by git-pack-flow operations."""

from typing import List, Optional

from git.exc import GitCommandError


def describe_git_error(error: GitCommandError) -> str:
    """Return git's own error text from a failed command."""
    text = (error.stderr or "").strip()
    if text.startswith("stderr:"):
        text = text[len("stderr:") :].strip().strip("'").strip()
    if not text:
        text = (error.stdout or "").strip()
        if text.startswith("stdout:"):
            text = text[len("stdout:") :].strip().strip("'").strip()
    return text or str(error)


class PackFlowError(Exception):
    """Base exception for bundle save/load operations."""


class EmptyRangeError(PackFlowError):
    """The branch has no commits that are not already on the base."""


class RepositoryStateError(PackFlowError):
    """The repository is not in a state the operation can work from."""


class ConfigError(PackFlowError):
    """A git-pack-flow setting has a value that cannot be used."""


class CorruptArtifactError(PackFlowError):
    """The bundle file is malformed or cannot be reconstructed."""


class SignatureError(PackFlowError):
    """An imported commit failed signature verification."""

    def __init__(self, message: str, commit: Optional[str] = None):
        super().__init__(message)
        self.commit = commit


class MergeConflictError(PackFlowError):
    """Automatic merge stopped on conflicts that need manual resolution."""

    def __init__(self, message: str, conflicts: Optional[List[str]] = None):
        super().__init__(message)
        self.conflicts = conflicts or []
