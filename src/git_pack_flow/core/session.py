"""Save and load orchestration for one command invocation."""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Union

import git
from git import Head, Repo
from git.exc import GitCommandError

from git_pack_flow.core import naming
from git_pack_flow.core.codec import ChangeSetCodec
from git_pack_flow.core.errors import (
    MergeConflictError,
    RepositoryStateError,
    SignatureError,
    describe_git_error,
)
from git_pack_flow.models.changeset import ChangeSet
from git_pack_flow.models.command import Command, LoadCommand, SaveCommand
from git_pack_flow.models.config import FlowConfig

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Where a session is in its save or load run."""

    IDLE = "idle"
    RESOLVING = "resolving"
    CREATING = "creating"
    SELECTING = "selecting"
    FETCHING = "fetching"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.RESOLVING, SessionState.DONE}),
    SessionState.RESOLVING: frozenset({SessionState.CREATING, SessionState.SELECTING}),
    SessionState.CREATING: frozenset({SessionState.FETCHING}),
    SessionState.SELECTING: frozenset({SessionState.FETCHING}),
    SessionState.FETCHING: frozenset({SessionState.MERGING}),
    SessionState.MERGING: frozenset({SessionState.DONE}),
    SessionState.DONE: frozenset(),
    SessionState.FAILED: frozenset(),
}


class SyncSession:
    """Runs a single save or load against one repository.

    A session is used once: after it reaches ``DONE`` or ``FAILED`` any
    further operation raises ``RuntimeError``.
    """

    def __init__(self, repo: Repo, config: Optional[FlowConfig] = None):
        self.repo = repo
        self.config = config or FlowConfig.from_repo(repo)
        self.codec = ChangeSetCodec(repo)
        self.state = SessionState.IDLE
        self.branch: Optional[str] = None
        self.artifact: Optional[Path] = None
        self.change_set: Optional[ChangeSet] = None

    @classmethod
    def open(cls, path: Union[str, Path] = ".", **overrides: Any) -> "SyncSession":
        """Open the repository containing ``path`` and load its settings."""
        try:
            repo = Repo(path, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise RepositoryStateError(f"Not a git repository: {path}") from e
        if repo.bare:
            raise RepositoryStateError(f"Repository has no working tree: {path}")
        return cls(repo, FlowConfig.from_repo(repo, **overrides))

    def run(self, command: Command) -> Union[ChangeSet, str]:
        """Execute a decoded command-line command."""
        if isinstance(command, SaveCommand):
            return self.save(command.output_dir, trunk=command.trunk)
        if isinstance(command, LoadCommand):
            return self.load(
                command.artifact, verify_signatures=command.verify_signatures
            )
        raise TypeError(f"Unsupported command: {command!r}")

    def current_branch(self) -> str:
        """Name of the checked-out branch."""
        try:
            return self.repo.active_branch.name
        except TypeError as e:
            raise RepositoryStateError(
                "HEAD is detached; check out a branch first"
            ) from e

    def save(
        self, output_dir: Union[str, Path], trunk: Optional[str] = None
    ) -> ChangeSet:
        """Export the current branch relative to ``trunk`` into ``output_dir``.

        Returns:
            The change set written, including the artifact path
        """
        self._require_idle()
        trunk = trunk or self.config.trunk
        try:
            self.branch = self.current_branch()
            output_dir = Path(output_dir).resolve()
            if not output_dir.is_dir():
                raise RepositoryStateError(
                    f"Output directory does not exist: {output_dir}"
                )
            if self.branch != trunk and not self._has_branch(trunk):
                raise RepositoryStateError(f"Trunk branch '{trunk}' does not exist")

            self.artifact = output_dir / naming.artifact_name(
                self.branch, naming.timestamp(), self.config.extension
            )
            logger.debug("Saving %s relative to %s", self.branch, trunk)
            self.change_set = self.codec.encode(trunk, self.branch, self.artifact)
            self._transition(SessionState.DONE)
        except Exception:
            self._fail()
            raise

        logger.info("Saved %s to %s", self.branch, self.artifact)
        return self.change_set

    def load(
        self, artifact: Union[str, Path], verify_signatures: Optional[bool] = None
    ) -> str:
        """Import ``artifact`` and merge it into the branch it targets.

        The branch is created from the current checkout when it does not
        exist locally. A conflicting merge is left in place for the operator
        to resolve.

        Returns:
            Name of the branch that was loaded
        """
        self._require_idle()
        if verify_signatures is None:
            verify_signatures = self.config.verify_signatures
        self.artifact = Path(artifact)
        try:
            self.codec.ensure_clean()

            self._transition(SessionState.RESOLVING)
            self.branch = self.codec.peek_target_ref(self.artifact)

            if self._has_branch(self.branch):
                self._transition(SessionState.SELECTING)
                self._checkout(self.branch)
            else:
                self._transition(SessionState.CREATING)
                self._create_branch(self.branch)

            self._transition(SessionState.FETCHING)
            self.change_set = self.codec.decode_into(self.artifact)
            if verify_signatures:
                self._verify_signatures(self.change_set.commits)

            self._transition(SessionState.MERGING)
            self._merge(self.change_set.tip)
            self._transition(SessionState.DONE)
        except Exception:
            self._fail()
            raise

        logger.info("Loaded %s from %s", self.branch, self.artifact)
        return self.branch

    def _require_idle(self) -> None:
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Session already used (state: {self.state.value})")

    def _transition(self, state: SessionState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid session transition: {self.state.value} -> {state.value}"
            )
        logger.debug("Session %s -> %s", self.state.value, state.value)
        self.state = state

    def _fail(self) -> None:
        logger.debug("Session %s -> failed", self.state.value)
        self.state = SessionState.FAILED

    def _has_branch(self, branch: str) -> bool:
        return any(head.name == branch for head in self.repo.heads)

    def _checkout(self, branch: str) -> None:
        try:
            Head(self.repo, f"refs/heads/{branch}").checkout()
        except GitCommandError as e:
            raise RepositoryStateError(
                f"Could not check out '{branch}': {describe_git_error(e)}"
            ) from e

    def _create_branch(self, branch: str) -> None:
        if not self.repo.head.is_valid():
            # No commits yet: make HEAD point at the unborn branch and let the
            # merge fill it in.
            self.repo.git.symbolic_ref("HEAD", f"refs/heads/{branch}")
            return
        try:
            self.repo.create_head(branch).checkout()
        except (GitCommandError, OSError, ValueError) as e:
            raise RepositoryStateError(
                f"Could not create branch '{branch}': {e}"
            ) from e

    def _verify_signatures(self, commits: List[str]) -> None:
        for commit_id in reversed(commits):
            try:
                self.repo.git.verify_commit(commit_id)
            except GitCommandError as e:
                raise SignatureError(
                    f"Commit {commit_id[:12]} has no valid signature: "
                    f"{describe_git_error(e)}",
                    commit=commit_id,
                ) from e
            logger.debug("Signature OK for %s", commit_id)

    def _merge(self, tip: str) -> None:
        try:
            self.repo.git.merge("--no-edit", tip)
        except GitCommandError as e:
            conflicts = self._conflicted_paths()
            if conflicts or "CONFLICT" in str(e):
                raise MergeConflictError(
                    f"Merging into '{self.branch}' stopped on conflicts in: "
                    + ", ".join(conflicts),
                    conflicts=conflicts,
                ) from e
            raise RepositoryStateError(
                f"Could not merge into '{self.branch}': {describe_git_error(e)}"
            ) from e

    def _conflicted_paths(self) -> List[str]:
        output = self.repo.git.diff("--name-only", "--diff-filter=U")
        return [line for line in output.splitlines() if line]
