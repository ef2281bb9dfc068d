"""Bundle encoding and decoding on top of a GitPython repository."""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import git
from git import Repo
from git.exc import GitCommandError

from git_pack_flow.core.errors import (
    CorruptArtifactError,
    EmptyRangeError,
    RepositoryStateError,
    describe_git_error,
)
from git_pack_flow.models.changeset import BundleHeader, BundleRef, ChangeSet

logger = logging.getLogger(__name__)

SIGNATURES = {
    b"# v2 git bundle": 2,
    b"# v3 git bundle": 3,
}
OBJECT_ID = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")

# A bundle header is a handful of short lines; anything longer is pack data.
MAX_HEADER_LINE = 4096
MAX_HEADER_LINES = 10000

PathLike = Union[str, Path]


def parse_header(path: PathLike) -> BundleHeader:
    """Parse the plain-text header of the bundle at ``path``.

    Raises:
        CorruptArtifactError: If the file is missing or its header is malformed
    """
    path = Path(path)
    try:
        handle = path.open("rb")
    except OSError as e:
        raise CorruptArtifactError(f"Cannot read artifact {path}: {e.strerror}") from e

    with handle:
        signature = handle.readline(MAX_HEADER_LINE).rstrip(b"\n")
        version = SIGNATURES.get(signature)
        if version is None:
            raise CorruptArtifactError(f"{path.name} is not a git bundle")

        capabilities: Dict[str, Optional[str]] = {}
        prerequisites: List[Tuple[str, str]] = []
        refs: List[BundleRef] = []

        for _ in range(MAX_HEADER_LINES):
            raw = handle.readline(MAX_HEADER_LINE)
            if not raw.endswith(b"\n"):
                raise CorruptArtifactError(f"{path.name} has a truncated header")
            try:
                line = raw[:-1].decode("utf-8")
            except UnicodeDecodeError as e:
                raise CorruptArtifactError(
                    f"{path.name} has an undecodable header line"
                ) from e

            if not line:
                break
            if line.startswith("@"):
                if version < 3:
                    raise CorruptArtifactError(
                        f"{path.name} declares capabilities in a v2 header"
                    )
                key, _, value = line[1:].partition("=")
                capabilities[key] = value or None
            elif line.startswith("-"):
                commit_id, _, comment = line[1:].partition(" ")
                if not OBJECT_ID.match(commit_id):
                    raise CorruptArtifactError(
                        f"{path.name} has a malformed prerequisite: {line!r}"
                    )
                prerequisites.append((commit_id, comment))
            else:
                commit_id, _, name = line.partition(" ")
                if not OBJECT_ID.match(commit_id) or not name:
                    raise CorruptArtifactError(
                        f"{path.name} has a malformed ref line: {line!r}"
                    )
                refs.append(BundleRef(id=commit_id, name=name))
        else:
            raise CorruptArtifactError(f"{path.name} header never ends")

    if not refs:
        raise CorruptArtifactError(f"{path.name} does not contain any refs")

    return BundleHeader(
        version=version,
        capabilities=capabilities,
        prerequisites=prerequisites,
        refs=refs,
    )


def target_ref(header: BundleHeader, path: PathLike = "") -> BundleRef:
    """Return the branch ref a bundle is meant to update."""
    branches = header.branch_refs()
    if not branches:
        names = ", ".join(ref.name for ref in header.refs)
        raise CorruptArtifactError(
            f"{Path(path).name or 'bundle'} does not contain a branch ref ({names})"
        )
    return branches[0]


class ChangeSetCodec:
    """Moves commit ranges between a repository and bundle files."""

    def __init__(self, repo: Repo):
        self.repo = repo

    def ensure_clean(self) -> None:
        """Refuse to work on top of uncommitted changes to tracked files."""
        if self.repo.is_dirty(index=True, working_tree=True, untracked_files=False):
            raise RepositoryStateError(
                "Working tree has uncommitted changes; commit or stash them first"
            )

    def resolve(self, ref: str) -> str:
        """Return the commit id ``ref`` points at."""
        try:
            return self.repo.commit(ref).hexsha
        except (git.exc.BadName, ValueError) as e:
            raise RepositoryStateError(f"Unknown revision: {ref}") from e

    def commit_range(self, base_ref: str, head_ref: str) -> List[str]:
        """Commit ids reachable from ``head_ref`` but not from ``base_ref``.

        When both refs are the same the whole history of ``head_ref`` is
        returned. Ids are ordered newest first.
        """
        head = self.resolve(head_ref)
        if base_ref == head_ref:
            output = self.repo.git.rev_list(head)
        else:
            base = self.resolve(base_ref)
            output = self.repo.git.rev_list(head, f"^{base}")
        return output.split()

    def encode(self, base_ref: str, head_ref: str, destination: PathLike) -> ChangeSet:
        """Write the commits unique to ``head_ref`` into a bundle file.

        Args:
            base_ref: Ref the receiver is expected to already have
            head_ref: Branch to export; saving the base itself exports its
                entire history
            destination: Bundle file to create

        Raises:
            RepositoryStateError: If the working tree is dirty or a ref is unknown
            EmptyRangeError: If there is nothing to export
        """
        self.ensure_clean()
        destination = Path(destination).resolve()
        commits = self.commit_range(base_ref, head_ref)
        if not commits:
            raise EmptyRangeError(
                f"Branch '{head_ref}' has no commits that are not already "
                f"on '{base_ref}'"
            )

        rev = head_ref if base_ref == head_ref else f"{base_ref}..{head_ref}"
        logger.debug(
            "Creating bundle %s from %s (%d commits)", destination, rev, len(commits)
        )
        try:
            self.repo.git.bundle("create", str(destination), rev)
        except GitCommandError as e:
            raise RepositoryStateError(
                f"Could not create bundle for {rev}: {describe_git_error(e)}"
            ) from e

        header = parse_header(destination)
        ref = target_ref(header, destination)
        return ChangeSet(
            path=destination,
            ref_name=ref.name,
            branch=ref.branch,
            base_ref=None if base_ref == head_ref else base_ref,
            tip=ref.id,
            prerequisites=header.prerequisite_ids,
            commits=commits,
        )

    def read_header(self, artifact: PathLike) -> BundleHeader:
        """Parse the header of ``artifact`` without invoking git."""
        return parse_header(artifact)

    def peek_target_ref(self, artifact: PathLike) -> str:
        """Name of the branch the bundle targets, without importing anything."""
        return target_ref(self.read_header(artifact), artifact).branch

    def decode_into(self, artifact: PathLike) -> ChangeSet:
        """Import the bundle's objects and point ``FETCH_HEAD`` at its tip.

        Local branches are left untouched. Importing the same bundle again
        fetches nothing new and returns the same change set.

        Raises:
            CorruptArtifactError: If the bundle is malformed or needs commits
                this repository does not have
        """
        path = Path(artifact).resolve()
        header = self.read_header(path)
        ref = target_ref(header, path)

        try:
            self.repo.git.bundle("verify", "--quiet", str(path))
        except GitCommandError as e:
            raise CorruptArtifactError(
                f"{path.name} cannot be applied: {describe_git_error(e)}"
            ) from e

        logger.debug("Fetching %s from %s", ref.name, path)
        try:
            self.repo.git.fetch(str(path), ref.name)
        except GitCommandError as e:
            raise CorruptArtifactError(
                f"Could not import {path.name}: {describe_git_error(e)}"
            ) from e

        excludes = [f"^{commit_id}" for commit_id in header.prerequisite_ids]
        commits = self.repo.git.rev_list(ref.id, *excludes).split()
        logger.info("Imported %d commits for %s", len(commits), ref.branch)

        return ChangeSet(
            path=path,
            ref_name=ref.name,
            branch=ref.branch,
            tip=ref.id,
            prerequisites=header.prerequisite_ids,
            commits=commits,
        )
