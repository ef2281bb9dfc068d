"""Change-set models describing a bundle artifact."""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

HEADS_PREFIX = "refs/heads/"


class BundleRef(BaseModel):
    """A ref advertised in a bundle header."""

    id: str
    name: str

    model_config = {"frozen": True}

    @property
    def is_branch(self) -> bool:
        return self.name.startswith(HEADS_PREFIX) or self.name.startswith("heads/")

    @property
    def branch(self) -> str:
        """Bare branch name with the hierarchy prefix stripped."""
        if self.name.startswith(HEADS_PREFIX):
            return self.name[len(HEADS_PREFIX) :]
        if self.name.startswith("heads/"):
            return self.name[len("heads/") :]
        return self.name


class BundleHeader(BaseModel):
    """The plain-text header that precedes the pack data in a bundle file."""

    version: int
    capabilities: Dict[str, Optional[str]] = {}
    prerequisites: List[Tuple[str, str]] = []
    refs: List[BundleRef]

    model_config = {"frozen": True}

    @property
    def prerequisite_ids(self) -> List[str]:
        return [commit_id for commit_id, _ in self.prerequisites]

    def branch_refs(self) -> List[BundleRef]:
        return [ref for ref in self.refs if ref.is_branch]


class ChangeSet(BaseModel):
    """A portable set of commits for one branch, stored as a bundle file."""

    path: Path
    ref_name: str
    branch: str
    base_ref: Optional[str] = None
    tip: str
    prerequisites: List[str] = []
    commits: List[str]

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @property
    def is_full_history(self) -> bool:
        """True when the bundle carries the whole history of its branch."""
        return not self.prerequisites
