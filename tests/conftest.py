"""Shared fixtures: real git repositories built with GitPython."""

import tempfile
from pathlib import Path

import pytest
from git import Repo


def configure_user(repo: Repo) -> None:
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
        config.set_value("commit", "gpgsign", "false")


def commit_file(repo: Repo, name: str, content: str, message: str) -> str:
    """Write ``name`` in the working tree, commit it and return the commit id."""
    path = Path(repo.working_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([name])
    return repo.index.commit(message).hexsha


def checkout_new_branch(repo: Repo, name: str) -> None:
    repo.create_head(name).checkout()


@pytest.fixture
def temp_dir():
    """A scratch directory removed after the test."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def author_repo(temp_dir):
    """Repository with a single commit on ``main``."""
    path = temp_dir / "author"
    repo = Repo.init(path)
    configure_user(repo)
    commit_file(repo, "README.md", "# Project\n\nfirst line\n", "Initial commit")
    repo.git.branch("-M", "main")
    return repo


@pytest.fixture
def peer_repo(temp_dir, author_repo):
    """Clone of ``author_repo`` that only has ``main``."""
    path = temp_dir / "peer"
    repo = Repo.clone_from(
        author_repo.working_dir,
        path,
        branch="main",
        single_branch=True,
        no_local=True,
    )
    configure_user(repo)
    return repo


@pytest.fixture
def outbox(temp_dir):
    path = temp_dir / "outbox"
    path.mkdir()
    return path


@pytest.fixture
def feature_commits(author_repo):
    """Commits B and C on ``feature`` on top of ``main`` (A)."""
    checkout_new_branch(author_repo, "feature")
    b = commit_file(author_repo, "feature.py", "print('b')\n", "Add feature")
    c = commit_file(author_repo, "feature.py", "print('c')\n", "Refine feature")
    return b, c
