"""Data models for git-pack-flow."""

from .changeset import BundleHeader, BundleRef, ChangeSet
from .command import Command, LoadCommand, SaveCommand
from .config import FlowConfig

__all__ = [
    "BundleHeader",
    "BundleRef",
    "ChangeSet",
    "Command",
    "FlowConfig",
    "LoadCommand",
    "SaveCommand",
]
