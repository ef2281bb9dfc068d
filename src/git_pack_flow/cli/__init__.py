"""Command-line interface for git-pack-flow."""
