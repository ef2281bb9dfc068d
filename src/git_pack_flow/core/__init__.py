"""Core bundle exchange logic."""
