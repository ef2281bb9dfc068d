"""git-pack-flow - share git branches as bundle files over any channel."""

__version__ = "0.1.0"
