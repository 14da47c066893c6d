"""Source tree synchronization."""

from autopublish.sync.git import SourceSync

__all__ = ["SourceSync"]
