"""Autopublish - supervised build-and-publish jobs for editor-hosted content."""

__version__ = "0.3.0"
