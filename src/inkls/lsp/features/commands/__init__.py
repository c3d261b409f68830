"""Workspace commands."""
