"""Command line interface for the Ink language server."""
