"""Language Server Protocol implementation for inkle's Ink."""

__version__ = "0.3.0"
