"""Compile-on-edit diagnostics."""
