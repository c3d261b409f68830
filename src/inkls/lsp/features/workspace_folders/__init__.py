"""Workspace folder, watched file and configuration events."""
