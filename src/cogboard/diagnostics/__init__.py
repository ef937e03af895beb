"""Diagnostics: board simulator and command-line tools."""
