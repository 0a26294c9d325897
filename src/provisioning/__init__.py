"""Scaffolding workflow for the basic search application.

This package drives external tools (rails, bundle, git) as subprocesses and
edits the generated files; it is only run after the readiness gate passes.
"""
