"""Typed orchestration core."""
